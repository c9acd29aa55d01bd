# Puerto de Cache
# Define la interfaz que cualquier adaptador de cache debe implementar

from abc import ABC, abstractmethod
from typing import Optional, Any, List


class CachePort(ABC):
    """Puerto para acceso a cache clave-valor con TTL"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Obtiene valor del cache"""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: int = 3600) -> None:
        """Guarda valor en cache con TTL en segundos"""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Elimina valor del cache"""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Verifica si la clave existe y no expiró"""
        pass

    @abstractmethod
    def keys(self, prefix: str) -> List[str]:
        """Claves vivas que empiezan por prefix"""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Verifica conexión"""
        pass
