# Puertos de frontera con el registro de datasources

from abc import ABC, abstractmethod
from typing import Any, Dict


class CredentialDecryptor(ABC):
    """Frontera opaca de descifrado de configuraciones"""

    @abstractmethod
    def decrypt(self, blob: str) -> Dict[str, Any]:
        """Descifra un blob y retorna la configuración como dict"""
        pass


class DatasourceRegistry(ABC):
    """Registro externo de datasources (id -> configuración cifrada)"""

    @abstractmethod
    def get_encrypted_config(self, datasource_id: str) -> str:
        """
        Raises:
            NotFoundError: el datasource no existe
        """
        pass
