# Puerto de Base de Datos
# Contrato uniforme que implementa cada familia de motores

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from core.domain.schema import ConnectionTestResult, DatabaseSchema, TableInfo
from core.domain.query import QueryResult, QueryValidation


class DatabasePort(ABC):
    """Puerto para acceso a base de datos"""

    @abstractmethod
    def connect(self) -> None:
        """
        Abre la conexión. Idempotente si ya está conectado.

        Raises:
            ConnectionError: host inalcanzable o credenciales rechazadas
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Libera la conexión. Seguro de llamar siempre, incluso tras un connect fallido"""
        pass

    @abstractmethod
    def test_connection(self) -> ConnectionTestResult:
        """Round-trip ligero con metadata del servidor. Nunca lanza"""
        pass

    @abstractmethod
    def get_schema(self) -> DatabaseSchema:
        """Schemas y tablas visibles (solo columnas, sin muestras)"""
        pass

    @abstractmethod
    def get_table_schema(self, qualified_name: str) -> TableInfo:
        """
        Detalle completo de una tabla.

        Raises:
            NotFoundError: la tabla no existe o no es visible
        """
        pass

    @abstractmethod
    def get_sample_data(
        self, qualified_name: str, limit: int = 5
    ) -> List[Dict[str, Any]]:
        """Hasta `limit` filas de vista previa"""
        pass

    @abstractmethod
    def execute_query(self, sql: str) -> QueryResult:
        """
        Ejecuta SQL ya filtrado.

        Raises:
            ExecutionError: con el mensaje nativo del motor
        """
        pass

    @abstractmethod
    def validate_query(self, sql: str) -> QueryValidation:
        """Chequeo barato tipo EXPLAIN sin materializar resultados"""
        pass
