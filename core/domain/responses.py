# Modelos de respuesta estandarizados para la API

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Generic, TypeVar
from pydantic import BaseModel

if TYPE_CHECKING:
    from core.domain.errors import ChartSQLError

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Detalle de error para respuestas"""

    code: str
    message: str
    details: Optional[dict] = None


class APIResponse(BaseModel, Generic[T]):
    """Respuesta estándar de la API"""

    success: bool
    data: Optional[T] = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def ok(cls, data: T = None) -> "APIResponse[T]":
        """Crea respuesta exitosa"""
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls, code: str, message: str, details: dict = None
    ) -> "APIResponse[None]":
        """Crea respuesta de error"""
        return cls(
            success=False,
            error=ErrorDetail(code=code, message=message, details=details),
        )

    @classmethod
    def from_exception(cls, exc: "ChartSQLError") -> "APIResponse[None]":
        """Crea respuesta desde excepción ChartSQLError"""
        return cls(
            success=False,
            error=ErrorDetail(
                code=exc.code, message=exc.message, details=exc.details
            ),
        )


# DTOs específicos para cada endpoint


class TableDetailsData(BaseModel):
    """Detalle de tabla con muestra de filas"""

    name: str
    schema_name: str
    columns: List[Dict[str, Any]]
    constraints: List[str] = []
    indexes: List[str] = []
    sample_data: List[Dict[str, Any]] = []
    warnings: List[str] = []


class SchemaData(BaseModel):
    """Schemas y tablas de un datasource"""

    schemas: List[str]
    tables: List[Dict[str, Any]]


class HealthData(BaseModel):
    """Datos de health check"""

    status: str
    cache: bool
    backends: List[str]


class CacheStatsData(BaseModel):
    total_keys: int
    chart_keys: int
    entry_keys: int = 0
