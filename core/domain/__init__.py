# Core Domain - Entidades de negocio

from core.domain.datasource import DatasourceConfig, BackendType
from core.domain.schema import (
    ColumnInfo,
    TableInfo,
    DatabaseSchema,
    ConnectionTestResult,
    SampleResult,
    TableContext,
)
from core.domain.query import (
    FieldInfo,
    QueryResult,
    QueryValidation,
    TextToSQLRequest,
    TextToSQLResult,
)
from core.domain.cache import CacheEntry
from core.domain.errors import (
    ChartSQLError,
    ConfigError,
    ConnectionError,
    UnsupportedBackendError,
    UnsafeQueryError,
    GenerationError,
    ExecutionError,
    NotFoundError,
    ContextError,
    CacheError,
)
from core.domain.responses import (
    APIResponse,
    ErrorDetail,
    TableDetailsData,
    SchemaData,
    HealthData,
    CacheStatsData,
)

__all__ = [
    # Entidades
    "DatasourceConfig",
    "BackendType",
    "ColumnInfo",
    "TableInfo",
    "DatabaseSchema",
    "ConnectionTestResult",
    "SampleResult",
    "TableContext",
    "FieldInfo",
    "QueryResult",
    "QueryValidation",
    "TextToSQLRequest",
    "TextToSQLResult",
    "CacheEntry",
    # Errores
    "ChartSQLError",
    "ConfigError",
    "ConnectionError",
    "UnsupportedBackendError",
    "UnsafeQueryError",
    "GenerationError",
    "ExecutionError",
    "NotFoundError",
    "ContextError",
    "CacheError",
    # Respuestas
    "APIResponse",
    "ErrorDetail",
    "TableDetailsData",
    "SchemaData",
    "HealthData",
    "CacheStatsData",
]
