# Entidades de Query

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any

from core.domain.datasource import DatasourceConfig


@dataclass(frozen=True)
class FieldInfo:
    """Descriptor de una columna del resultado"""

    name: str
    type: str = "unknown"
    nullable: bool = True


@dataclass(frozen=True)
class QueryResult:
    """Resultado de una ejecución exitosa (inmutable)"""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    fields: List[FieldInfo] = field(default_factory=list)
    execution_time_ms: Optional[int] = None

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class QueryValidation:
    valid: bool
    error: Optional[str] = None


@dataclass
class TextToSQLRequest:
    """Petición de lenguaje natural contra un datasource"""

    query: str
    selected_tables: List[str]
    datasource_id: str
    datasource_config: DatasourceConfig
    ai_provider: Optional[str] = None
    ai_model: Optional[str] = None
    max_retries: Optional[int] = None
    chart_id: Optional[str] = None
    use_cache: bool = True  # False: ni lee ni escribe el cache
    force_refresh: bool = False
    current_sql: Optional[str] = None

    @property
    def bypass_cache(self) -> bool:
        return self.force_refresh or not self.use_cache


@dataclass
class TextToSQLResult:
    """Resultado del pipeline; nunca contiene datos parciales o inseguros"""

    success: bool
    sql: Optional[str] = None
    data: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    explanation: Optional[str] = None
    execution_time_ms: int = 0
    retry_count: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None
    from_cache: bool = False
    query_complexity: Optional[Dict[str, Any]] = None
    optimization_hints: List[str] = field(default_factory=list)
    table_schemas: List[Dict[str, Any]] = field(default_factory=list)
    relationships: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str,
        sql: Optional[str] = None,
        retry_count: int = 0,
        execution_time_ms: int = 0,
        warnings: Optional[List[str]] = None,
    ) -> "TextToSQLResult":
        return cls(
            success=False,
            sql=sql,
            error=error,
            error_code=error_code,
            retry_count=retry_count,
            execution_time_ms=execution_time_ms,
            warnings=warnings or [],
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
