# Entidades de Schema

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any


@dataclass
class ColumnInfo:
    """Columna de una tabla"""

    name: str
    type: str
    nullable: bool = True
    default_value: Any = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    referenced_table: Optional[str] = None
    referenced_column: Optional[str] = None
    description: Optional[str] = None

    def describe(self) -> str:
        """Descripción compacta para prompts"""
        parts = [self.type]
        if not self.nullable:
            parts.append("NOT NULL")
        if self.is_primary_key:
            parts.append("PRIMARY KEY")
        if self.is_foreign_key and self.referenced_table:
            parts.append(
                f"FOREIGN KEY -> {self.referenced_table}({self.referenced_column})"
            )
        if self.default_value is not None:
            parts.append(f"DEFAULT: {self.default_value}")
        text = f"  {self.name} ({', '.join(parts)})"
        if self.description:
            text += f" -- {self.description}"
        return text


@dataclass
class TableInfo:
    """Tabla de base de datos"""

    name: str
    schema: str = "public"
    columns: List[ColumnInfo] = field(default_factory=list)
    row_count: Optional[int] = None
    column_count: Optional[int] = None
    description: Optional[str] = None
    sample_data: List[Dict[str, Any]] = field(default_factory=list)
    constraints: List[str] = field(default_factory=list)
    indexes: List[str] = field(default_factory=list)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DatabaseSchema:
    """Schemas y tablas visibles con las credenciales configuradas"""

    schemas: List[str] = field(default_factory=list)
    tables: List[TableInfo] = field(default_factory=list)

    def get_table(self, qualified_name: str) -> Optional[TableInfo]:
        return next(
            (t for t in self.tables if t.qualified_name == qualified_name), None
        )


@dataclass
class ConnectionTestResult:
    """Resultado de testConnection; nunca se lanza, se reporta aquí"""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    response_time_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SampleResult:
    """Muestra best-effort de filas; ok=False indica fallo parcial no fatal"""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    ok: bool = True
    warning: Optional[str] = None


@dataclass
class TableContext:
    """Tabla + muestra que el introspector entrega al orquestador"""

    table: TableInfo
    sample: SampleResult = field(default_factory=SampleResult)

    @property
    def qualified_name(self) -> str:
        return self.table.qualified_name
