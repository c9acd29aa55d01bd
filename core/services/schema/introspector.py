# Introspector: schema + filas de muestra de las tablas seleccionadas

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from config.settings import settings
from core.domain.errors import ConnectionError
from core.domain.schema import SampleResult, TableContext
from core.ports.database_port import DatabasePort

logger = logging.getLogger(__name__)

TRUNCATION_MARK = "\n... (schema context truncated)"


def format_sample_value(value: Any) -> str:
    """Valor de muestra acotado para el prompt"""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        suffix = "..." if len(value) > 50 else ""
        return f'"{value[:50]}{suffix}"'
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)[:100]
    return str(value)[:50]


# Arma el contexto de schema que consume el generador
class SchemaIntrospector:
    def __init__(
        self,
        sample_rows: Optional[int] = None,
        context_sample_rows: Optional[int] = None,
        max_tables: Optional[int] = None,
        max_chars: Optional[int] = None,
    ):
        self.sample_rows = sample_rows or settings.query.sample_rows
        self.context_sample_rows = (
            context_sample_rows or settings.query.context_sample_rows
        )
        self.max_tables = max_tables or settings.query.max_context_tables
        self.max_chars = max_chars or settings.query.max_context_chars

    def sample_table(self, engine: DatabasePort, table_name: str) -> SampleResult:
        """Muestra best-effort: un fallo deja la muestra vacía con warning"""
        try:
            rows = engine.get_sample_data(table_name, self.sample_rows)
            return SampleResult(rows=rows)
        except ConnectionError:
            raise
        except Exception as e:
            logger.warning(f"Muestra no disponible para {table_name}: {e}")
            return SampleResult(
                ok=False, warning=f"Sample data unavailable for {table_name}: {e}"
            )

    def extract_table_contexts(
        self, engine: DatabasePort, selected_tables: List[str]
    ) -> Tuple[List[TableContext], List[str]]:
        """
        Schema y muestra de cada tabla seleccionada.

        Sin selección se usan las primeras tablas del datasource. Una tabla
        cuyo schema falla se omite con warning; un fallo de conexión se propaga.

        Returns:
            (contextos, warnings)
        """
        warnings: List[str] = []
        tables = list(selected_tables or [])
        if not tables:
            schema = engine.get_schema()
            tables = [t.qualified_name for t in schema.tables[: self.max_tables]]
            logger.info(f"Sin tablas seleccionadas, usando {len(tables)} del schema")

        contexts = []
        for name in tables:
            try:
                info = engine.get_table_schema(name)
            except ConnectionError:
                raise
            except Exception as e:
                logger.warning(f"Schema no disponible para {name}: {e}")
                warnings.append(f"Skipped table {name}: {e}")
                continue

            sample = self.sample_table(engine, name)
            if sample.warning:
                warnings.append(sample.warning)
            info.sample_data = sample.rows
            contexts.append(TableContext(table=info, sample=sample))

        logger.info(f"Contexto: {len(contexts)}/{len(tables)} tablas")
        return contexts, warnings

    def _render_table(self, context: TableContext) -> str:
        table = context.table
        lines = [f"Table: {table.qualified_name}"]
        if table.description:
            lines.append(f"Description: {table.description}")
        lines.append("Columns:")
        lines.extend(column.describe() for column in table.columns)

        rows = context.sample.rows[: self.context_sample_rows]
        if rows:
            lines.append("")
            lines.append("Sample Data:")
            for row in rows:
                values = ", ".join(
                    f"{key}: {format_sample_value(value)}" for key, value in row.items()
                )
                lines.append(f"  {{{values}}}")

        if table.constraints:
            lines.append("")
            lines.append(f"Constraints: {', '.join(table.constraints)}")
        if table.indexes:
            lines.append(f"Indexes: {', '.join(table.indexes)}")
        return "\n".join(lines)

    def build_schema_context(self, contexts: List[TableContext]) -> str:
        """Texto para el prompt, acotado a max_chars"""
        text = "\n---\n".join(self._render_table(c) for c in contexts)
        if len(text) > self.max_chars:
            logger.info(f"Contexto truncado: {len(text)} -> {self.max_chars} chars")
            text = text[: self.max_chars - len(TRUNCATION_MARK)] + TRUNCATION_MARK
        return text

    def analyze_relationships(self, contexts: List[TableContext]) -> List[str]:
        """Foreign keys entre tablas de la selección"""
        selected = set()
        for c in contexts:
            selected.add(c.table.name)
            selected.add(c.table.qualified_name)

        relationships = []
        for c in contexts:
            for column in c.table.columns:
                if column.is_foreign_key and column.referenced_table in selected:
                    relationships.append(
                        f"{c.table.name}.{column.name} -> "
                        f"{column.referenced_table}.{column.referenced_column}"
                    )
        return relationships

    def summarize(self, contexts: List[TableContext]) -> str:
        return "\n".join(
            f"- {c.qualified_name} ({len(c.table.columns)} columns, "
            f"{len(c.sample.rows)} sample rows)"
            for c in contexts
        )

    def table_schemas(self, contexts: List[TableContext]) -> List[Dict[str, Any]]:
        """Resumen por tabla para el resultado del pipeline"""
        return [
            {
                "table": c.qualified_name,
                "columns": [col.name for col in c.table.columns],
                "sample_rows": len(c.sample.rows),
            }
            for c in contexts
        ]


_introspector = None


def get_introspector() -> SchemaIntrospector:
    global _introspector
    if _introspector is None:
        _introspector = SchemaIntrospector()
    return _introspector
