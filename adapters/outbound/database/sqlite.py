# Motor SQLite (sqlite3 de la librería estándar)

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Dict, Optional

from adapters.outbound.database.base import BaseEngine
from core.domain.errors import ConfigError, NotFoundError
from core.domain.query import QueryResult, QueryValidation
from core.domain.schema import DatabaseSchema, TableInfo

logger = logging.getLogger(__name__)

# Cada cuántas instrucciones de la VM se revisa el deadline
_PROGRESS_STEPS = 1000


class SQLiteEngine(BaseEngine):
    backend = "sqlite"
    default_schema = "main"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._deadline: Optional[float] = None

    @property
    def path(self) -> str:
        c = self.config
        if c.database:
            return c.database
        if c.connection_string and c.connection_string.startswith("sqlite:///"):
            return c.connection_string[len("sqlite:///"):]
        raise ConfigError("SQLite requiere la ruta del archivo en 'database'")

    def describe(self) -> str:
        return f"sqlite:///{self.path}"

    def _open_connection(self):
        path = self.path
        read_only = self.config.options.get("read_only", True)
        if path == ":memory:":
            conn = sqlite3.connect(":memory:", check_same_thread=False)
        elif read_only:
            uri = Path(path).resolve().as_uri() + "?mode=ro"
            conn = sqlite3.connect(
                uri, uri=True, timeout=self.connect_timeout, check_same_thread=False
            )
        else:
            conn = sqlite3.connect(
                path, timeout=self.connect_timeout, check_same_thread=False
            )
        conn.set_progress_handler(self._check_deadline, _PROGRESS_STEPS)
        return conn

    def _check_deadline(self) -> int:
        # Un valor distinto de cero interrumpe la sentencia en curso
        if self._deadline is not None and time.monotonic() > self._deadline:
            return 1
        return 0

    def _prepare_cursor(self, cursor) -> None:
        self._deadline = time.monotonic() + self.statement_timeout

    def _explain_sql(self, sql: str) -> str:
        return f"EXPLAIN QUERY PLAN {sql}"

    def execute_query(self, sql: str) -> QueryResult:
        try:
            return super().execute_query(sql)
        finally:
            self._deadline = None

    def validate_query(self, sql: str) -> QueryValidation:
        try:
            return super().validate_query(sql)
        finally:
            self._deadline = None

    def _table_names(self):
        _, rows = self._fetch(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [r[0] for r in rows]

    def _describe_table(self, table: str):
        """Columnas y foreign keys vía PRAGMA"""
        quoted = self.quote_identifier(table)
        _, info = self._fetch(f"PRAGMA table_info({quoted})")
        _, fks = self._fetch(f"PRAGMA foreign_key_list({quoted})")

        keys: Dict[str, Dict[str, Any]] = {}
        for _, name, _, _, _, pk in info:
            if pk:
                keys.setdefault(name, {})["pk"] = True
        for fk in fks:
            # id, seq, table, from, to, on_update, on_delete, match
            keys.setdefault(fk[3], {})["fk"] = (fk[2], fk[4])

        rows = [
            {
                "name": name,
                "type": col_type or "ANY",
                "nullable": not notnull and not pk,
                "default": default,
            }
            for _, name, col_type, notnull, default, pk in info
        ]
        return self.build_columns(rows, keys), fks

    def get_schema(self) -> DatabaseSchema:
        tables = []
        for name in self._table_names():
            columns, _ = self._describe_table(name)
            tables.append(
                TableInfo(
                    name=name,
                    schema=self.default_schema,
                    columns=columns,
                    column_count=len(columns),
                )
            )
        logger.info(f"SQLite: {len(tables)} tablas")
        return DatabaseSchema(schemas=[self.default_schema], tables=tables)

    def qualify(self, schema: Optional[str], table: str) -> str:
        # Un archivo SQLite solo expone "main"; otro prefijo se ignora
        return self.quote_identifier(table)

    def get_table_schema(self, qualified_name: str) -> TableInfo:
        schema, table = self.parse_table_name(qualified_name)
        if table not in self._table_names():
            raise NotFoundError(f"Tabla {qualified_name} no encontrada", resource="table")

        columns, fks = self._describe_table(table)
        _, count = self._fetch(f"SELECT COUNT(*) FROM {self.quote_identifier(table)}")
        _, indexes = self._fetch(f"PRAGMA index_list({self.quote_identifier(table)})")

        constraints = []
        pk_columns = [c.name for c in columns if c.is_primary_key]
        if pk_columns:
            constraints.append(f"PRIMARY KEY ({', '.join(pk_columns)})")
        for fk in fks:
            constraints.append(f"FOREIGN KEY ({fk[3]}) REFERENCES {fk[2]}({fk[4]})")

        return TableInfo(
            name=table,
            schema=schema or self.default_schema,
            columns=columns,
            row_count=int(count[0][0]),
            column_count=len(columns),
            constraints=constraints,
            indexes=[r[1] for r in indexes],
        )

    def _server_metadata(self) -> Dict[str, Any]:
        _, version = self._fetch("SELECT sqlite_version()")
        _, page_count = self._fetch("PRAGMA page_count")
        _, page_size = self._fetch("PRAGMA page_size")
        size_kb = int(page_count[0][0]) * int(page_size[0][0]) / 1024
        return {
            "server_version": f"SQLite {version[0][0]}",
            "database_size": f"{size_kb:.0f} kB",
            "table_count": len(self._table_names()),
            "schemas": [self.default_schema],
        }
