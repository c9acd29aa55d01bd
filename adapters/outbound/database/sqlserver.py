# Motor SQL Server (pyodbc)

import logging
from typing import Any, Dict, List

import pyodbc

from adapters.outbound.database.base import PY_TYPE_NAMES, BaseEngine
from core.domain.errors import NotFoundError
from core.domain.schema import DatabaseSchema, TableInfo

logger = logging.getLogger(__name__)

DEFAULT_DRIVER = "ODBC Driver 17 for SQL Server"

SYSTEM_SCHEMAS = (
    "sys",
    "INFORMATION_SCHEMA",
    "guest",
    "db_owner",
    "db_accessadmin",
)


class SQLServerEngine(BaseEngine):
    backend = "sqlserver"
    default_schema = "dbo"
    limit_style = "top"
    system_schemas = SYSTEM_SCHEMAS

    def _connection_string(self) -> str:
        c = self.config
        if c.connection_string and "DRIVER=" in c.connection_string.upper():
            return c.connection_string
        driver = c.options.get("driver", DEFAULT_DRIVER)
        parts = [
            f"DRIVER={{{driver}}}",
            f"SERVER={c.host},{c.port or 1433}",
            f"DATABASE={c.database}",
            f"UID={c.username}",
            f"PWD={c.password}",
            "ApplicationIntent=ReadOnly",
        ]
        if c.ssl:
            parts.append("Encrypt=yes")
        return ";".join(parts)

    def _open_connection(self):
        conn = pyodbc.connect(
            self._connection_string(),
            timeout=self.connect_timeout,
            autocommit=True,
            readonly=True,
        )
        # Timeout por sentencia, en segundos
        conn.timeout = self.statement_timeout
        return conn

    def describe(self) -> str:
        c = self.config
        return f"sqlserver://{c.username or ''}@{c.host or ''}:{c.port or 1433}/{c.database}"

    def quote_identifier(self, name: str) -> str:
        return "[" + name.replace("]", "]]") + "]"

    def _random_sample_sql(self, table_ref: str, limit: int) -> str:
        return f"SELECT TOP {int(limit)} * FROM {table_ref} ORDER BY NEWID()"

    def _sequential_sample_sql(self, table_ref: str, limit: int) -> str:
        return f"SELECT TOP {int(limit)} * FROM {table_ref}"

    def _run_validation(self, cursor, sql: str) -> None:
        # PARSEONLY compila sin ejecutar; se apaga siempre
        cursor.execute("SET PARSEONLY ON")
        try:
            cursor.execute(sql)
        finally:
            cursor.execute("SET PARSEONLY OFF")

    def _field_type(self, description, sample: Any) -> str:
        type_code = description[1] if len(description) > 1 else None
        # pyodbc reporta el tipo Python de la columna
        if isinstance(type_code, type):
            return PY_TYPE_NAMES.get(type_code, type_code.__name__)
        return super()._field_type(description, sample)

    def _system_filter(self, alias: str):
        placeholders = ", ".join(["?"] * len(SYSTEM_SCHEMAS))
        return f"{alias}.TABLE_SCHEMA NOT IN ({placeholders})", list(SYSTEM_SCHEMAS)

    def _load_columns(self, where: str, params: List) -> Dict[tuple, List[Dict]]:
        columns: Dict[tuple, List[Dict]] = {}
        _, rows = self._fetch(
            f"""
            SELECT c.TABLE_SCHEMA, c.TABLE_NAME, c.COLUMN_NAME, c.DATA_TYPE,
                   c.IS_NULLABLE, c.COLUMN_DEFAULT, c.CHARACTER_MAXIMUM_LENGTH,
                   c.NUMERIC_PRECISION, c.NUMERIC_SCALE
            FROM INFORMATION_SCHEMA.COLUMNS c
            JOIN INFORMATION_SCHEMA.TABLES t
              ON t.TABLE_SCHEMA = c.TABLE_SCHEMA AND t.TABLE_NAME = c.TABLE_NAME
            WHERE t.TABLE_TYPE = 'BASE TABLE' AND {where}
            ORDER BY c.TABLE_SCHEMA, c.TABLE_NAME, c.ORDINAL_POSITION
            """,
            params,
        )
        for (schema, table, name, data_type, nullable, default,
             max_len, precision, scale) in rows:
            columns.setdefault((schema, table), []).append(
                {
                    "name": name,
                    "type": self.format_data_type(data_type, max_len, precision, scale),
                    "nullable": nullable == "YES",
                    "default": default,
                }
            )
        return columns

    def _load_keys(self, where: str, params: List) -> Dict[tuple, Dict[str, Dict]]:
        keys: Dict[tuple, Dict[str, Dict]] = {}
        _, rows = self._fetch(
            f"""
            SELECT k.TABLE_SCHEMA, k.TABLE_NAME, k.COLUMN_NAME, tc.CONSTRAINT_TYPE,
                   ref.TABLE_NAME, ref.COLUMN_NAME
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE k
              ON k.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
             AND k.TABLE_SCHEMA = tc.TABLE_SCHEMA
            LEFT JOIN INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS rc
              ON rc.CONSTRAINT_NAME = tc.CONSTRAINT_NAME
             AND rc.CONSTRAINT_SCHEMA = tc.TABLE_SCHEMA
            LEFT JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ref
              ON ref.CONSTRAINT_NAME = rc.UNIQUE_CONSTRAINT_NAME
             AND ref.ORDINAL_POSITION = k.ORDINAL_POSITION
            WHERE tc.CONSTRAINT_TYPE IN ('PRIMARY KEY', 'FOREIGN KEY') AND {where}
            """,
            params,
        )
        for schema, table, column, ctype, ref_table, ref_column in rows:
            entry = keys.setdefault((schema, table), {}).setdefault(column, {})
            if ctype == "PRIMARY KEY":
                entry["pk"] = True
            elif ref_table:
                entry["fk"] = (ref_table, ref_column)
        return keys

    def get_schema(self) -> DatabaseSchema:
        where, params = self._system_filter("t")
        _, table_rows = self._fetch(
            f"""
            SELECT t.TABLE_SCHEMA, t.TABLE_NAME,
                   (SELECT SUM(p.rows) FROM sys.partitions p
                    WHERE p.object_id = OBJECT_ID(QUOTENAME(t.TABLE_SCHEMA) + '.' + QUOTENAME(t.TABLE_NAME))
                      AND p.index_id IN (0, 1))
            FROM INFORMATION_SCHEMA.TABLES t
            WHERE t.TABLE_TYPE = 'BASE TABLE' AND {where}
            ORDER BY t.TABLE_SCHEMA, t.TABLE_NAME
            """,
            params,
        )
        columns = self._load_columns(*self._system_filter("c"))
        keys = self._load_keys(*self._system_filter("k"))

        tables = []
        for schema, name, row_count in table_rows:
            cols = self.build_columns(
                columns.get((schema, name), []), keys.get((schema, name), {})
            )
            tables.append(
                TableInfo(
                    name=name,
                    schema=schema,
                    columns=cols,
                    row_count=int(row_count) if row_count is not None else None,
                    column_count=len(cols),
                )
            )
        schemas = sorted({t.schema for t in tables})
        logger.info(f"SQL Server: {len(tables)} tablas en {len(schemas)} schemas")
        return DatabaseSchema(schemas=schemas, tables=tables)

    def get_table_schema(self, qualified_name: str) -> TableInfo:
        schema, table = self.parse_table_name(qualified_name)
        params = [schema, table]

        columns = self._load_columns(
            "c.TABLE_SCHEMA = ? AND c.TABLE_NAME = ?", params
        ).get((schema, table))
        if not columns:
            raise NotFoundError(
                f"Tabla {schema}.{table} no encontrada", resource="table"
            )
        keys = self._load_keys("k.TABLE_SCHEMA = ? AND k.TABLE_NAME = ?", params)
        cols = self.build_columns(columns, keys.get((schema, table), {}))

        _, constraints = self._fetch(
            "SELECT CONSTRAINT_NAME, CONSTRAINT_TYPE FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS "
            "WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? ORDER BY CONSTRAINT_NAME",
            params,
        )
        _, indexes = self._fetch(
            """
            SELECT i.name FROM sys.indexes i
            JOIN sys.tables t ON t.object_id = i.object_id
            JOIN sys.schemas s ON s.schema_id = t.schema_id
            WHERE s.name = ? AND t.name = ? AND i.name IS NOT NULL
            ORDER BY i.name
            """,
            params,
        )
        return TableInfo(
            name=table,
            schema=schema,
            columns=cols,
            column_count=len(cols),
            constraints=[f"{name} ({ctype})" for name, ctype in constraints],
            indexes=[r[0] for r in indexes],
        )

    def _server_metadata(self) -> Dict[str, Any]:
        _, version = self._fetch("SELECT @@VERSION")
        _, size = self._fetch(
            "SELECT CAST(SUM(size) * 8.0 / 1024 AS DECIMAL(18, 2)) FROM sys.database_files"
        )
        where, params = self._system_filter("t")
        _, tables = self._fetch(
            f"SELECT t.TABLE_SCHEMA, COUNT(*) FROM INFORMATION_SCHEMA.TABLES t "
            f"WHERE t.TABLE_TYPE = 'BASE TABLE' AND {where} GROUP BY t.TABLE_SCHEMA",
            params,
        )
        return {
            "server_version": version[0][0],
            "database_size": f"{size[0][0] or 0} MB",
            "table_count": sum(int(r[1]) for r in tables),
            "schemas": sorted(r[0] for r in tables),
        }
