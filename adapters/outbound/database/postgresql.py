# Motor PostgreSQL (psycopg2)

import logging
from typing import Any, Dict, List, Optional

import psycopg2

from adapters.outbound.database.base import BaseEngine
from core.domain.errors import NotFoundError
from core.domain.schema import DatabaseSchema, TableInfo

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")

# OID -> nombre de tipo para los campos del resultado
PG_TYPE_NAMES = {
    16: "boolean",
    17: "bytea",
    20: "bigint",
    21: "smallint",
    23: "integer",
    25: "text",
    114: "json",
    700: "real",
    701: "double precision",
    1042: "char",
    1043: "varchar",
    1082: "date",
    1083: "time",
    1114: "timestamp",
    1184: "timestamptz",
    1700: "numeric",
    2950: "uuid",
    3802: "jsonb",
}

_COLUMNS_SQL = """
    SELECT c.table_schema, c.table_name, c.column_name, c.data_type,
           c.is_nullable, c.column_default, c.character_maximum_length,
           c.numeric_precision, c.numeric_scale,
           col_description(format('%%I.%%I', c.table_schema, c.table_name)::regclass,
                           c.ordinal_position)
    FROM information_schema.columns c
    JOIN information_schema.tables t
      ON t.table_schema = c.table_schema AND t.table_name = c.table_name
    WHERE t.table_type = 'BASE TABLE' AND {where}
    ORDER BY c.table_schema, c.table_name, c.ordinal_position
"""

_KEYS_SQL = """
    SELECT tc.table_schema, tc.table_name, kcu.column_name, tc.constraint_type,
           ccu.table_schema, ccu.table_name, ccu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    LEFT JOIN information_schema.constraint_column_usage ccu
      ON tc.constraint_type = 'FOREIGN KEY'
     AND ccu.constraint_name = tc.constraint_name
     AND ccu.constraint_schema = tc.constraint_schema
    WHERE tc.constraint_type IN ('PRIMARY KEY', 'FOREIGN KEY') AND {where}
"""


class PostgreSQLEngine(BaseEngine):
    backend = "postgresql"
    default_schema = "public"
    system_schemas = SYSTEM_SCHEMAS

    def _open_connection(self):
        c = self.config
        if c.connection_string:
            conn = psycopg2.connect(
                c.connection_string, connect_timeout=self.connect_timeout
            )
        else:
            conn = psycopg2.connect(
                host=c.host,
                port=c.port or 5432,
                dbname=c.database,
                user=c.username,
                password=c.password,
                sslmode=c.ssl_mode or ("require" if c.ssl else "prefer"),
                connect_timeout=self.connect_timeout,
                application_name="chartsql",
            )
        # Sesión de solo lectura: ni un SQL que pase el guard puede escribir
        conn.set_session(readonly=True, autocommit=True)
        return conn

    def _prepare_cursor(self, cursor) -> None:
        cursor.execute(
            f"SET statement_timeout = {int(self.statement_timeout * 1000)}"
        )

    def _field_type(self, description, sample: Any) -> str:
        type_code = getattr(description, "type_code", None)
        if type_code in PG_TYPE_NAMES:
            return PG_TYPE_NAMES[type_code]
        return super()._field_type(description, sample)

    def _schema_filter(self, alias: str):
        placeholders = ", ".join(["%s"] * len(SYSTEM_SCHEMAS))
        return (
            f"{alias}.table_schema NOT IN ({placeholders}) "
            f"AND {alias}.table_schema NOT LIKE 'pg\\_%%'",
            list(SYSTEM_SCHEMAS),
        )

    def _load_keys(self, where: str, params: List) -> Dict[tuple, Dict[str, Dict]]:
        keys: Dict[tuple, Dict[str, Dict]] = {}
        _, rows = self._fetch(_KEYS_SQL.format(where=where), params)
        for schema, table, column, ctype, ref_schema, ref_table, ref_column in rows:
            entry = keys.setdefault((schema, table), {}).setdefault(column, {})
            if ctype == "PRIMARY KEY":
                entry["pk"] = True
            elif ref_table:
                ref = ref_table if ref_schema == schema else f"{ref_schema}.{ref_table}"
                entry["fk"] = (ref, ref_column)
        return keys

    def _load_columns(self, where: str, params: List) -> Dict[tuple, List[Dict]]:
        columns: Dict[tuple, List[Dict]] = {}
        _, rows = self._fetch(_COLUMNS_SQL.format(where=where), params)
        for (schema, table, name, data_type, nullable, default,
             max_len, precision, scale, description) in rows:
            columns.setdefault((schema, table), []).append(
                {
                    "name": name,
                    "type": self.format_data_type(data_type, max_len, precision, scale),
                    "nullable": nullable == "YES",
                    "default": default,
                    "description": description,
                }
            )
        return columns

    def get_schema(self) -> DatabaseSchema:
        where, params = self._schema_filter("t")
        _, schema_rows = self._fetch(
            """
            SELECT schema_name FROM information_schema.schemata
            WHERE schema_name NOT IN %s AND schema_name NOT LIKE 'pg\\_%%'
            ORDER BY schema_name
            """,
            [SYSTEM_SCHEMAS],
        )
        _, table_rows = self._fetch(
            f"""
            SELECT t.table_schema, t.table_name,
                   COALESCE(c.reltuples, 0)::bigint, obj_description(c.oid)
            FROM information_schema.tables t
            LEFT JOIN pg_namespace n ON n.nspname = t.table_schema
            LEFT JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
            WHERE t.table_type = 'BASE TABLE' AND {where}
            ORDER BY t.table_schema, t.table_name
            """,
            params,
        )
        columns = self._load_columns(*self._schema_filter("c"))
        keys = self._load_keys(*self._schema_filter("tc"))

        tables = []
        for schema, name, row_count, description in table_rows:
            cols = self.build_columns(
                columns.get((schema, name), []), keys.get((schema, name), {})
            )
            tables.append(
                TableInfo(
                    name=name,
                    schema=schema,
                    columns=cols,
                    row_count=max(int(row_count or 0), 0),
                    column_count=len(cols),
                    description=description,
                )
            )
        logger.info(f"PostgreSQL: {len(tables)} tablas en {len(schema_rows)} schemas")
        return DatabaseSchema(schemas=[r[0] for r in schema_rows], tables=tables)

    def get_table_schema(self, qualified_name: str) -> TableInfo:
        schema, table = self.parse_table_name(qualified_name)
        params = [schema, table]

        columns = self._load_columns(
            "c.table_schema = %s AND c.table_name = %s", params
        ).get((schema, table))
        if not columns:
            raise NotFoundError(
                f"Tabla {schema}.{table} no encontrada", resource="table"
            )

        keys = self._load_keys("tc.table_schema = %s AND tc.table_name = %s", params)
        cols = self.build_columns(columns, keys.get((schema, table), {}))

        _, meta = self._fetch(
            """
            SELECT obj_description(c.oid), COALESCE(c.reltuples, 0)::bigint
            FROM pg_class c JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = %s AND c.relname = %s
            """,
            params,
        )
        _, constraints = self._fetch(
            """
            SELECT constraint_name, constraint_type
            FROM information_schema.table_constraints
            WHERE table_schema = %s AND table_name = %s
            ORDER BY constraint_name
            """,
            params,
        )
        _, indexes = self._fetch(
            "SELECT indexname FROM pg_indexes WHERE schemaname = %s AND tablename = %s "
            "ORDER BY indexname",
            params,
        )

        description: Optional[str] = meta[0][0] if meta else None
        row_count = max(int(meta[0][1] or 0), 0) if meta else None
        return TableInfo(
            name=table,
            schema=schema,
            columns=cols,
            row_count=row_count,
            column_count=len(cols),
            description=description,
            constraints=[f"{name} ({ctype})" for name, ctype in constraints],
            indexes=[r[0] for r in indexes],
        )

    def _server_metadata(self) -> Dict[str, Any]:
        _, rows = self._fetch(
            "SELECT version(), pg_size_pretty(pg_database_size(current_database()))"
        )
        where, params = self._schema_filter("t")
        _, count = self._fetch(
            f"SELECT COUNT(*) FROM information_schema.tables t "
            f"WHERE t.table_type = 'BASE TABLE' AND {where}",
            params,
        )
        _, schemas = self._fetch(
            "SELECT schema_name FROM information_schema.schemata "
            "WHERE schema_name NOT IN %s AND schema_name NOT LIKE 'pg\\_%%' "
            "ORDER BY schema_name",
            [SYSTEM_SCHEMAS],
        )
        version, size = rows[0]
        return {
            "server_version": version,
            "database_size": size,
            "table_count": int(count[0][0]),
            "schemas": [r[0] for r in schemas],
        }
