# Motor MySQL / MariaDB (pymysql)

import logging
import re
from typing import Any, Dict, List, Optional

import pymysql
from pymysql.constants import FIELD_TYPE

from adapters.outbound.database.base import BaseEngine
from core.domain.errors import ConfigError, NotFoundError
from core.domain.schema import DatabaseSchema, TableInfo

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "mysql", "performance_schema", "sys")

MYSQL_TYPE_NAMES = {
    FIELD_TYPE.TINY: "tinyint",
    FIELD_TYPE.SHORT: "smallint",
    FIELD_TYPE.LONG: "integer",
    FIELD_TYPE.LONGLONG: "bigint",
    FIELD_TYPE.INT24: "mediumint",
    FIELD_TYPE.FLOAT: "float",
    FIELD_TYPE.DOUBLE: "double",
    FIELD_TYPE.DECIMAL: "decimal",
    FIELD_TYPE.NEWDECIMAL: "decimal",
    FIELD_TYPE.DATE: "date",
    FIELD_TYPE.DATETIME: "datetime",
    FIELD_TYPE.TIMESTAMP: "timestamp",
    FIELD_TYPE.TIME: "time",
    FIELD_TYPE.YEAR: "year",
    FIELD_TYPE.VARCHAR: "varchar",
    FIELD_TYPE.VAR_STRING: "varchar",
    FIELD_TYPE.STRING: "char",
    FIELD_TYPE.BLOB: "text",
    FIELD_TYPE.JSON: "json",
}

_URL_PATTERN = re.compile(
    r"^(?:mysql|mariadb)(?:\+pymysql)?://([^:]+):([^@]*)@([^:/]+)(?::(\d+))?/([^?]+)"
)


class MySQLEngine(BaseEngine):
    backend = "mysql"
    default_schema = None
    system_schemas = SYSTEM_SCHEMAS

    def _connection_params(self) -> Dict[str, Any]:
        c = self.config
        if c.connection_string:
            match = _URL_PATTERN.match(c.connection_string)
            if not match:
                raise ConfigError("Connection string de MySQL inválido")
            user, password, host, port, database = match.groups()
            return {
                "host": host,
                "port": int(port or 3306),
                "user": user,
                "password": password,
                "database": database,
            }
        return {
            "host": c.host,
            "port": c.port or 3306,
            "user": c.username,
            "password": c.password or "",
            "database": c.database,
        }

    def _open_connection(self):
        params = self._connection_params()
        conn = pymysql.connect(
            charset="utf8mb4",
            autocommit=True,
            connect_timeout=self.connect_timeout,
            read_timeout=self.statement_timeout,
            ssl={"ssl": {}} if self.config.ssl else None,
            **params,
        )
        with conn.cursor() as cursor:
            cursor.execute("SET SESSION TRANSACTION READ ONLY")
        return conn

    def describe(self) -> str:
        c = self.config
        return f"mysql://{c.username or ''}@{c.host or ''}:{c.port or 3306}/{c.database}"

    def quote_identifier(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def parse_table_name(self, qualified_name: str):
        schema, table = super().parse_table_name(qualified_name)
        # En MySQL schema == base de datos
        return schema or self._connection_params()["database"], table

    def _random_sample_sql(self, table_ref: str, limit: int) -> str:
        return f"SELECT * FROM {table_ref} ORDER BY RAND() LIMIT {int(limit)}"

    def _field_type(self, description, sample: Any) -> str:
        type_code = description[1] if len(description) > 1 else None
        if type_code in MYSQL_TYPE_NAMES:
            return MYSQL_TYPE_NAMES[type_code]
        return super()._field_type(description, sample)

    def _load_columns(self, where: str, params: List) -> Dict[tuple, List[Dict]]:
        columns: Dict[tuple, List[Dict]] = {}
        _, rows = self._fetch(
            f"""
            SELECT c.TABLE_SCHEMA, c.TABLE_NAME, c.COLUMN_NAME, c.COLUMN_TYPE,
                   c.IS_NULLABLE, c.COLUMN_DEFAULT, c.COLUMN_COMMENT
            FROM information_schema.COLUMNS c
            JOIN information_schema.TABLES t
              ON t.TABLE_SCHEMA = c.TABLE_SCHEMA AND t.TABLE_NAME = c.TABLE_NAME
            WHERE t.TABLE_TYPE = 'BASE TABLE' AND {where}
            ORDER BY c.TABLE_SCHEMA, c.TABLE_NAME, c.ORDINAL_POSITION
            """,
            params,
        )
        for schema, table, name, column_type, nullable, default, comment in rows:
            columns.setdefault((schema, table), []).append(
                {
                    "name": name,
                    "type": column_type,
                    "nullable": nullable == "YES",
                    "default": default,
                    "description": comment or None,
                }
            )
        return columns

    def _load_keys(self, where: str, params: List) -> Dict[tuple, Dict[str, Dict]]:
        keys: Dict[tuple, Dict[str, Dict]] = {}
        _, rows = self._fetch(
            f"""
            SELECT k.TABLE_SCHEMA, k.TABLE_NAME, k.COLUMN_NAME, k.CONSTRAINT_NAME,
                   k.REFERENCED_TABLE_NAME, k.REFERENCED_COLUMN_NAME
            FROM information_schema.KEY_COLUMN_USAGE k
            WHERE {where}
            """,
            params,
        )
        for schema, table, column, constraint, ref_table, ref_column in rows:
            entry = keys.setdefault((schema, table), {}).setdefault(column, {})
            if constraint == "PRIMARY":
                entry["pk"] = True
            if ref_table:
                entry["fk"] = (ref_table, ref_column)
        return keys

    def _system_filter(self, alias: str):
        placeholders = ", ".join(["%s"] * len(SYSTEM_SCHEMAS))
        return f"{alias}.TABLE_SCHEMA NOT IN ({placeholders})", list(SYSTEM_SCHEMAS)

    def get_schema(self) -> DatabaseSchema:
        where, params = self._system_filter("t")
        _, table_rows = self._fetch(
            f"""
            SELECT t.TABLE_SCHEMA, t.TABLE_NAME, t.TABLE_ROWS, t.TABLE_COMMENT
            FROM information_schema.TABLES t
            WHERE t.TABLE_TYPE = 'BASE TABLE' AND {where}
            ORDER BY t.TABLE_SCHEMA, t.TABLE_NAME
            """,
            params,
        )
        columns = self._load_columns(*self._system_filter("c"))
        keys = self._load_keys(*self._system_filter("k"))

        tables = []
        for schema, name, row_count, comment in table_rows:
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
                    description=comment or None,
                )
            )
        schemas = sorted({t.schema for t in tables})
        logger.info(f"MySQL: {len(tables)} tablas en {len(schemas)} schemas")
        return DatabaseSchema(schemas=schemas, tables=tables)

    def get_table_schema(self, qualified_name: str) -> TableInfo:
        schema, table = self.parse_table_name(qualified_name)
        params = [schema, table]

        columns = self._load_columns(
            "c.TABLE_SCHEMA = %s AND c.TABLE_NAME = %s", params
        ).get((schema, table))
        if not columns:
            raise NotFoundError(
                f"Tabla {schema}.{table} no encontrada", resource="table"
            )
        keys = self._load_keys("k.TABLE_SCHEMA = %s AND k.TABLE_NAME = %s", params)
        cols = self.build_columns(columns, keys.get((schema, table), {}))

        _, meta = self._fetch(
            "SELECT TABLE_COMMENT, TABLE_ROWS FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s",
            params,
        )
        _, constraints = self._fetch(
            "SELECT CONSTRAINT_NAME, CONSTRAINT_TYPE FROM information_schema.TABLE_CONSTRAINTS "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s ORDER BY CONSTRAINT_NAME",
            params,
        )
        _, indexes = self._fetch(
            "SELECT DISTINCT INDEX_NAME FROM information_schema.STATISTICS "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s ORDER BY INDEX_NAME",
            params,
        )

        description: Optional[str] = (meta[0][0] or None) if meta else None
        return TableInfo(
            name=table,
            schema=schema,
            columns=cols,
            row_count=int(meta[0][1]) if meta and meta[0][1] is not None else None,
            column_count=len(cols),
            description=description,
            constraints=[f"{name} ({ctype})" for name, ctype in constraints],
            indexes=[r[0] for r in indexes],
        )

    def _server_metadata(self) -> Dict[str, Any]:
        _, version = self._fetch("SELECT VERSION(), DATABASE()")
        _, size = self._fetch(
            "SELECT COALESCE(SUM(DATA_LENGTH + INDEX_LENGTH), 0) "
            "FROM information_schema.TABLES WHERE TABLE_SCHEMA = DATABASE()"
        )
        where, params = self._system_filter("t")
        _, tables = self._fetch(
            f"SELECT t.TABLE_SCHEMA, COUNT(*) FROM information_schema.TABLES t "
            f"WHERE t.TABLE_TYPE = 'BASE TABLE' AND {where} GROUP BY t.TABLE_SCHEMA",
            params,
        )
        size_mb = float(size[0][0] or 0) / (1024 * 1024)
        return {
            "server_version": version[0][0],
            "database_size": f"{size_mb:.2f} MB",
            "table_count": sum(int(r[1]) for r in tables),
            "schemas": sorted(r[0] for r in tables),
        }
