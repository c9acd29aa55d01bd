# Clase base para motores de base de datos

import logging
import time
from abc import abstractmethod
from contextlib import contextmanager
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from core.domain.datasource import DatasourceConfig
from core.domain.errors import (
    ChartSQLError,
    ConnectionError,
    ExecutionError,
    UnsafeQueryError,
)
from core.domain.query import FieldInfo, QueryResult, QueryValidation
from core.domain.schema import ColumnInfo, ConnectionTestResult
from core.ports.database_port import DatabasePort
from core.security.sql_guard import QueryGuard, get_query_guard

logger = logging.getLogger(__name__)

PY_TYPE_NAMES = {
    bool: "boolean",
    int: "integer",
    float: "double precision",
    Decimal: "numeric",
    str: "text",
    bytes: "bytea",
    datetime: "timestamp",
    date: "date",
    dt_time: "time",
}


class BaseEngine(DatabasePort):
    """
    Funcionalidad común de todos los motores.
    Las subclases implementan la apertura de conexión y la introspección;
    aquí viven el ciclo de vida, la ejecución acotada y el formateo.
    """

    backend = ""
    default_schema: Optional[str] = "public"
    limit_style = "limit"
    system_schemas: Tuple[str, ...] = ()

    def __init__(
        self,
        config: DatasourceConfig,
        row_limit: Optional[int] = None,
        statement_timeout: Optional[int] = None,
        connect_timeout: Optional[int] = None,
        guard: Optional[QueryGuard] = None,
    ):
        from config.settings import settings

        self.config = config
        self.guard = guard or get_query_guard()
        self.row_limit = row_limit or settings.query.row_limit
        self.statement_timeout = (
            statement_timeout or settings.query.statement_timeout_seconds
        )
        self.connect_timeout = (
            connect_timeout or settings.query.connect_timeout_seconds
        )
        self._conn = None

    # Ciclo de vida

    @abstractmethod
    def _open_connection(self):
        """Abre la conexión nativa del driver"""
        pass

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = self._open_connection()
        except ChartSQLError:
            raise
        except Exception as e:
            self._conn = None
            logger.error(f"Conexión fallida a {self.describe()}: {e}")
            raise ConnectionError(
                f"No se pudo conectar a {self.backend}: {e}", backend=self.backend
            ) from e
        logger.info(f"Conectado a {self.describe()}")

    def disconnect(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        except Exception as e:
            logger.warning(f"Error cerrando conexión {self.backend}: {e}")
        finally:
            self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    def get_config(self) -> Dict[str, Any]:
        """Configuración sin datos sensibles"""
        return self.config.safe_dict()

    def describe(self) -> str:
        """Descriptor de conexión para logs (sin password)"""
        c = self.config
        return f"{self.backend}://{c.username or ''}@{c.host or ''}:{c.port or ''}/{c.database}"

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        self.connect()
        cursor = self._conn.cursor()
        try:
            yield cursor
        finally:
            try:
                cursor.close()
            except Exception:
                # Un cursor ya invalidado por el driver no tiene nada que liberar
                pass

    # Utilidades

    def parse_table_name(self, qualified_name: str) -> Tuple[Optional[str], str]:
        """schema.tabla -> (schema, tabla); sin schema usa el default del motor"""
        parts = [p.strip().strip('"`[]') for p in qualified_name.split(".")]
        if len(parts) >= 2:
            return parts[-2], parts[-1]
        return self.default_schema, parts[0]

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def qualify(self, schema: Optional[str], table: str) -> str:
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    def _fetch(
        self, sql: str, params: Optional[Sequence] = None
    ) -> Tuple[List[str], List[tuple]]:
        with self._cursor() as cursor:
            if params:
                cursor.execute(sql, params)
            else:
                cursor.execute(sql)
            if not cursor.description:
                return [], []
            columns = [d[0] for d in cursor.description]
            return columns, [tuple(r) for r in cursor.fetchall()]

    def _fetch_dicts(
        self, sql: str, params: Optional[Sequence] = None
    ) -> List[Dict[str, Any]]:
        columns, rows = self._fetch(sql, params)
        return [dict(zip(columns, row)) for row in rows]

    @staticmethod
    def format_data_type(
        data_type: str,
        max_length: Optional[int] = None,
        precision: Optional[int] = None,
        scale: Optional[int] = None,
    ) -> str:
        """Tipo con longitud/precisión: varchar(100), numeric(10,2)"""
        base = (data_type or "").lower()
        if max_length and max_length > 0 and base in (
            "character varying",
            "varchar",
            "char",
            "character",
            "nvarchar",
            "nchar",
        ):
            return f"{data_type}({max_length})"
        if precision and base in ("numeric", "decimal"):
            return f"{data_type}({precision},{scale})" if scale else f"{data_type}({precision})"
        return data_type

    @staticmethod
    def build_columns(
        rows: List[Dict[str, Any]], keys: Dict[str, Dict[str, Any]]
    ) -> List[ColumnInfo]:
        """
        Arma ColumnInfo desde filas normalizadas.

        Args:
            rows: dicts con name, type, nullable, default, description
            keys: {columna: {"pk": bool, "fk": (tabla, columna) | None}}
        """
        columns = []
        for row in rows:
            key = keys.get(row["name"], {})
            fk = key.get("fk")
            columns.append(
                ColumnInfo(
                    name=row["name"],
                    type=row["type"],
                    nullable=row.get("nullable", True),
                    default_value=row.get("default"),
                    is_primary_key=bool(key.get("pk")),
                    is_foreign_key=fk is not None,
                    referenced_table=fk[0] if fk else None,
                    referenced_column=fk[1] if fk else None,
                    description=row.get("description"),
                )
            )
        return columns

    def _field_type(self, description: Sequence, sample: Any) -> str:
        """Tipo de una columna del resultado; por defecto se infiere del valor"""
        if sample is None:
            return "unknown"
        return PY_TYPE_NAMES.get(type(sample), type(sample).__name__)

    def format_query_result(
        self, columns: List[str], rows: List[tuple], description: Sequence, elapsed_ms: int
    ) -> QueryResult:
        dict_rows = [dict(zip(columns, row)) for row in rows]
        fields = []
        for index, name in enumerate(columns):
            sample = next(
                (row[index] for row in rows if row[index] is not None), None
            )
            fields.append(
                FieldInfo(
                    name=name,
                    type=self._field_type(description[index], sample),
                    nullable=True,
                )
            )
        return QueryResult(rows=dict_rows, fields=fields, execution_time_ms=elapsed_ms)

    # Ejecución

    def _prepare_cursor(self, cursor) -> None:
        """Hook para timeouts por sentencia"""
        pass

    def _explain_sql(self, sql: str) -> str:
        return f"EXPLAIN {sql}"

    def _on_error(self) -> None:
        """Hook para limpiar la conexión tras un error (rollback)"""
        pass

    def execute_query(self, sql: str) -> QueryResult:
        clean = self.guard.sanitize(sql)
        safe_sql = self.guard.apply_safeguards(clean, self.row_limit, self.limit_style)

        self.connect()
        start = time.time()
        try:
            with self._cursor() as cursor:
                self._prepare_cursor(cursor)
                cursor.execute(safe_sql)
                description = cursor.description or []
                columns = [d[0] for d in description]
                rows = [tuple(r) for r in cursor.fetchall()] if description else []
        except ChartSQLError:
            raise
        except Exception as e:
            self._on_error()
            logger.error(f"{self.backend} error: {e}")
            raise ExecutionError(str(e).strip(), sql=safe_sql) from e

        elapsed_ms = int((time.time() - start) * 1000)
        logger.debug(f"{self.backend}: {len(rows)} filas en {elapsed_ms}ms")
        return self.format_query_result(columns, rows, description, elapsed_ms)

    def validate_query(self, sql: str) -> QueryValidation:
        try:
            clean = self.guard.sanitize(sql)
        except UnsafeQueryError as e:
            return QueryValidation(False, e.message)

        self.connect()
        try:
            with self._cursor() as cursor:
                self._prepare_cursor(cursor)
                self._run_validation(cursor, clean)
            return QueryValidation(True)
        except Exception as e:
            self._on_error()
            return QueryValidation(False, str(e).strip())

    def _run_validation(self, cursor, sql: str) -> None:
        cursor.execute(self._explain_sql(sql))
        if cursor.description:
            cursor.fetchall()

    # Muestras

    def _random_sample_sql(self, table_ref: str, limit: int) -> str:
        return f"SELECT * FROM {table_ref} ORDER BY RANDOM() LIMIT {int(limit)}"

    def _sequential_sample_sql(self, table_ref: str, limit: int) -> str:
        return f"SELECT * FROM {table_ref} LIMIT {int(limit)}"

    def get_sample_data(
        self, qualified_name: str, limit: int = 5
    ) -> List[Dict[str, Any]]:
        schema, table = self.parse_table_name(qualified_name)
        table_ref = self.qualify(schema, table)
        try:
            rows = self._fetch_dicts(self._random_sample_sql(table_ref, limit))
            logger.debug(f"{self.backend}: {len(rows)} filas de muestra (aleatorio) de {table_ref}")
            return rows
        except Exception as e:
            self._on_error()
            logger.warning(f"Muestreo aleatorio falló para {table_ref}: {e}")

        try:
            return self._fetch_dicts(self._sequential_sample_sql(table_ref, limit))
        except Exception as e:
            self._on_error()
            raise ExecutionError(
                f"No se pudo obtener muestra de {qualified_name}: {e}"
            ) from e

    # Diagnóstico

    @abstractmethod
    def _server_metadata(self) -> Dict[str, Any]:
        """Versión, tamaño, schemas y cantidad de tablas"""
        pass

    def test_connection(self) -> ConnectionTestResult:
        start = time.time()
        was_connected = self.is_connected
        try:
            self.connect()
            metadata = self._server_metadata()
            return ConnectionTestResult(
                success=True,
                message="Connection successful",
                response_time_ms=int((time.time() - start) * 1000),
                metadata=metadata,
            )
        except Exception as e:
            message = e.message if isinstance(e, ChartSQLError) else str(e)
            return ConnectionTestResult(
                success=False,
                error=message,
                response_time_ms=int((time.time() - start) * 1000),
            )
        finally:
            if not was_connected:
                self.disconnect()
