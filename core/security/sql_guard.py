# SQL guard: lista de denegación + acotado automático de filas
#
# No es un parser SQL. Es una barrera conservadora: una palabra prohibida
# dentro de un literal de texto también se rechaza (falso positivo aceptado).

import re
import logging
from typing import List, Optional, Tuple

from core.domain.errors import UnsafeQueryError
from core.domain.query import QueryValidation

logger = logging.getLogger(__name__)

DEFAULT_ROW_LIMIT = 1000

ALLOWED_PREFIXES = ("SELECT", "WITH")

# (nombre reportado, patrón). El orden importa: el primero que matchea se reporta
DANGEROUS_PATTERNS: List[Tuple[str, str]] = [
    ("INTO OUTFILE", r"\bINTO\s+OUTFILE\b"),
    ("INTO DUMPFILE", r"\bINTO\s+DUMPFILE\b"),
    ("LOAD_FILE", r"\bLOAD_FILE\b"),
    ("LOAD DATA", r"\bLOAD\s+DATA\b"),
    ("DROP", r"\bDROP\b"),
    ("DELETE", r"\bDELETE\b"),
    ("UPDATE", r"\bUPDATE\b"),
    ("INSERT", r"\bINSERT\b"),
    ("ALTER", r"\bALTER\b"),
    ("CREATE", r"\bCREATE\b"),
    ("TRUNCATE", r"\bTRUNCATE\b"),
    ("REPLACE INTO", r"\bREPLACE\s+INTO\b"),
    ("MERGE", r"\bMERGE\s+INTO\b"),
    ("SELECT INTO", r"\bINTO\b"),
    ("GRANT", r"\bGRANT\b"),
    ("REVOKE", r"\bREVOKE\b"),
    ("EXECUTE", r"\bEXEC(UTE)?\b"),
    ("CALL", r"\bCALL\b"),
    ("COPY", r"\bCOPY\b"),
    ("VACUUM", r"\bVACUUM\b"),
    ("LOCK", r"\bLOCK\s+TABLES?\b"),
    ("ATTACH", r"\bATTACH\b"),
    ("DETACH", r"\bDETACH\b"),
    ("PRAGMA", r"\bPRAGMA\b"),
]

DANGEROUS_FUNCTIONS: List[Tuple[str, str]] = [
    ("pg_read_file", r"\bpg_read_file\b"),
    ("pg_read_binary_file", r"\bpg_read_binary_file\b"),
    ("pg_write_file", r"\bpg_write_file\b"),
    ("pg_ls_dir", r"\bpg_ls_dir\b"),
    ("lo_import", r"\blo_import\b"),
    ("lo_export", r"\blo_export\b"),
    ("dblink", r"\bdblink\w*\b"),
    ("pg_sleep", r"\bpg_sleep\b"),
    ("pg_terminate_backend", r"\bpg_terminate_backend\b"),
    ("pg_cancel_backend", r"\bpg_cancel_backend\b"),
    ("set_config", r"\bset_config\b"),
    ("xp_cmdshell", r"\bxp_cmdshell\b"),
    ("OPENROWSET", r"\bOPENROWSET\b"),
    ("BENCHMARK", r"\bBENCHMARK\s*\("),
    ("SLEEP", r"\bSLEEP\s*\("),
]

_LIMIT_AT_END = re.compile(
    r"\bLIMIT\s+(?:\d+\s*,\s*)?(\d+|ALL)(\s+OFFSET\s+\d+)?\s*$", re.IGNORECASE
)
_FETCH_AT_END = re.compile(
    r"\bFETCH\s+(?:FIRST|NEXT)\s+\d+\s+ROWS?\s+ONLY\s*$", re.IGNORECASE
)
_TOP_CLAUSE = re.compile(r"^SELECT\s+(?:DISTINCT\s+)?TOP\s*\(?\s*(\d+)", re.IGNORECASE)


def strip_comments(sql: str, replacement: str = " ") -> str:
    """Elimina comentarios de línea y de bloque fuera de literales de texto"""
    parts = []
    i = 0
    in_string = False
    while i < len(sql):
        char = sql[i]
        if in_string:
            # '' (comilla escapada) cierra y reabre el literal
            in_string = char != "'"
        elif char == "'":
            in_string = True
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            parts.append(replacement)
            if end == -1:
                break
            i = end
            continue
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            parts.append(replacement)
            if end == -1:
                break
            i = end + 2
            continue
        parts.append(char)
        i += 1
    return "".join(parts)


def _normalize(sql: str) -> str:
    sql = strip_comments(sql).strip()
    while sql.endswith(";"):
        sql = sql[:-1].rstrip()
    return sql


def _find_top_level_select(sql: str) -> Optional[int]:
    """Posición del SELECT exterior (fuera de paréntesis y CTEs)"""
    depth = 0
    in_string = False
    for i, char in enumerate(sql):
        if char == "'":
            in_string = not in_string
        elif in_string:
            continue
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and sql[i : i + 6].upper() == "SELECT":
            before = sql[i - 1] if i > 0 else " "
            after = sql[i + 6] if i + 6 < len(sql) else " "
            if not (before.isalnum() or before == "_") and not (
                after.isalnum() or after == "_"
            ):
                return i
    return None


# Valida que el SQL sea de solo lectura
class QueryGuard:
    def __init__(self, row_limit: int = DEFAULT_ROW_LIMIT):
        self.row_limit = row_limit
        self.dangerous_patterns = [
            (name, re.compile(p, re.IGNORECASE))
            for name, p in DANGEROUS_PATTERNS + DANGEROUS_FUNCTIONS
        ]

    def sanitize(self, sql: str) -> str:
        """
        Rechaza cualquier sentencia con operaciones destructivas o con efectos.

        Se inspecciona el texto con y sin comentarios para que ni mayúsculas
        ni comentarios incrustados (DR/**/OP, DROP/*x*/TABLE) escondan nada.

        Returns:
            SQL sin comentarios finales ni punto y coma de cierre

        Raises:
            UnsafeQueryError: nombrando el patrón detectado
        """
        if not sql or not sql.strip():
            raise UnsafeQueryError("EMPTY", "SQL vacío")

        variants = (sql, strip_comments(sql, " "), strip_comments(sql, ""))
        for name, pattern in self.dangerous_patterns:
            if any(pattern.search(v) for v in variants):
                logger.warning(f"Operación peligrosa detectada: {name}")
                raise UnsafeQueryError(name)

        clean = _normalize(sql)
        if not clean:
            raise UnsafeQueryError("EMPTY", "SQL vacío")

        first_word = re.split(r"\s+", clean.lstrip("("), 1)[0].upper()
        if first_word not in ALLOWED_PREFIXES:
            raise UnsafeQueryError(
                "NON_SELECT", "Solo se permiten consultas SELECT"
            )

        if ";" in clean:
            raise UnsafeQueryError(
                "MULTIPLE_STATEMENTS", "Múltiples statements no permitidos"
            )

        return clean

    def apply_safeguards(
        self, sql: str, row_limit: Optional[int] = None, style: str = "limit"
    ) -> str:
        """
        Acota el resultado si la sentencia no lo hace ya. Idempotente.

        Args:
            sql: SQL ya sanitizado
            row_limit: máximo de filas (por defecto el del guard)
            style: "limit" (LIMIT n al final) o "top" (SELECT TOP n, SQL Server)
        """
        limit = row_limit or self.row_limit
        safe_sql = _normalize(sql)

        if style == "top":
            return self._apply_top(safe_sql, limit)

        if _FETCH_AT_END.search(safe_sql):
            return safe_sql

        match = _LIMIT_AT_END.search(safe_sql)
        if match:
            # LIMIT ALL o un LIMIT mayor al permitido se recorta al máximo
            count = match.group(1)
            if count.upper() == "ALL" or int(count) > limit:
                start, end = match.span(1)
                safe_sql = safe_sql[:start] + str(limit) + safe_sql[end:]
            return safe_sql

        return f"{safe_sql} LIMIT {limit}"

    def _apply_top(self, sql: str, limit: int) -> str:
        if _FETCH_AT_END.search(sql):
            return sql

        position = _find_top_level_select(sql)
        if position is None:
            return sql

        head, tail = sql[:position], sql[position:]
        match = _TOP_CLAUSE.match(tail)
        if match:
            if int(match.group(1)) > limit:
                start, end = match.span(1)
                tail = tail[:start] + str(limit) + tail[end:]
            return head + tail

        distinct = re.match(r"SELECT\s+DISTINCT\s+", tail, re.IGNORECASE)
        if distinct:
            return head + f"SELECT DISTINCT TOP {limit} " + tail[distinct.end() :]
        return head + f"SELECT TOP {limit} " + tail[len("SELECT") :].lstrip()

    def validate_syntax(self, sql: str) -> QueryValidation:
        """Chequeo estructural mínimo, sin parsear"""
        clean = _normalize(sql or "")
        upper = clean.upper()

        if not upper.lstrip("(").startswith(ALLOWED_PREFIXES):
            return QueryValidation(False, "La consulta debe empezar con SELECT")

        if re.match(r"^SELECT\s*(FROM\b|$)", upper):
            return QueryValidation(False, "La consulta no selecciona columnas")

        depth = 0
        for char in re.sub(r"'[^']*'", "''", clean):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            if depth < 0:
                break
        if depth != 0:
            return QueryValidation(False, "Paréntesis desbalanceados")

        if clean.count("'") % 2 != 0:
            return QueryValidation(False, "Comillas sin cerrar")

        if "[" in clean and "]" not in clean:
            return QueryValidation(False, "Corchetes sin cerrar")

        return QueryValidation(True)


_query_guard = None


def get_query_guard() -> QueryGuard:
    global _query_guard
    if _query_guard is None:
        from config.settings import settings

        _query_guard = QueryGuard(row_limit=settings.query.row_limit)
    return _query_guard


def sanitize(sql: str) -> str:
    return get_query_guard().sanitize(sql)


def apply_safeguards(
    sql: str, row_limit: Optional[int] = None, style: str = "limit"
) -> str:
    return get_query_guard().apply_safeguards(sql, row_limit, style)


def is_safe_sql(sql: str) -> bool:
    try:
        get_query_guard().sanitize(sql)
        return True
    except UnsafeQueryError:
        return False
