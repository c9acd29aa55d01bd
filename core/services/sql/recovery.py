# Recuperación de errores SQL: clasifica el error del motor y arma la guía
# que recibe el LLM en el siguiente intento

import re
import logging
from dataclasses import dataclass
from typing import List, Optional, Pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoveryStrategy:
    pattern: Pattern
    prompt: str
    max_attempts: int
    category: str


@dataclass
class RecoveryResult:
    can_recover: bool
    recovery_prompt: Optional[str] = None
    category: Optional[str] = None
    suggestion: Optional[str] = None


@dataclass
class ParsedSQLError:
    code: str
    message: str
    hint: Optional[str] = None
    detail: Optional[str] = None
    position: Optional[int] = None


def _strategy(pattern: str, prompt: str, max_attempts: int, category: str):
    return RecoveryStrategy(re.compile(pattern, re.IGNORECASE), prompt, max_attempts, category)


# Mensajes de PostgreSQL, MySQL, SQL Server y SQLite
STRATEGIES: List[RecoveryStrategy] = [
    _strategy(
        r"column \"?([^\"\s]+)\"? does not exist|no such column: (\S+)"
        r"|unknown column '([^']+)'|invalid column name '([^']+)'",
        """La columna indicada no existe en la tabla. Por favor:
1. Revisa los nombres exactos de columnas en el schema entregado
2. Verifica que referencias la tabla correcta
3. Usa alias de tabla si hay JOINs
4. Revisa errores de tipeo en los nombres""",
        2,
        "schema",
    ),
    _strategy(
        r"relation \"?([^\"\s]+)\"? does not exist|no such table: (\S+)"
        r"|table '([^']+)' doesn't exist|invalid object name '([^']+)'",
        """La tabla indicada no existe. Por favor:
1. Usa solo las tablas del schema entregado
2. Revisa los nombres exactos (sensibles a mayúsculas)
3. Incluye el schema si hace falta (schema.tabla)
4. Verifica que los alias estén definidos antes de usarse""",
        2,
        "schema",
    ),
    _strategy(
        r"syntax error at or near \"([^\"]+)\"|near \"([^\"]+)\": syntax error"
        r"|incorrect syntax near '([^']+)'|error in your sql syntax",
        """Hay un error de sintaxis SQL. Por favor:
1. Revisa las reglas de sintaxis del motor
2. Usa correctamente keywords, operadores y puntuación
3. Verifica que los paréntesis estén balanceados
4. Revisa comas faltantes en la lista del SELECT
5. Revisa la sintaxis de los JOIN""",
        3,
        "syntax",
    ),
    _strategy(
        r"(cannot join|join condition|ambiguous column|is ambiguous)",
        """Hay un problema con el JOIN. Por favor:
1. Une columnas de tipos compatibles
2. Usa alias de tabla para evitar columnas ambiguas
3. Verifica que exista la relación entre las tablas
4. Referencia columnas explícitamente (tabla.columna)""",
        2,
        "logic",
    ),
    _strategy(
        r"(aggregate function|GROUP BY|must appear in)",
        """Hay un problema con funciones de agregación. Por favor:
1. Incluye todas las columnas no agregadas en el GROUP BY
2. Usa COUNT, SUM, AVG correctamente
3. No mezcles columnas agregadas y no agregadas sin GROUP BY
4. Usa HAVING para filtrar agregados y WHERE para filas""",
        2,
        "logic",
    ),
    _strategy(
        r"(operator does not exist|cannot be applied|invalid input syntax|conversion failed)",
        """Hay un error de tipos u operadores. Por favor:
1. Usa operadores acordes al tipo de dato
2. Castea cuando haga falta (CAST(x AS integer))
3. Revisa el formato de fechas
4. Usa LIKE para patrones de texto e = para coincidencia exacta""",
        2,
        "logic",
    ),
    _strategy(
        r"(permission denied|access denied|not allowed)",
        """Hay un problema de permisos. Por favor:
1. Usa solo SELECT
2. Accede solo a las tablas del schema entregado
3. Evita tablas de sistema o schemas restringidos""",
        1,
        "permission",
    ),
    _strategy(
        r"(timeout|timed out|query cancelled|canceling statement|interrupted)",
        """La consulta excedió el tiempo límite. Por favor:
1. Simplifica la consulta reduciendo JOINs
2. Agrega filtros WHERE
3. Usa LIMIT para acotar el resultado
4. Filtra por columnas indexadas""",
        2,
        "logic",
    ),
]

NON_RECOVERABLE = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"permission denied",
        r"access denied",
        r"authentication failed",
        r"connection refused",
        r"database .* does not exist",
    )
]


# Analiza errores de ejecución y propone cómo corregirlos
class SQLErrorRecovery:
    def analyze(self, error: str, attempt: int) -> RecoveryResult:
        """
        Estrategia de recuperación para el error.

        Args:
            error: texto nativo del motor
            attempt: intentos fallidos previos con este error (desde 0)
        """
        for strategy in STRATEGIES:
            match = strategy.pattern.search(error or "")
            if match and attempt < strategy.max_attempts:
                return RecoveryResult(
                    can_recover=True,
                    recovery_prompt=strategy.prompt,
                    category=strategy.category,
                    suggestion=self._suggestion(error, match),
                )

        return RecoveryResult(
            can_recover=False,
            suggestion="No se pudo recuperar automáticamente. Revisa la consulta manualmente.",
        )

    def _suggestion(self, error: str, match) -> str:
        text = error.lower()
        name = next((g for g in match.groups() if g), "")

        if "column" in text and name:
            return f'La columna "{name}" no existe. Revisa los nombres en el schema.'
        if ("relation" in text or "table" in text or "object name" in text) and name:
            return f'La tabla "{name}" no existe. Usa solo tablas del schema.'
        if "syntax" in text:
            near = f' cerca de "{name}"' if name else ""
            return f"Error de sintaxis{near}. Revisa las reglas del motor."
        return "Revisa el mensaje de error y ajusta la consulta."

    def is_recoverable(self, error: str) -> bool:
        """False para errores que ningún SQL nuevo puede arreglar"""
        return not any(p.search(error or "") for p in NON_RECOVERABLE)

    def parse_postgres_error(self, error: str) -> ParsedSQLError:
        code = re.search(r"ERROR:\s*([A-Z0-9]{5}):", error)
        message = re.search(r"ERROR:\s*(?:[A-Z0-9]{5}:\s*)?([^\n\r]+)", error)
        hint = re.search(r"HINT:\s*([^\n\r]+)", error)
        detail = re.search(r"DETAIL:\s*([^\n\r]+)", error)
        position = re.search(r"at character (\d+)", error)
        return ParsedSQLError(
            code=code.group(1) if code else "UNKNOWN",
            message=message.group(1).strip() if message else error.strip(),
            hint=hint.group(1).strip() if hint else None,
            detail=detail.group(1).strip() if detail else None,
            position=int(position.group(1)) if position else None,
        )

    def generate_optimization_hints(self, sql: str) -> List[str]:
        hints = []
        upper = sql.upper()

        if re.search(r"SELECT\s+\*", upper):
            hints.append(
                "Selecciona solo las columnas necesarias en lugar de SELECT *."
            )
        if "LIMIT" not in upper and not re.search(r"\bTOP\b", upper):
            hints.append("Agrega LIMIT para no devolver demasiadas filas.")
        if len(re.findall(r"\bJOIN\b", upper)) > 3:
            hints.append(
                "Muchos JOINs: verifica que todos sean necesarios y que existan índices."
            )
        if re.search(r"LIKE\s+['\"]%", sql, re.IGNORECASE):
            hints.append("LIKE con % inicial es lento; considera búsqueda full-text.")
        if len(re.findall(r"\bOR\b", upper)) > 2:
            hints.append("Varios OR pueden ser lentos; considera IN() o UNION.")
        if len(re.findall(r"\bSELECT\b", upper)) - 1 > 2:
            hints.append("Varias subconsultas; considera JOINs o CTEs.")
        return hints


_recovery = None


def get_error_recovery() -> SQLErrorRecovery:
    global _recovery
    if _recovery is None:
        _recovery = SQLErrorRecovery()
    return _recovery
