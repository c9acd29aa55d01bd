# Generador SQL: convierte queries en lenguaje natural a SQL

import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage

from core.domain.errors import GenerationError
from core.ports.llm_port import LLMPort

logger = logging.getLogger(__name__)

DIALECTS = {
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
    "sqlserver": "SQL Server (T-SQL)",
    "sqlite": "SQLite",
}

# Reglas propias de cada motor
DIALECT_RULES = {
    "postgresql": "- Fechas: DATE_TRUNC, NOW(), INTERVAL, TO_CHAR\n- Límite: LIMIT n",
    "mysql": "- Fechas: DATE_FORMAT, NOW(), DATE_SUB\n- Identificadores con `backticks` si hace falta\n- Límite: LIMIT n",
    "sqlserver": "- Fechas: DATEADD, GETDATE(), FORMAT\n- Identificadores con [corchetes] si hace falta\n- Límite: SELECT TOP n (nunca LIMIT)",
    "sqlite": "- Fechas: date(), datetime(), strftime()\n- Límite: LIMIT n",
}

SQL_SYSTEM = """Eres un experto generador de SQL para {dialect}. A partir de una pregunta en lenguaje natural y el schema (con filas de muestra), genera UNA consulta precisa.

SCHEMA:
{schema}

REQUISITOS CRÍTICOS:
1. SOLO sintaxis válida de {dialect}
2. Una sola sentencia, que empiece con SELECT (o WITH para CTEs)
3. NUNCA INSERT, UPDATE, DELETE, DROP, ALTER, CREATE ni funciones de sistema
4. Usa los nombres de tablas y columnas exactamente como aparecen en el schema
5. Sin markdown, sin ``` y sin corchetes envolviendo la consulta

REGLAS:
1. JOINs explícitos cuando uses varias tablas, con alias
2. WHERE para filtrar, COUNT/SUM/AVG para resúmenes
3. Maneja NULL con COALESCE o IS NULL
4. Evita SELECT * cuando sea posible
5. "últimos"/"recientes": ORDER BY fecha DESC; "top": ORDER BY DESC con límite
{dialect_rules}

FORMATO DE RESPUESTA:
<la consulta SQL>
EXPLANATION: <una frase explicando qué devuelve la consulta>"""

SQL_USER = "Genera la consulta SQL para: \"{query}\""

SQL_CURRENT = """

SQL ACTUAL DEL CHART (modifícalo según la pregunta):
{current_sql}"""

SQL_RETRY = """

ERROR PREVIO A CORREGIR:
El SQL anterior:
{previous_sql}
falló con: {error}
{guidance}
Genera una consulta corregida que resuelva este error específico."""

_FENCE = re.compile(r"```(?:sql)?\s*", re.IGNORECASE)
_EXPLANATION = re.compile(r"^\s*EXPLANATION:\s*(.*)$", re.IGNORECASE | re.MULTILINE | re.DOTALL)


@dataclass
class GeneratedSQL:
    sql: str
    explanation: Optional[str] = None


def _content_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # Algunos proveedores devuelven bloques [{"type": "text", "text": ...}]
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in content
        )
    return content if isinstance(content, str) else str(content or "")


def clean_sql(raw: str) -> GeneratedSQL:
    """
    Limpia la respuesta del LLM: fences markdown, prefijo 'sql', corchetes
    envolventes, espacios repetidos y punto y coma final.

    Qué tipo de sentencia es lo decide el guard, no esta función.

    Raises:
        GenerationError: la respuesta queda vacía
    """
    text = _FENCE.sub("", raw or "").strip()

    explanation = None
    match = _EXPLANATION.search(text)
    if match:
        explanation = " ".join(match.group(1).split()) or None
        text = text[: match.start()].strip()

    text = re.sub(r"^\s*sql\s+", "", text, flags=re.IGNORECASE)
    text = re.sub(r"^\[|\]$", "", text.strip())
    text = re.sub(r"\s+", " ", text).strip()
    text = re.sub(r";+$", "", text).strip()

    if not text:
        raise GenerationError("El servicio de IA devolvió una respuesta vacía")

    return GeneratedSQL(sql=text, explanation=explanation)


# Genera SQL a partir de lenguaje natural usando LLM
class SQLGenerator:
    def build_messages(
        self,
        query: str,
        schema_context: str,
        dialect: str = "postgresql",
        previous_sql: Optional[str] = None,
        previous_error: Optional[str] = None,
        recovery_prompt: Optional[str] = None,
        current_sql: Optional[str] = None,
    ) -> List[Any]:
        system = SQL_SYSTEM.format(
            dialect=DIALECTS.get(dialect, dialect),
            schema=schema_context,
            dialect_rules=DIALECT_RULES.get(dialect, ""),
        )
        if current_sql:
            system += SQL_CURRENT.format(current_sql=current_sql)
        if previous_error:
            system += SQL_RETRY.format(
                previous_sql=previous_sql or "(sin SQL)",
                error=previous_error[:500],
                guidance=f"\n{recovery_prompt}\n" if recovery_prompt else "",
            )
        return [SystemMessage(content=system), HumanMessage(content=SQL_USER.format(query=query))]

    def generate(
        self,
        llm: LLMPort,
        query: str,
        schema_context: str,
        dialect: str = "postgresql",
        previous_sql: Optional[str] = None,
        previous_error: Optional[str] = None,
        recovery_prompt: Optional[str] = None,
        current_sql: Optional[str] = None,
    ) -> GeneratedSQL:
        """
        Una llamada al servicio de completado, sin reintentos internos.

        Raises:
            GenerationError: el proveedor falló o la respuesta quedó vacía
        """
        messages = self.build_messages(
            query,
            schema_context,
            dialect,
            previous_sql,
            previous_error,
            recovery_prompt,
            current_sql,
        )
        provider = getattr(llm, "provider", None)
        try:
            response = llm.invoke(messages)
        except Exception as e:
            logger.error(f"LLM falló ({provider}): {e}")
            raise GenerationError(f"El servicio de IA falló: {e}", provider=provider) from e

        raw = _content_text(response)
        try:
            generated = clean_sql(raw)
        except GenerationError as e:
            raise GenerationError(e.message, provider=provider, raw=raw) from e
        logger.info(f"SQL generado: {generated.sql[:120]}")
        return generated


def estimate_query_complexity(sql: str) -> Dict[str, Any]:
    """Puntaje por JOINs, subconsultas, agregaciones y LIKE"""
    factors = []
    score = 0

    joins = len(re.findall(r"\bJOIN\b", sql, re.IGNORECASE))
    if joins:
        factors.append(f"{joins} JOIN(s)")
        score += joins * 2

    subqueries = len(re.findall(r"\bSELECT\b", sql, re.IGNORECASE)) - 1
    if subqueries > 0:
        factors.append(f"{subqueries} subquery(ies)")
        score += subqueries * 3

    aggregations = len(
        re.findall(r"\b(COUNT|SUM|AVG|MIN|MAX|GROUP BY)\b", sql, re.IGNORECASE)
    )
    if aggregations:
        factors.append(f"{aggregations} aggregation(s)")
        score += aggregations

    likes = len(re.findall(r"\bLIKE\b", sql, re.IGNORECASE))
    if likes:
        factors.append(f"{likes} LIKE pattern(s)")
        score += likes

    if score <= 2:
        complexity = "low"
    elif score <= 6:
        complexity = "medium"
    else:
        complexity = "high"
    return {"complexity": complexity, "factors": factors, "score": score}


_generator = None


def get_sql_generator() -> SQLGenerator:
    global _generator
    if _generator is None:
        _generator = SQLGenerator()
    return _generator
