# Pipeline - Orquestador de texto a SQL para charts

import time
import logging
from typing import Any, Callable, Optional

from config.settings import settings
from core.domain.cache import CacheEntry
from core.domain.datasource import DatasourceConfig
from core.domain.errors import (
    ChartSQLError,
    ConnectionError,
    ContextError,
    ExecutionError,
    GenerationError,
    UnsafeQueryError,
)
from core.domain.query import QueryResult, QueryValidation, TextToSQLRequest, TextToSQLResult
from core.ports.database_port import DatabasePort
from core.security.sql_guard import QueryGuard, get_query_guard
from core.services.cache.chart_cache import ChartCache
from core.services.schema.introspector import SchemaIntrospector, get_introspector
from core.services.sql.generator import SQLGenerator, estimate_query_complexity, get_sql_generator
from core.services.sql.recovery import SQLErrorRecovery, get_error_recovery

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


class TextToSQLPipeline:
    """
    Orquestador del flujo texto -> SQL -> datos.
    Recibe todas las dependencias por constructor (Dependency Injection).

    Flujo por petición:
    1. Cache por identidad del chart (si no se fuerza refresh)
    2. BUILD_CONTEXT - schema y muestras de las tablas seleccionadas
    3. GENERATE - SQL desde el LLM, con el error previo en reintentos
    4. SCREEN - guard de seguridad y chequeo estructural
    5. Cache por contenido
    6. EXECUTE - motor del datasource, con límite de filas
    7. Write-through al cache

    Hay exactamente max_retries + 1 generaciones como máximo. Un fallo en
    SCREEN o EXECUTE vuelve a GENERATE con el SQL y el error exactos.
    """

    def __init__(
        self,
        llm_registry,  # LLMRegistry
        engine_factory: Callable[[DatasourceConfig], DatabasePort],
        chart_cache: Optional[ChartCache] = None,
        introspector: Optional[SchemaIntrospector] = None,
        generator: Optional[SQLGenerator] = None,
        recovery: Optional[SQLErrorRecovery] = None,
        guard: Optional[QueryGuard] = None,
        config_resolver: Optional[Callable[[str], DatasourceConfig]] = None,
        default_max_retries: Optional[int] = None,
        max_retries_cap: Optional[int] = None,
        prevalidate: Optional[bool] = None,
    ):
        self.llm_registry = llm_registry
        self.engine_factory = engine_factory
        self.cache = chart_cache
        self.introspector = introspector or get_introspector()
        self.generator = generator or get_sql_generator()
        self.recovery = recovery or get_error_recovery()
        self.guard = guard or get_query_guard()
        self.config_resolver = config_resolver
        self.default_max_retries = (
            settings.query.default_max_retries
            if default_max_retries is None
            else default_max_retries
        )
        self.max_retries_cap = max_retries_cap or settings.query.max_retries_cap
        self.prevalidate = settings.query.prevalidate if prevalidate is None else prevalidate

    def retry_budget(self, requested: Optional[int]) -> int:
        budget = self.default_max_retries if requested is None else requested
        return max(0, min(int(budget), self.max_retries_cap))

    # Cache

    def _identity_hit(self, request: TextToSQLRequest) -> Optional[CacheEntry]:
        entry = self.cache.get_by_identity(request.chart_id)
        if not entry:
            return None
        # Un chart con otra pregunta u otras tablas no reutiliza datos viejos
        if (
            entry.datasource_id != request.datasource_id
            or sorted(entry.selected_tables) != sorted(request.selected_tables)
            or entry.query != request.query
        ):
            logger.info(f"Cache de chart {request.chart_id} no coincide con la petición")
            return None
        return entry

    def _result_from_cache(
        self, entry: CacheEntry, retry_count: int = 0, **extra: Any
    ) -> TextToSQLResult:
        return TextToSQLResult(
            success=True,
            sql=entry.sql,
            data=entry.data,
            row_count=entry.row_count,
            execution_time_ms=entry.execution_time,
            retry_count=retry_count,
            from_cache=True,
            query_complexity=estimate_query_complexity(entry.sql),
            **extra,
        )

    def _write_through(self, request: TextToSQLRequest, sql: str, result: QueryResult):
        if not self.cache or not request.use_cache:
            return
        try:
            self.cache.cache(
                chart_id=request.chart_id,
                sql=sql,
                datasource_id=request.datasource_id,
                tables=request.selected_tables,
                rows=result.rows,
                execution_time=result.execution_time_ms or 0,
                query=request.query,
            )
        except Exception as e:
            logger.warning(f"Write-through al cache falló: {e}")

    # Flujo principal

    def generate_and_execute(self, request: TextToSQLRequest) -> TextToSQLResult:
        """Nunca lanza: todo fallo vuelve como TextToSQLResult(success=False)"""
        start = time.time()

        if self.cache and request.chart_id and not request.bypass_cache:
            entry = self._identity_hit(request)
            if entry:
                logger.info(f"Cache HIT por identidad: chart {request.chart_id}")
                return self._result_from_cache(entry)

        if not request.selected_tables:
            return TextToSQLResult.failure(
                "No hay tablas seleccionadas", "CONTEXT_ERROR"
            )

        try:
            llm = self.llm_registry.resolve(request.ai_provider, request.ai_model)
            engine = self.engine_factory(request.datasource_config)
        except ChartSQLError as e:
            return TextToSQLResult.failure(e.message, e.code, execution_time_ms=_elapsed_ms(start))

        try:
            return self._run(engine, llm, request, start)
        except ChartSQLError as e:
            return TextToSQLResult.failure(e.message, e.code, execution_time_ms=_elapsed_ms(start))
        except Exception as e:
            logger.exception(f"Error inesperado en pipeline: {e}")
            return TextToSQLResult.failure(
                f"Error interno: {e}", "INTERNAL_ERROR", execution_time_ms=_elapsed_ms(start)
            )
        finally:
            engine.disconnect()

    def _build_context(self, engine: DatabasePort, request: TextToSQLRequest):
        try:
            engine.connect()
            contexts, warnings = self.introspector.extract_table_contexts(
                engine, request.selected_tables
            )
        except ConnectionError as e:
            raise ContextError(f"Datasource inalcanzable: {e.message}") from e
        if not contexts:
            raise ContextError(
                "Ninguna de las tablas seleccionadas está disponible: "
                + "; ".join(warnings)
            )
        return contexts, warnings

    def _run(self, engine: DatabasePort, llm, request: TextToSQLRequest, start: float) -> TextToSQLResult:
        contexts, warnings = self._build_context(engine, request)
        logger.info(f"Contexto de schema:\n{self.introspector.summarize(contexts)}")
        schema_context = self.introspector.build_schema_context(contexts)
        extra = {
            "table_schemas": self.introspector.table_schemas(contexts),
            "relationships": self.introspector.analyze_relationships(contexts),
            "warnings": warnings,
        }

        max_retries = self.retry_budget(request.max_retries)
        dialect = getattr(engine, "backend", "postgresql")
        previous_sql: Optional[str] = None
        previous_error: Optional[str] = None
        recovery_prompt: Optional[str] = None
        last_error: Optional[ChartSQLError] = None
        attempts = 0

        for attempt in range(max_retries + 1):
            attempts = attempt + 1
            candidate: Optional[str] = None
            try:
                generated = self.generator.generate(
                    llm,
                    request.query,
                    schema_context,
                    dialect=dialect,
                    previous_sql=previous_sql,
                    previous_error=previous_error,
                    recovery_prompt=recovery_prompt,
                    current_sql=request.current_sql,
                )
                candidate = generated.sql
                sql = self.guard.sanitize(candidate)
                syntax = self.guard.validate_syntax(sql)
                if not syntax.valid:
                    raise GenerationError(f"SQL mal formado: {syntax.error}")

                if self.cache and not request.bypass_cache:
                    entry = self.cache.get_by_content(sql, request.datasource_id, request.selected_tables)
                    if entry:
                        logger.info("Cache HIT por contenido")
                        return self._result_from_cache(
                            entry, retry_count=attempt, explanation=generated.explanation, **extra
                        )

                if self.prevalidate:
                    check = engine.validate_query(sql)
                    if not check.valid:
                        raise ExecutionError(check.error or "SQL inválido", sql=sql)

                result = engine.execute_query(sql)

            except UnsafeQueryError as e:
                logger.warning(f"Intento {attempts}: SQL inseguro ({e.pattern})")
                last_error = e
                previous_sql = candidate
                previous_error = f"{e.message}. No uses {e.pattern}; solo consultas SELECT de lectura."
                recovery_prompt = None
                continue
            except GenerationError as e:
                logger.warning(f"Intento {attempts}: generación falló: {e.message}")
                last_error = e
                previous_sql = candidate or e.raw or previous_sql
                previous_error = e.message
                recovery_prompt = None
                continue
            except ExecutionError as e:
                logger.warning(f"Intento {attempts}: ejecución falló: {e.message}")
                last_error = e
                previous_sql = candidate
                previous_error = e.message
                if not self.recovery.is_recoverable(e.message):
                    logger.info("Error no recuperable, se corta el ciclo")
                    break
                analysis = self.recovery.analyze(e.message, attempt)
                recovery_prompt = analysis.recovery_prompt if analysis.can_recover else None
                continue

            logger.info(f"SQL ejecutado: {result.row_count} filas, intento {attempts}")
            self._write_through(request, sql, result)
            return TextToSQLResult(
                success=True,
                sql=sql,
                data=result.rows,
                row_count=result.row_count,
                explanation=generated.explanation,
                execution_time_ms=result.execution_time_ms or _elapsed_ms(start),
                retry_count=attempt,
                query_complexity=estimate_query_complexity(sql),
                optimization_hints=self.recovery.generate_optimization_hints(sql),
                **extra,
            )

        message = last_error.message if last_error else "sin detalle"
        return TextToSQLResult.failure(
            f"No se pudo generar un SQL válido tras {attempts} intento(s): {message}",
            last_error.code if last_error else "GENERATION_ERROR",
            sql=previous_sql,
            retry_count=attempts - 1,
            execution_time_ms=_elapsed_ms(start),
            warnings=warnings,
        )

    # Refresh y validación

    def refresh_chart(
        self,
        chart_id: str,
        force_refresh: bool = True,
        datasource_config: Optional[DatasourceConfig] = None,
    ) -> TextToSQLResult:
        """Re-ejecuta el SQL cacheado del chart sin pasar por el LLM"""
        start = time.time()
        if not self.cache:
            return TextToSQLResult.failure("Cache deshabilitado", "CACHE_ERROR")

        entry = self.cache.get_by_identity(chart_id)
        if not entry:
            return TextToSQLResult.failure(
                f"No hay SQL cacheado para el chart {chart_id}",
                "NOT_FOUND",
            )
        if not force_refresh:
            return self._result_from_cache(entry)

        try:
            config = datasource_config
            if config is None:
                if not self.config_resolver:
                    return TextToSQLResult.failure(
                        "No hay forma de resolver el datasource del chart", "CONFIG_ERROR"
                    )
                config = self.config_resolver(entry.datasource_id)
            engine = self.engine_factory(config)
        except ChartSQLError as e:
            return TextToSQLResult.failure(e.message, e.code, sql=entry.sql)

        try:
            engine.connect()
            result = engine.execute_query(entry.sql)
        except ChartSQLError as e:
            return TextToSQLResult.failure(
                e.message, e.code, sql=entry.sql, execution_time_ms=_elapsed_ms(start)
            )
        finally:
            engine.disconnect()

        self.cache.refresh(chart_id, result.rows, result.execution_time_ms or 0)
        logger.info(f"Chart {chart_id} refrescado: {result.row_count} filas")
        return TextToSQLResult(
            success=True,
            sql=entry.sql,
            data=result.rows,
            row_count=result.row_count,
            execution_time_ms=result.execution_time_ms or _elapsed_ms(start),
            query_complexity=estimate_query_complexity(entry.sql),
        )

    def validate_sql(self, config: DatasourceConfig, sql: str) -> QueryValidation:
        try:
            clean = self.guard.sanitize(sql)
        except UnsafeQueryError as e:
            return QueryValidation(False, e.message)

        try:
            engine = self.engine_factory(config)
        except ChartSQLError as e:
            return QueryValidation(False, e.message)
        try:
            return engine.validate_query(clean)
        except ChartSQLError as e:
            return QueryValidation(False, e.message)
        finally:
            engine.disconnect()
