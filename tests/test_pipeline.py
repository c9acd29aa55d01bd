# Tests del orquestador texto -> SQL -> datos
# Ejecutar con: pytest tests/test_pipeline.py -v

import sqlite3

import pytest
from unittest.mock import MagicMock

from core.domain.datasource import DatasourceConfig
from core.domain.errors import ExecutionError
from core.domain.schema import ColumnInfo, TableInfo

GOOD_SQL = "SELECT name FROM customers ORDER BY name"


def reply(content):
    return MagicMock(content=content)


def system_prompt(mock_llm, call_index):
    messages = mock_llm.invoke.call_args_list[call_index][0][0]
    return messages[0].content


@pytest.mark.integration
class TestGenerateAndExecute:
    def test_success_on_first_attempt(self, pipeline, make_request, mock_llm):
        result = pipeline.generate_and_execute(make_request())

        assert result.success
        assert result.sql == GOOD_SQL
        assert result.retry_count == 0
        assert result.row_count == 3
        assert [r["name"] for r in result.data] == ["Ana", "Bruno", "Carla"]
        assert result.explanation == "Nombres de clientes"
        assert not result.from_cache
        assert result.query_complexity["complexity"] == "low"
        assert result.table_schemas[0]["table"] == "main.customers"
        mock_llm.invoke.assert_called_once()

    def test_unsafe_sql_is_regenerated(self, pipeline, make_request, mock_llm):
        mock_llm.invoke.side_effect = [
            reply("SELECT * FROM customers; DROP TABLE customers"),
            reply(GOOD_SQL),
        ]
        result = pipeline.generate_and_execute(make_request())

        assert result.success
        assert result.retry_count == 1
        retry_prompt = system_prompt(mock_llm, 1)
        assert "ERROR PREVIO A CORREGIR" in retry_prompt
        assert "DROP TABLE customers" in retry_prompt
        assert "DROP" in retry_prompt.split("falló con:")[1]

    def test_execution_error_is_fed_back(self, pipeline, make_request, mock_llm):
        mock_llm.invoke.side_effect = [
            reply("SELECT nombre FROM customers"),
            reply(GOOD_SQL),
        ]
        result = pipeline.generate_and_execute(make_request())

        assert result.success
        assert result.retry_count == 1
        retry_prompt = system_prompt(mock_llm, 1)
        assert "SELECT nombre FROM customers" in retry_prompt
        assert "no such column: nombre" in retry_prompt
        # Guía de la estrategia de columnas
        assert "nombres exactos de columnas" in retry_prompt

    def test_exhaustion_makes_max_retries_plus_one_attempts(self, pipeline, make_request, mock_llm):
        mock_llm.invoke.return_value = reply("SELECT nombre FROM customers")
        result = pipeline.generate_and_execute(make_request(max_retries=2))

        assert not result.success
        assert mock_llm.invoke.call_count == 3
        assert result.retry_count == 2
        assert result.error_code == "EXECUTION_ERROR"
        assert "no such column" in result.error
        assert result.data == []

    def test_zero_retries(self, pipeline, make_request, mock_llm):
        mock_llm.invoke.return_value = reply("Lo siento, no sé")
        result = pipeline.generate_and_execute(make_request(max_retries=0))

        assert not result.success
        assert mock_llm.invoke.call_count == 1
        assert result.error_code == "UNSAFE_QUERY"
        assert result.sql == "Lo siento, no sé"

    def test_destructive_reply_is_screened_and_regenerated(self, pipeline, make_request, mock_llm):
        mock_llm.invoke.side_effect = [reply("DROP TABLE orders"), reply(GOOD_SQL)]
        result = pipeline.generate_and_execute(make_request())

        assert result.success
        assert result.retry_count == 1
        assert result.sql == GOOD_SQL
        retry_block = system_prompt(mock_llm, 1).split("ERROR PREVIO A CORREGIR")[1]
        assert "DROP TABLE orders" in retry_block
        assert "(sin SQL)" not in retry_block
        assert "DROP" in retry_block.split("falló con:")[1]

    def test_destructive_replies_exhaust_as_unsafe(self, pipeline, make_request, mock_llm, sqlite_path):
        mock_llm.invoke.return_value = reply("DROP TABLE orders")
        result = pipeline.generate_and_execute(make_request(max_retries=1))

        assert not result.success
        assert mock_llm.invoke.call_count == 2
        assert result.error_code == "UNSAFE_QUERY"
        assert result.sql == "DROP TABLE orders"
        assert result.retry_count == 1

        conn = sqlite3.connect(sqlite_path)
        assert conn.execute("SELECT COUNT(*) FROM orders").fetchone()[0] == 4
        conn.close()

    def test_empty_reply_keeps_last_sql(self, pipeline, make_request, mock_llm):
        mock_llm.invoke.side_effect = [reply("SELECT nombre FROM customers"), reply("")]
        result = pipeline.generate_and_execute(make_request(max_retries=1))

        assert not result.success
        assert result.error_code == "GENERATION_ERROR"
        assert result.sql == "SELECT nombre FROM customers"

    def test_comment_markers_inside_literal(self, pipeline, make_request, mock_llm):
        sql = "SELECT name FROM customers WHERE name <> 'a--b' ORDER BY name"
        mock_llm.invoke.return_value = reply(sql)
        result = pipeline.generate_and_execute(make_request(max_retries=0))

        assert result.success
        assert result.sql == sql
        assert result.row_count == 3

    def test_retry_budget_is_capped(self, pipeline):
        assert pipeline.retry_budget(None) == 3
        assert pipeline.retry_budget(50) == 5
        assert pipeline.retry_budget(-1) == 0

    def test_provider_failure_is_retried(self, pipeline, make_request, mock_llm):
        mock_llm.invoke.side_effect = [RuntimeError("503"), reply(GOOD_SQL)]
        result = pipeline.generate_and_execute(make_request())
        assert result.success
        assert result.retry_count == 1


@pytest.mark.integration
class TestContextFailures:
    def test_no_tables_selected(self, pipeline, make_request, mock_llm):
        result = pipeline.generate_and_execute(make_request(selected_tables=[]))
        assert not result.success
        assert result.error_code == "CONTEXT_ERROR"
        mock_llm.invoke.assert_not_called()

    def test_no_table_available(self, pipeline, make_request, mock_llm):
        result = pipeline.generate_and_execute(make_request(selected_tables=["main.nope"]))
        assert not result.success
        assert result.error_code == "CONTEXT_ERROR"
        assert "main.nope" in result.error
        mock_llm.invoke.assert_not_called()

    def test_unreachable_datasource(self, pipeline, make_request, tmp_path, mock_llm):
        config = DatasourceConfig(type="sqlite", database=str(tmp_path / "missing.db"))
        result = pipeline.generate_and_execute(make_request(datasource_config=config))
        assert not result.success
        assert result.error_code == "CONTEXT_ERROR"
        mock_llm.invoke.assert_not_called()

    def test_unsupported_backend(self, pipeline, make_request):
        result = pipeline.generate_and_execute(
            make_request(datasource_config=DatasourceConfig(type="mongodb"))
        )
        assert not result.success
        assert result.error_code == "UNSUPPORTED_BACKEND"

    def test_skipped_table_is_reported(self, pipeline, make_request):
        result = pipeline.generate_and_execute(
            make_request(selected_tables=["main.customers", "main.nope"])
        )
        assert result.success
        assert any("main.nope" in w for w in result.warnings)


@pytest.mark.unit
class TestEngineLifecycle:
    """Con un motor mock para observar connect/disconnect"""

    @pytest.fixture
    def engine(self):
        engine = MagicMock()
        engine.backend = "postgresql"
        engine.get_table_schema.return_value = TableInfo(
            name="payroll", schema="public", columns=[ColumnInfo("amount", "numeric")]
        )
        engine.get_sample_data.return_value = [{"amount": 10}]
        return engine

    @pytest.fixture
    def mock_pipeline(self, mock_registry, chart_cache, engine):
        from core.services.pipeline import TextToSQLPipeline
        return TextToSQLPipeline(
            llm_registry=mock_registry,
            engine_factory=lambda config: engine,
            chart_cache=chart_cache,
            prevalidate=False,
        )

    def test_non_recoverable_error_stops_early(self, mock_pipeline, make_request, engine, mock_llm):
        mock_llm.invoke.return_value = reply("SELECT amount FROM payroll")
        engine.execute_query.side_effect = ExecutionError("permission denied for table payroll")

        result = mock_pipeline.generate_and_execute(make_request(selected_tables=["public.payroll"]))

        assert not result.success
        assert mock_llm.invoke.call_count == 1
        assert result.error_code == "EXECUTION_ERROR"
        engine.disconnect.assert_called_once()

    def test_disconnect_after_success(self, mock_pipeline, make_request, engine):
        from core.domain.query import QueryResult

        engine.execute_query.return_value = QueryResult(rows=[{"name": "Ana"}], execution_time_ms=4)
        result = mock_pipeline.generate_and_execute(make_request(selected_tables=["public.payroll"]))

        assert result.success
        assert result.execution_time_ms == 4
        engine.connect.assert_called_once()
        engine.disconnect.assert_called_once()

    def test_disconnect_after_unexpected_error(self, mock_pipeline, make_request, engine):
        engine.execute_query.side_effect = KeyError("bug")
        result = mock_pipeline.generate_and_execute(make_request(selected_tables=["public.payroll"]))

        assert not result.success
        assert result.error_code == "INTERNAL_ERROR"
        engine.disconnect.assert_called_once()

    def test_prevalidation_failure_is_retried(self, mock_registry, chart_cache, make_request, engine, mock_llm):
        from core.domain.query import QueryResult, QueryValidation
        from core.services.pipeline import TextToSQLPipeline

        engine.validate_query.side_effect = [
            QueryValidation(False, 'column "nombre" does not exist'),
            QueryValidation(True),
        ]
        engine.execute_query.return_value = QueryResult(rows=[{"name": "Ana"}])
        pipeline = TextToSQLPipeline(
            llm_registry=mock_registry,
            engine_factory=lambda config: engine,
            chart_cache=chart_cache,
            prevalidate=True,
        )
        result = pipeline.generate_and_execute(make_request(selected_tables=["public.payroll"]))

        assert result.success
        assert result.retry_count == 1
        engine.execute_query.assert_called_once()


@pytest.mark.integration
class TestPipelineCache:
    def test_identity_hit_skips_llm(self, pipeline, make_request, mock_llm):
        first = pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        second = pipeline.generate_and_execute(make_request(chart_id="chart-1"))

        assert first.success and not first.from_cache
        assert second.from_cache
        assert second.sql == first.sql
        assert second.data == first.data
        assert second.row_count == first.row_count
        assert mock_llm.invoke.call_count == 1

    def test_identity_hit_requires_same_question(self, pipeline, make_request, mock_llm):
        pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        result = pipeline.generate_and_execute(
            make_request(chart_id="chart-1", query="Otra pregunta")
        )
        # Mismo SQL generado: se resuelve por contenido, tras generar
        assert mock_llm.invoke.call_count == 2
        assert result.from_cache

    def test_content_hit_after_generation(self, pipeline, make_request, mock_llm):
        pipeline.generate_and_execute(make_request())
        result = pipeline.generate_and_execute(make_request())

        assert result.from_cache
        assert mock_llm.invoke.call_count == 2

    def test_table_order_does_not_matter(self, pipeline, make_request):
        pipeline.generate_and_execute(make_request(selected_tables=["main.customers", "main.orders"]))
        result = pipeline.generate_and_execute(
            make_request(selected_tables=["main.orders", "main.customers"])
        )
        assert result.from_cache

    def test_force_refresh_bypasses_cache(self, pipeline, make_request, mock_llm):
        pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        result = pipeline.generate_and_execute(make_request(chart_id="chart-1", force_refresh=True))

        assert result.success
        assert not result.from_cache
        assert mock_llm.invoke.call_count == 2

    def test_use_cache_false(self, pipeline, make_request):
        pipeline.generate_and_execute(make_request())
        assert not pipeline.generate_and_execute(make_request(use_cache=False)).from_cache

    def test_use_cache_false_does_not_write(self, pipeline, make_request, chart_cache):
        pipeline.generate_and_execute(make_request(chart_id="chart-1", use_cache=False))
        assert chart_cache.get_by_identity("chart-1") is None
        assert chart_cache.get_by_content(GOOD_SQL, "ds-shop", ["main.customers"]) is None

    def test_zero_ttl_never_hits(self, mock_registry, memory_store, make_request):
        from adapters.outbound.database import create_engine
        from core.services.cache.chart_cache import ChartCache
        from core.services.pipeline import TextToSQLPipeline

        pipeline = TextToSQLPipeline(
            llm_registry=mock_registry,
            engine_factory=create_engine,
            chart_cache=ChartCache(memory_store, ttl=0),
        )
        pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        result = pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        assert result.success
        assert not result.from_cache

    def test_cache_failure_does_not_change_outcome(self, mock_registry, make_request):
        from adapters.outbound.database import create_engine
        from core.services.cache.chart_cache import ChartCache
        from core.services.pipeline import TextToSQLPipeline

        store = MagicMock()
        store.get.side_effect = ConnectionRefusedError("redis caído")
        store.set.side_effect = ConnectionRefusedError("redis caído")
        pipeline = TextToSQLPipeline(
            llm_registry=mock_registry,
            engine_factory=create_engine,
            chart_cache=ChartCache(store, ttl=60),
        )
        result = pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        assert result.success
        assert result.row_count == 3

    def test_failure_is_not_cached(self, pipeline, make_request, mock_llm, chart_cache):
        mock_llm.invoke.return_value = reply("SELECT nombre FROM customers")
        pipeline.generate_and_execute(make_request(chart_id="chart-1", max_retries=0))
        assert chart_cache.get_by_identity("chart-1") is None


@pytest.mark.integration
class TestRefreshChart:
    def test_refresh_reexecutes_cached_sql(self, pipeline, make_request, sqlite_path, sqlite_config, mock_llm):
        pipeline.generate_and_execute(make_request(chart_id="chart-1"))

        conn = sqlite3.connect(sqlite_path)
        conn.execute("INSERT INTO customers (id, name) VALUES (4, 'Diego')")
        conn.commit()
        conn.close()

        result = pipeline.refresh_chart("chart-1", datasource_config=sqlite_config)
        assert result.success
        assert result.row_count == 4
        assert result.sql == GOOD_SQL
        assert mock_llm.invoke.call_count == 1

        cached = pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        assert cached.from_cache
        assert cached.row_count == 4

    def test_refresh_not_forced_returns_cache(self, pipeline, make_request, sqlite_config):
        pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        result = pipeline.refresh_chart("chart-1", force_refresh=False, datasource_config=sqlite_config)
        assert result.from_cache

    def test_refresh_unknown_chart(self, pipeline):
        result = pipeline.refresh_chart("nope")
        assert not result.success
        assert result.error_code == "NOT_FOUND"

    def test_refresh_resolves_datasource(self, mock_registry, chart_cache, make_request, sqlite_config):
        from adapters.outbound.database import create_engine
        from core.services.pipeline import TextToSQLPipeline

        resolver = MagicMock(return_value=sqlite_config)
        pipeline = TextToSQLPipeline(
            llm_registry=mock_registry,
            engine_factory=create_engine,
            chart_cache=chart_cache,
            config_resolver=resolver,
        )
        pipeline.generate_and_execute(make_request(chart_id="chart-1"))
        assert pipeline.refresh_chart("chart-1").success
        resolver.assert_called_once_with("ds-shop")


@pytest.mark.integration
class TestValidateSQL:
    def test_valid(self, pipeline, sqlite_config):
        assert pipeline.validate_sql(sqlite_config, "SELECT * FROM orders").valid

    def test_unsafe(self, pipeline, sqlite_config):
        result = pipeline.validate_sql(sqlite_config, "DROP TABLE orders")
        assert not result.valid
        assert "DROP" in result.error

    def test_engine_error(self, pipeline, sqlite_config):
        result = pipeline.validate_sql(sqlite_config, "SELECT nope FROM orders")
        assert not result.valid
        assert "no such column" in result.error
