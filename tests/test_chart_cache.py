# Tests del cache de charts (contenido + identidad + referencias)
# Ejecutar con: pytest tests/test_chart_cache.py -v

import pytest
from unittest.mock import MagicMock

from core.services.cache.chart_cache import ChartCache

SQL = "SELECT name FROM customers"
ROWS = [{"name": "Ana"}, {"name": "Bruno"}]


def cache_rows(cache, chart_id="chart-1", sql=SQL, tables=None, rows=None):
    return cache.cache(
        chart_id=chart_id,
        sql=sql,
        datasource_id="ds-1",
        tables=tables or ["public.customers"],
        rows=rows if rows is not None else ROWS,
        execution_time=12,
        query="nombres de clientes",
    )


@pytest.mark.unit
class TestCacheKeys:
    def test_content_key_ignores_table_order(self, chart_cache):
        a = chart_cache.content_key(SQL, "ds-1", ["a.x", "b.y"])
        b = chart_cache.content_key(SQL, "ds-1", ["b.y", "a.x"])
        assert a == b
        assert a.startswith("chart_data:")
        assert len(a) == len("chart_data:") + 64

    def test_content_key_depends_on_datasource(self, chart_cache):
        assert chart_cache.content_key(SQL, "ds-1", []) != chart_cache.content_key(SQL, "ds-2", [])

    def test_identity_key(self, chart_cache):
        assert chart_cache.identity_key("c1") == "chart_data:id:c1"


@pytest.mark.unit
class TestCacheOperations:
    def test_cache_and_get_by_content(self, chart_cache):
        key = cache_rows(chart_cache)
        assert key == chart_cache.content_key(SQL, "ds-1", ["public.customers"])

        entry = chart_cache.get_by_content(SQL, "ds-1", ["public.customers"])
        assert entry.data == ROWS
        assert entry.sql == SQL
        assert entry.row_count == 2
        assert entry.execution_time == 12
        assert entry.cached_at

    def test_get_by_identity(self, chart_cache):
        cache_rows(chart_cache)
        entry = chart_cache.get_by_identity("chart-1")
        assert entry.query == "nombres de clientes"
        assert entry.selected_tables == ["public.customers"]
        assert entry.datasource_id == "ds-1"

    def test_miss(self, chart_cache):
        assert chart_cache.get_by_content(SQL, "ds-1", []) is None
        assert chart_cache.get_by_identity("nope") is None

    def test_cache_without_chart_id(self, chart_cache):
        cache_rows(chart_cache, chart_id=None)
        assert chart_cache.get_by_content(SQL, "ds-1", ["public.customers"]) is not None
        assert chart_cache.stats()["chart_keys"] == 0

    def test_zero_ttl_stores_nothing(self, memory_store):
        cache = ChartCache(memory_store, ttl=0)
        cache_rows(cache)
        assert cache.get_by_content(SQL, "ds-1", ["public.customers"]) is None
        assert cache.get_by_identity("chart-1") is None

    def test_recache_with_new_sql_retires_old_entry(self, chart_cache):
        old_key = cache_rows(chart_cache)
        cache_rows(chart_cache, sql="SELECT city FROM customers")
        assert not chart_cache.store.exists(old_key)
        assert chart_cache.get_by_identity("chart-1").sql == "SELECT city FROM customers"


@pytest.mark.unit
class TestInvalidation:
    def test_invalidate_by_identity(self, chart_cache):
        key = cache_rows(chart_cache)
        chart_cache.invalidate_by_identity("chart-1")
        assert chart_cache.get_by_identity("chart-1") is None
        assert not chart_cache.store.exists(key)

    def test_shared_entry_survives_until_last_reference(self, chart_cache):
        key = cache_rows(chart_cache, chart_id="chart-1")
        cache_rows(chart_cache, chart_id="chart-2")

        chart_cache.invalidate_by_identity("chart-1")
        assert chart_cache.store.exists(key)
        assert chart_cache.get_by_identity("chart-2") is not None

        chart_cache.invalidate_by_identity("chart-2")
        assert not chart_cache.store.exists(key)

    def test_invalidate_by_content(self, chart_cache):
        cache_rows(chart_cache)
        chart_cache.invalidate_by_content(SQL, "ds-1", ["public.customers"])
        assert chart_cache.get_by_content(SQL, "ds-1", ["public.customers"]) is None

    def test_invalidate_unknown_chart_is_noop(self, chart_cache):
        chart_cache.invalidate_by_identity("nope")


@pytest.mark.unit
class TestChartModified:
    def test_new_sql_hides_stale_data(self, chart_cache):
        old_key = cache_rows(chart_cache)
        chart_cache.on_chart_modified("chart-1", "SELECT city FROM customers", "ds-1", ["public.customers"])

        assert chart_cache.get_by_identity("chart-1") is None
        assert not chart_cache.store.exists(old_key)
        new_key = chart_cache.content_key("SELECT city FROM customers", "ds-1", ["public.customers"])
        assert chart_cache.store.get(chart_cache.identity_key("chart-1")) == new_key

    def test_same_sql_keeps_entry(self, chart_cache):
        cache_rows(chart_cache)
        chart_cache.on_chart_modified("chart-1", SQL, "ds-1", ["public.customers"])
        assert chart_cache.get_by_identity("chart-1").data == ROWS


@pytest.mark.unit
class TestRefreshAndStats:
    def test_refresh_keeps_sql(self, chart_cache):
        cache_rows(chart_cache)
        refreshed = chart_cache.refresh("chart-1", [{"name": "Ana"}], execution_time=3)

        assert refreshed.sql == SQL
        assert refreshed.row_count == 1
        entry = chart_cache.get_by_identity("chart-1")
        assert entry.data == [{"name": "Ana"}]
        assert entry.execution_time == 3

    def test_refresh_unknown_chart(self, chart_cache):
        assert chart_cache.refresh("nope", [], 0) is None

    def test_stats(self, chart_cache):
        cache_rows(chart_cache)
        assert chart_cache.stats() == {"total_keys": 3, "chart_keys": 1, "entry_keys": 1}


@pytest.mark.unit
class TestStoreFailures:
    """Un store caído nunca propaga errores al llamador"""

    @pytest.fixture
    def broken_cache(self):
        store = MagicMock()
        for method in ("get", "set", "delete", "exists", "keys"):
            getattr(store, method).side_effect = ConnectionRefusedError("redis caído")
        return ChartCache(store, ttl=60)

    def test_operations_swallow_errors(self, broken_cache):
        assert cache_rows(broken_cache) is None
        assert broken_cache.get_by_content(SQL, "ds-1", []) is None
        assert broken_cache.get_by_identity("chart-1") is None
        assert broken_cache.refresh("chart-1", [], 0) is None
        broken_cache.invalidate_by_identity("chart-1")
        broken_cache.invalidate_by_content(SQL, "ds-1", [])
        broken_cache.on_chart_modified("chart-1", SQL, "ds-1", [])
        assert broken_cache.stats()["total_keys"] == 0
