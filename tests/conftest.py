# Configuración central de pytest y fixtures compartidos

import pytest
import os
import sys
import sqlite3
from unittest.mock import MagicMock, patch

# Asegurar que el directorio raíz esté en el path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# MARKERS PERSONALIZADOS

def pytest_configure(config):
    """Registrar markers personalizados"""
    config.addinivalue_line(
        "markers", "unit: Tests unitarios rápidos (sin servicios externos)"
    )
    config.addinivalue_line(
        "markers", "integration: Tests de integración (SQLite real en tmp_path)"
    )


# FIXTURES DE MOCK PARA TESTS UNITARIOS

def llm_reply(content: str) -> MagicMock:
    """Respuesta de LLM con el mismo shape que un AIMessage"""
    return MagicMock(content=content)


@pytest.fixture
def mock_llm():
    """Mock del LLM para evitar llamadas reales (costosas y lentas)"""
    mock = MagicMock()
    mock.provider = "mock"
    mock.invoke.return_value = llm_reply(
        "SELECT name FROM customers ORDER BY name\nEXPLANATION: Nombres de clientes"
    )
    return mock


@pytest.fixture
def mock_registry(mock_llm):
    """Registro de proveedores que siempre resuelve al mock_llm"""
    registry = MagicMock()
    registry.resolve.return_value = mock_llm
    return registry


@pytest.fixture
def memory_store():
    from adapters.outbound.cache.memory_cache import InMemoryCache
    return InMemoryCache()


@pytest.fixture
def chart_cache(memory_store):
    from core.services.cache.chart_cache import ChartCache
    return ChartCache(memory_store, ttl=300, prefix="chart_data:")


# FIXTURES DE SQLITE (base real en tmp_path)

@pytest.fixture
def sqlite_path(tmp_path):
    """Base SQLite con clientes y pedidos"""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE customers (
            id INTEGER PRIMARY KEY,
            name VARCHAR(100) NOT NULL,
            city TEXT
        );
        CREATE TABLE orders (
            id INTEGER PRIMARY KEY,
            customer_id INTEGER NOT NULL REFERENCES customers(id),
            total NUMERIC(10,2) DEFAULT 0,
            status TEXT DEFAULT 'pending'
        );
        CREATE INDEX idx_orders_customer ON orders(customer_id);
        INSERT INTO customers (id, name, city) VALUES
            (1, 'Ana', 'Lima'), (2, 'Bruno', 'Quito'), (3, 'Carla', NULL);
        INSERT INTO orders (id, customer_id, total, status) VALUES
            (1, 1, 120.5, 'paid'), (2, 1, 80, 'pending'),
            (3, 2, 42, 'paid'), (4, 3, 10, 'cancelled');
        """
    )
    conn.commit()
    conn.close()
    return str(path)


@pytest.fixture
def sqlite_config(sqlite_path):
    from core.domain.datasource import DatasourceConfig
    return DatasourceConfig(type="sqlite", database=sqlite_path)


@pytest.fixture
def sqlite_engine(sqlite_config):
    from adapters.outbound.database.sqlite import SQLiteEngine
    engine = SQLiteEngine(sqlite_config, row_limit=100, statement_timeout=5)
    yield engine
    engine.disconnect()


@pytest.fixture
def pipeline(mock_registry, chart_cache):
    """Pipeline con LLM mock, motores reales y cache en memoria"""
    from adapters.outbound.database import create_engine
    from core.services.pipeline import TextToSQLPipeline
    return TextToSQLPipeline(
        llm_registry=mock_registry,
        engine_factory=create_engine,
        chart_cache=chart_cache,
        default_max_retries=3,
        max_retries_cap=5,
        prevalidate=False,
    )


@pytest.fixture
def make_request(sqlite_config):
    """Fábrica de TextToSQLRequest contra la base SQLite"""
    from core.domain.query import TextToSQLRequest

    def _make(**overrides):
        data = dict(
            query="Lista los nombres de clientes",
            selected_tables=["main.customers"],
            datasource_id="ds-shop",
            datasource_config=sqlite_config,
            ai_provider="openai",
            ai_model="gpt-4o-mini",
        )
        data.update(overrides)
        return TextToSQLRequest(**data)

    return _make


# FIXTURES PARA TESTS DE API

@pytest.fixture
def mock_deps():
    """Mock completo de AppDependencies para tests de API"""
    mock = MagicMock()
    mock.store.is_connected.return_value = True
    mock.chart_cache.stats.return_value = {"total_keys": 3, "chart_keys": 1, "entry_keys": 1}
    return mock


@pytest.fixture
def api_client(mock_deps):
    """Cliente de API con dependencias mockeadas"""
    from fastapi.testclient import TestClient

    with patch("adapters.inbound.dependencies.AppDependencies") as MockDeps:
        MockDeps.get_instance.return_value = mock_deps

        from adapters.inbound.api import app
        yield TestClient(app)
