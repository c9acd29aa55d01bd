# Tests de la fábrica de motores y validación de configuración
# Ejecutar con: pytest tests/test_engine_factory.py -v

import pytest

from adapters.outbound.database import (
    create_engine,
    get_supported_types,
    is_type_supported,
    validate_config,
)
from core.domain.datasource import DatasourceConfig
from core.domain.errors import UnsupportedBackendError


@pytest.mark.unit
class TestSupportedTypes:
    def test_supported_types(self):
        assert get_supported_types() == ["postgresql", "mysql", "sqlserver", "sqlite"]

    def test_aliases_are_supported(self):
        assert is_type_supported("postgres")
        assert is_type_supported("MSSQL")
        assert is_type_supported("mariadb")

    def test_mongodb_is_recognised_but_unsupported(self):
        assert not is_type_supported("mongodb")
        assert not is_type_supported("")


@pytest.mark.unit
class TestValidateConfig:
    """validate_config nunca lanza: devuelve la lista de errores"""

    def test_valid_postgres(self):
        config = {
            "type": "postgresql",
            "host": "db.local",
            "port": 5432,
            "database": "shop",
            "username": "reader",
            "password": "secret",
        }
        assert validate_config(config) == []

    def test_missing_type(self):
        assert validate_config({"host": "x"}) == ["Database type is required"]

    def test_none_config(self):
        assert validate_config(None) == ["Database type is required"]

    def test_unsupported_type(self):
        assert validate_config({"type": "mongodb"}) == ["Unsupported database type: mongodb"]

    def test_lists_every_missing_field(self):
        errors = validate_config({"type": "postgresql"})
        assert "Database name is required" in errors
        assert "Host is required" in errors
        assert "Port is required" in errors
        assert "Username is required" in errors
        assert "Password is required" in errors

    def test_mysql_does_not_require_password(self):
        config = {"type": "mysql", "host": "h", "port": 3306, "database": "d", "username": "u"}
        assert validate_config(config) == []

    def test_invalid_port(self):
        config = {"type": "mysql", "host": "h", "port": 70000, "database": "d", "username": "u"}
        assert validate_config(config) == ["Invalid port: 70000"]

    def test_connection_string_skips_field_checks(self):
        config = {"type": "postgresql", "connectionString": "postgresql://u:p@h/db"}
        assert validate_config(config) == []

    def test_sqlite_requires_path(self):
        assert validate_config({"type": "sqlite"}) == ["Database file path is required"]
        assert validate_config({"type": "sqlite", "database": "/tmp/x.db"}) == []

    def test_accepts_dataclass(self):
        assert validate_config(DatasourceConfig(type="sqlite", database="x.db")) == []


@pytest.mark.unit
class TestCreateEngine:
    def test_creates_sqlite_engine_without_connecting(self):
        from adapters.outbound.database.sqlite import SQLiteEngine

        engine = create_engine(DatasourceConfig(type="sqlite", database="missing.db"))
        assert isinstance(engine, SQLiteEngine)
        assert not engine.is_connected

    def test_accepts_dict(self):
        engine = create_engine({"type": "sqlite", "database": "x.db"})
        assert engine.backend == "sqlite"

    def test_unsupported_backend(self):
        with pytest.raises(UnsupportedBackendError) as exc:
            create_engine(DatasourceConfig(type="mongodb"))
        assert exc.value.code == "UNSUPPORTED_BACKEND"
        assert "sqlite" in exc.value.details["supported"]

    def test_postgres_alias(self):
        pytest.importorskip("psycopg2")
        from adapters.outbound.database.postgresql import PostgreSQLEngine

        engine = create_engine(
            DatasourceConfig(type="postgres", host="h", port=5432, database="d", username="u", password="p")
        )
        assert isinstance(engine, PostgreSQLEngine)
        assert engine.describe() == "postgresql://u@h:5432/d"

    def test_config_without_credentials(self):
        engine = create_engine(
            DatasourceConfig(type="sqlite", database="x.db", password="secret")
        )
        assert "password" not in engine.get_config()
        assert "secret" not in repr(engine.config)
