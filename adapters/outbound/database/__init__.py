# Motores de base de datos - Factory y re-exports

import importlib
import logging
from typing import Any, Dict, List, Type, Union

from adapters.outbound.database.base import BaseEngine
from core.domain.datasource import BACKEND_ALIASES, DatasourceConfig
from core.domain.errors import UnsupportedBackendError

logger = logging.getLogger(__name__)

# Backends con motor SQL y que requieren host/puerto/usuario
SERVER_BACKENDS = ("postgresql", "mysql", "sqlserver")


# tipo -> (módulo, clase). Cada driver se importa solo si se usa su motor
ENGINES = {
    "postgresql": ("adapters.outbound.database.postgresql", "PostgreSQLEngine"),
    "mysql": ("adapters.outbound.database.mysql", "MySQLEngine"),
    "sqlserver": ("adapters.outbound.database.sqlserver", "SQLServerEngine"),
    "sqlite": ("adapters.outbound.database.sqlite", "SQLiteEngine"),
}

SUPPORTED_TYPES = tuple(ENGINES)


def get_engine_class(backend: str) -> Type[BaseEngine]:
    module_name, class_name = ENGINES[backend]
    return getattr(importlib.import_module(module_name), class_name)


def get_supported_types() -> List[str]:
    return list(SUPPORTED_TYPES)


def is_type_supported(db_type: str) -> bool:
    if not db_type:
        return False
    normalized = db_type.lower()
    return BACKEND_ALIASES.get(normalized, normalized) in SUPPORTED_TYPES


def _as_config(config: Union[DatasourceConfig, Dict[str, Any]]) -> DatasourceConfig:
    if isinstance(config, DatasourceConfig):
        return config
    return DatasourceConfig.from_dict(config or {})


def validate_config(config: Union[DatasourceConfig, Dict[str, Any], None]) -> List[str]:
    """
    Lista de errores de configuración; vacía si es válida. Nunca lanza.

    Acepta un DatasourceConfig o el dict tal como viene del registro.
    """
    if config is None:
        return ["Database type is required"]
    try:
        config = _as_config(config)
    except (TypeError, ValueError) as e:
        return [f"Invalid configuration: {e}"]

    errors: List[str] = []
    if not config.type:
        return ["Database type is required"]
    if not is_type_supported(config.type):
        return [f"Unsupported database type: {config.type}"]

    backend = config.backend
    if config.connection_string:
        return errors

    if not config.database:
        errors.append(
            "Database file path is required" if backend == "sqlite" else "Database name is required"
        )

    if backend in SERVER_BACKENDS:
        if not config.host:
            errors.append("Host is required")
        if config.port in (None, ""):
            errors.append("Port is required")
        elif not isinstance(config.port, int) or not 0 < config.port < 65536:
            errors.append(f"Invalid port: {config.port}")
        if not config.username:
            errors.append("Username is required")
        if backend == "postgresql" and not config.password:
            errors.append("Password is required")

    if not isinstance(config.ssl, bool):
        errors.append("ssl must be a boolean")

    return errors


def create_engine(
    config: Union[DatasourceConfig, Dict[str, Any]], **kwargs
) -> BaseEngine:
    """
    Factory para crear el motor correcto según el tipo del datasource.
    No conecta: el llamador decide cuándo.

    Raises:
        UnsupportedBackendError: tipo desconocido o sin motor (mongodb)
    """
    config = _as_config(config)
    if not is_type_supported(config.type):
        raise UnsupportedBackendError(config.type, supported=get_supported_types())

    engine_class = get_engine_class(config.backend)
    logger.debug(f"Creando motor {engine_class.__name__}")
    return engine_class(config, **kwargs)


__all__ = [
    "BaseEngine",
    "SUPPORTED_TYPES",
    "create_engine",
    "get_engine_class",
    "validate_config",
    "get_supported_types",
    "is_type_supported",
]
