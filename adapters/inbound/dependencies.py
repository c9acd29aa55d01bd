# Inyección de dependencias para FastAPI

import logging
from typing import Optional

from adapters.factory import DependencyContainer
from core.ports.cache_port import CachePort
from core.services.cache.chart_cache import ChartCache
from core.services.datasource import DatasourceService
from core.services.pipeline import TextToSQLPipeline

logger = logging.getLogger(__name__)

# code de ChartSQLError -> status HTTP
ERROR_STATUS = {
    "CONFIG_ERROR": 400,
    "CONNECTION_ERROR": 502,
    "UNSUPPORTED_BACKEND": 400,
    "UNSAFE_QUERY": 422,
    "GENERATION_ERROR": 502,
    "EXECUTION_ERROR": 422,
    "NOT_FOUND": 404,
    "CONTEXT_ERROR": 400,
}


def http_status(code: Optional[str]) -> int:
    return ERROR_STATUS.get(code or "", 500)


class AppDependencies:
    """
    Contenedor de dependencias de la aplicación.
    Singleton que se inicializa una vez y provee dependencias a los endpoints.
    """

    _instance: Optional["AppDependencies"] = None

    def __init__(self, container: Optional[DependencyContainer] = None):
        self.container = container or DependencyContainer()

    @classmethod
    def get_instance(cls) -> "AppDependencies":
        """Obtiene la instancia singleton"""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset para testing"""
        cls._instance = None

    @property
    def pipeline(self) -> TextToSQLPipeline:
        return self.container.pipeline

    @property
    def datasources(self) -> DatasourceService:
        return self.container.datasources

    @property
    def chart_cache(self) -> ChartCache:
        return self.container.chart_cache

    @property
    def store(self) -> CachePort:
        return self.container.store

    def initialize_all(self) -> None:
        """Pre-carga las dependencias que no requieren red (para startup)"""
        _ = self.pipeline
        logger.info("Dependencias inicializadas")


# Funciones para FastAPI Depends()


def get_deps() -> AppDependencies:
    """Obtiene el contenedor de dependencias"""
    return AppDependencies.get_instance()


def get_pipeline_dep() -> TextToSQLPipeline:
    return get_deps().pipeline


def get_datasources_dep() -> DatasourceService:
    return get_deps().datasources


def get_chart_cache_dep() -> ChartCache:
    return get_deps().chart_cache
