# Fábrica - Crea el Pipeline y los servicios con todas las dependencias inyectadas

import logging
from typing import Optional

from config.settings import settings
from adapters.outbound.cache import create_cache_store
from adapters.outbound.credentials import FernetCredentialDecryptor, FileDatasourceRegistry
from adapters.outbound.database import create_engine
from adapters.outbound.llm import LLMRegistry, get_llm_registry
from core.ports.cache_port import CachePort
from core.services.cache.chart_cache import ChartCache
from core.services.datasource import DatasourceService
from core.services.pipeline import TextToSQLPipeline

logger = logging.getLogger(__name__)


class DependencyContainer:
    """Contenedor de dependencias. Crea e inyecta todas las dependencias concretas."""

    def __init__(
        self,
        cache_backend: Optional[str] = None,
        datasources_file: Optional[str] = None,
        encryption_key: Optional[str] = None,
    ):
        self.cache_backend = cache_backend or settings.cache.backend
        self.datasources_file = datasources_file or settings.security.datasources_file
        self.encryption_key = encryption_key or settings.security.encryption_key
        self._store = None
        self._chart_cache = None
        self._datasources = None
        self._pipeline = None

    @property
    def store(self) -> CachePort:
        if self._store is None:
            self._store = create_cache_store(self.cache_backend)
        return self._store

    @property
    def chart_cache(self) -> ChartCache:
        if self._chart_cache is None:
            self._chart_cache = ChartCache(self.store)
        return self._chart_cache

    @property
    def llm_registry(self) -> LLMRegistry:
        return get_llm_registry()

    @property
    def datasources(self) -> DatasourceService:
        if self._datasources is None:
            self._datasources = DatasourceService(
                registry=FileDatasourceRegistry(self.datasources_file),
                decryptor=FernetCredentialDecryptor(self.encryption_key),
                engine_factory=create_engine,
            )
        return self._datasources

    @property
    def pipeline(self) -> TextToSQLPipeline:
        if self._pipeline is None:
            self._pipeline = TextToSQLPipeline(
                llm_registry=self.llm_registry,
                engine_factory=create_engine,
                chart_cache=self.chart_cache,
                config_resolver=self._resolve_config,
            )
        return self._pipeline

    def _resolve_config(self, datasource_id: str):
        return self.datasources.resolve_config(datasource_id)


_container: Optional[DependencyContainer] = None


def get_container() -> DependencyContainer:
    """Obtiene instancia singleton del contenedor"""
    global _container
    if _container is None:
        _container = DependencyContainer()
    return _container


def get_pipeline() -> TextToSQLPipeline:
    return get_container().pipeline
