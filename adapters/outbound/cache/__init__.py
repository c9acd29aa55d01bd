# Stores de cache

import logging

from config.settings import settings
from core.ports.cache_port import CachePort

logger = logging.getLogger(__name__)

_cache_store = None


def create_cache_store(backend: str = None) -> CachePort:
    backend = (backend or settings.cache.backend).lower()
    if backend == "memory":
        from adapters.outbound.cache.memory_cache import InMemoryCache

        logger.info("Cache: memoria local")
        return InMemoryCache()
    if backend == "redis":
        from adapters.outbound.cache.redis_cache import RedisCache

        return RedisCache()
    raise ValueError(f"Backend de cache no soportado: {backend}. Usa: redis, memory")


def get_cache_store() -> CachePort:
    global _cache_store
    if _cache_store is None:
        _cache_store = create_cache_store()
    return _cache_store
