# Store Redis con serialización JSON

import logging
from typing import Any, List, Optional

import redis

from adapters.outbound.cache import codec
from config.settings import settings
from core.domain.errors import CacheError
from core.ports.cache_port import CachePort

logger = logging.getLogger(__name__)


# Wrapper de Redis que implementa CachePort
class RedisCache(CachePort):
    def __init__(self, url: Optional[str] = None, client=None):
        self.url = url or settings.redis.url
        self.client = client
        if self.client is None:
            self._connect()

    def _connect(self):
        try:
            self.client = redis.from_url(
                self.url, decode_responses=True, socket_connect_timeout=2
            )
            self.client.ping()
            logger.info("Redis conectado")
        except Exception as e:
            # Se reintenta en cada operación; el cache nunca bloquea el arranque
            logger.warning(f"Redis no disponible: {e}")

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self.client.get(key)
        except redis.RedisError as e:
            raise CacheError(f"Redis get error: {e}", cache_type="redis") from e
        return codec.loads(data) if data else None

    def set(self, key: str, value: Any, ttl: int = 3600) -> None:
        try:
            if ttl <= 0:
                # TTL vencido: la clave no debe quedar visible
                self.client.delete(key)
                return
            self.client.setex(key, int(ttl), codec.dumps(value))
        except redis.RedisError as e:
            raise CacheError(f"Redis set error: {e}", cache_type="redis") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            raise CacheError(f"Redis delete error: {e}", cache_type="redis") from e

    def exists(self, key: str) -> bool:
        try:
            return bool(self.client.exists(key))
        except redis.RedisError as e:
            raise CacheError(f"Redis exists error: {e}", cache_type="redis") from e

    def keys(self, prefix: str) -> List[str]:
        try:
            return list(self.client.scan_iter(match=f"{prefix}*", count=500))
        except redis.RedisError as e:
            raise CacheError(f"Redis scan error: {e}", cache_type="redis") from e

    def is_connected(self) -> bool:
        try:
            self.client.ping()
            return True
        except Exception:
            return False
