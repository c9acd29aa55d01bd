# Store en memoria con TTL (desarrollo local y tests)

import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from adapters.outbound.cache import codec
from core.ports.cache_port import CachePort


class InMemoryCache(CachePort):
    """
    Mismo contrato que RedisCache dentro de un solo proceso.
    Los valores se guardan serializados para que el llamador nunca
    comparta referencias con el store.
    """

    def __init__(self):
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _alive(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None
        payload, expires_at = item
        if time.monotonic() >= expires_at:
            del self._data[key]
            return None
        return payload

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            payload = self._alive(key)
        return codec.loads(payload) if payload is not None else None

    def set(self, key: str, value: Any, ttl: int = 3600) -> None:
        payload = codec.dumps(value)
        with self._lock:
            if ttl <= 0:
                self._data.pop(key, None)
                return
            self._data[key] = (payload, time.monotonic() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._alive(key) is not None

    def keys(self, prefix: str) -> List[str]:
        with self._lock:
            return [k for k in list(self._data) if k.startswith(prefix) and self._alive(k)]

    def is_connected(self) -> bool:
        return True

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
