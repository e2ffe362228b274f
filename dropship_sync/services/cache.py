"""Key-value cache with per-key TTL.

Every piece of shared mutable state (token, feed snapshot, SKU set, sync
lock, sync status, persisted settings) goes through a TTLCache handle that
is passed into the services that need it. Values are JSON-serializable.

Implementations:
    - RedisCache: production backend on redis.asyncio
    - MemoryCache: single-process backend used by tests and local runs
"""
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = structlog.get_logger(__name__)

# Cache key constants
SETTINGS_KEY = "settings:feed"
TOKEN_CACHE_KEY = "auth:token"
FEED_CACHE_KEY = "feed:snapshot"
SKU_CACHE_VERSION_KEY = "skus:version"
SYNC_STATUS_KEY = "sync:status"


class TTLCache(ABC):
    """Abstract key-value store with optional expiry per key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the decoded value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store a value, replacing any existing one."""

    @abstractmethod
    async def add(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """Store a value only if the key is absent. Returns True when stored."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key (no-op when absent)."""

    @abstractmethod
    async def delete_if_equals(self, key: str, value: Any) -> bool:
        """Atomically remove a key only if it holds ``value``."""


class RedisCache(TTLCache):
    """TTLCache backed by Redis, storing JSON-encoded strings."""

    # Atomic check-and-delete
    _DELETE_IF_EQUALS = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis: Redis, prefix: str = "dropship:"):
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._redis.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("cache_value_undecodable", key=key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        await self._redis.set(self._key(key), json.dumps(value), ex=ttl_seconds)

    async def add(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        result = await self._redis.set(
            self._key(key),
            json.dumps(value),
            nx=True,
            ex=ttl_seconds,
        )
        return bool(result)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def delete_if_equals(self, key: str, value: Any) -> bool:
        try:
            result = await self._redis.eval(
                self._DELETE_IF_EQUALS, 1, self._key(key), json.dumps(value)
            )
        except RedisError as e:
            logger.error("cache_delete_if_equals_failed", key=key, error=str(e))
            raise
        return bool(result)


class MemoryCache(TTLCache):
    """In-process TTLCache.

    Args:
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        encoded, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return encoded

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return None if ttl_seconds is None else self._clock() + ttl_seconds

    async def get(self, key: str) -> Optional[Any]:
        encoded = self._live(key)
        return None if encoded is None else json.loads(encoded)

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        self._data[key] = (json.dumps(value), self._expiry(ttl_seconds))

    async def add(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        if self._live(key) is not None:
            return False
        await self.set(key, value, ttl_seconds)
        return True

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_if_equals(self, key: str, value: Any) -> bool:
        encoded = self._live(key)
        if encoded is None or encoded != json.dumps(value):
            return False
        del self._data[key]
        return True
