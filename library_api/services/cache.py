"""
Caching Service

Cache-aside memoization for the library's read operations.

Features:
- CacheStore interface with Redis and in-process implementations
- Cache key generation helpers
- Pydantic JSON serialization/deserialization
- Graceful degradation when the store is unavailable

Cache Strategy:
- Search results: 5 minute TTL
- Recommendations: 10 minute TTL
- Book detail: 60 minute TTL
- Hot/related lists: 10 minute TTL
- No invalidation on catalog writes; entries simply expire
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from urllib.parse import quote

import redis
from pydantic import BaseModel, ValidationError
from redis.exceptions import RedisError

from library_api.exceptions import CacheUnavailable

logger = logging.getLogger(__name__)

KEY_PREFIX = "library"

M = TypeVar("M", bound=BaseModel)


# =============================================================================
# Cache Key Generation
# =============================================================================

def make_cache_key(operation: str, **params: Any) -> str:
    """
    Generate a consistent cache key from an operation and its parameters.

    Parameters are sorted by name and None values are left out, so the same
    logical request always maps to the same key. Values are percent-encoded
    so separators inside user text cannot collide.

    Examples:
        make_cache_key("book", id="b001") -> "library:book:id=b001"
        make_cache_key("search", q="小说", page=1)
            -> "library:search:page=1:q=%E5%B0%8F%E8%AF%B4"
    """
    parts = [KEY_PREFIX, operation]
    for name in sorted(params):
        value = params[name]
        if value is not None:
            parts.append(f"{name}={quote(str(value), safe='')}")
    return ":".join(parts)


# =============================================================================
# Cache Stores
# =============================================================================

class CacheStore(ABC):
    """Key-value store with per-entry expiry. Failures raise CacheUnavailable."""

    name: str = "cache"

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        ...

    def stats(self) -> dict[str, Any]:
        return {"status": "connected", "backend": self.name}

    def close(self) -> None:
        return None


class RedisCacheStore(CacheStore):
    """Redis-backed store (SETEX with the entry TTL)."""

    name = "redis"

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        client = redis.from_url(
            url,
            decode_responses=True,  # Return strings instead of bytes
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as e:
            logger.warning(f"Failed to connect to Redis: {e}. Caching degraded.")
            return False

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except RedisError as e:
            raise CacheUnavailable(f"Cache get failed: {e}") from e

    def set(self, key: str, value: str, ttl: int) -> None:
        try:
            self._client.setex(key, ttl, value)
        except RedisError as e:
            raise CacheUnavailable(f"Cache set failed: {e}") from e

    def stats(self) -> dict[str, Any]:
        try:
            info = self._client.info("stats")
            return {
                "status": "connected",
                "backend": self.name,
                "hits": info.get("keyspace_hits", 0),
                "misses": info.get("keyspace_misses", 0),
                "keys": self._client.dbsize(),
            }
        except RedisError:
            return {"status": "disconnected", "backend": self.name}

    def close(self) -> None:
        self._client.close()
        logger.info("Redis connection closed")


class MemoryCacheStore(CacheStore):
    """In-process store (cache_backend=memory) for single-worker deployments and tests."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, tuple[str, float]] = {}
        self._clock = clock

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: str, ttl: int) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    def stats(self) -> dict[str, Any]:
        return {"status": "connected", "backend": self.name, "keys": len(self._entries)}


# =============================================================================
# Cache-Aside Coordinator
# =============================================================================

class CacheAside:
    """
    Read-through / write-after memoization around async computations.

    A missing or failing store turns every read into a miss and every write
    into a no-op; CacheUnavailable never reaches the caller. Cached values
    are returned as-is, without re-validation.
    """

    def __init__(self, store: CacheStore | None) -> None:
        self.store = store

    @property
    def enabled(self) -> bool:
        return self.store is not None

    def _read(self, key: str, model: type[M]) -> M | None:
        if self.store is None:
            return None
        try:
            raw = self.store.get(key)
        except CacheUnavailable as e:
            logger.warning(f"Cache get error for {key}: {e.message}")
            return None

        if raw is None:
            logger.debug(f"Cache MISS: {key}")
            return None

        try:
            value = model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Cache decode error for {key}: {e}")
            return None
        logger.debug(f"Cache HIT: {key}")
        return value

    def _write(self, key: str, value: BaseModel, ttl: int) -> None:
        if self.store is None:
            return
        try:
            self.store.set(key, value.model_dump_json(), ttl)
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
        except CacheUnavailable as e:
            logger.warning(f"Cache set error for {key}: {e.message}")

    async def get_or_compute(
        self,
        operation: str,
        params: dict[str, Any],
        ttl: int,
        compute: Callable[[], Awaitable[M]],
        model: type[M],
        cacheable: Callable[[M], bool] | None = None,
    ) -> M:
        """
        Return the cached result for (operation, params) or compute it.

        Args:
            operation: Operation name, first part of the key
            params: Normalized parameters identifying the request
            ttl: Time-to-live in seconds for a fresh entry
            compute: Coroutine factory producing the result on a miss
            model: Pydantic model used to decode cached JSON
            cacheable: Predicate deciding whether a fresh result is stored
        """
        key = make_cache_key(operation, **params)

        cached = self._read(key, model)
        if cached is not None:
            return cached

        result = await compute()
        if cacheable is None or cacheable(result):
            self._write(key, result, ttl)
        return result

    def stats(self) -> dict[str, Any]:
        if self.store is None:
            return {"status": "disabled"}
        return self.store.stats()

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
