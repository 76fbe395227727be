"""Key-value cache contract and implementations.

The engine only relies on get / set-with-TTL / delete / delete-by-pattern.
Values are JSON-compatible (dicts, lists, numbers, strings), so the same
payloads work in memory and in Redis.
"""

import copy
import fnmatch
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from redis.asyncio import Redis

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


class Cache(ABC):
    """Async key-value cache with per-entry TTLs."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None on a miss."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        """Store a value that expires after ``ttl_seconds``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key if present."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> None:
        """Remove every key matching a glob pattern (``*``, ``?``, ``[]``)."""


class InMemoryCache(Cache):
    """Process-local cache used in tests and single-instance deployments.

    Values are deep-copied on the way in and out so callers never share
    mutable state through the cache, matching an external store.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, copy.deepcopy(value))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        for key in [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]:
            del self._entries[key]

    def keys(self) -> list:
        """Live keys, mainly for inspection in tests."""
        now = self._clock()
        return [k for k, (expires_at, _) in self._entries.items() if expires_at > now]


class RedisCache(Cache):
    """Cache backed by Redis, storing values as JSON strings."""

    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[Any]:
        payload = await self.client.get(key)
        if payload is None:
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        await self.client.set(key, json.dumps(value), ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    async def delete_pattern(self, pattern: str) -> None:
        keys = [key async for key in self.client.scan_iter(match=pattern)]
        if keys:
            await self.client.delete(*keys)


class ResilientCache(Cache):
    """Wraps a cache so backend failures behave like misses.

    Reads that fail return None; writes and deletes that fail are logged and
    dropped. The engine never sees a cache exception.
    """

    def __init__(self, backend: Cache):
        self.backend = backend

    async def get(self, key: str) -> Optional[Any]:
        try:
            return await self.backend.get(key)
        except Exception as e:
            logger.warning(
                "Cache get failed, treating as miss",
                extra={"cache_key": key, "error": str(e), "error_type": type(e).__name__},
            )
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        try:
            await self.backend.set(key, value, ttl_seconds)
        except Exception as e:
            logger.warning(
                "Cache set failed",
                extra={"cache_key": key, "error": str(e), "error_type": type(e).__name__},
            )

    async def delete(self, key: str) -> None:
        try:
            await self.backend.delete(key)
        except Exception as e:
            logger.warning(
                "Cache delete failed",
                extra={"cache_key": key, "error": str(e), "error_type": type(e).__name__},
            )

    async def delete_pattern(self, pattern: str) -> None:
        try:
            await self.backend.delete_pattern(pattern)
        except Exception as e:
            logger.warning(
                "Cache delete_pattern failed",
                extra={"cache_pattern": pattern, "error": str(e), "error_type": type(e).__name__},
            )
