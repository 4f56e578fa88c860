"""Transcript cache backends.

This module provides two implementations of the :class:`CacheStore` contract:

- RedisCache: shared store for multi-process deployments, using ``SET EX``
  so expiry is enforced by the server.
- InMemoryCache: per-process store with TTL expiry and LRU eviction, used by
  the CLI and the test suite.

Both raise :class:`~transcript_pipeline.exceptions.CacheError` on backend
failure; deciding what a failure means is the caller's job.
"""
from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Optional, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..exceptions import CacheError

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Abstract base class for transcript cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Retrieves a value from cache.

        Returns:
            The cached value or None if not found or expired.

        Raises:
            CacheError: If the cache operation fails.
        """

    @abstractmethod
    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """
        Stores a value that expires after ``ttl_seconds``.

        Raises:
            CacheError: If the cache operation fails.
        """

    async def close(self) -> None:
        """Release backend resources."""


class RedisCache(CacheStore):
    """Cache implementation using Redis."""

    def __init__(self, client: aioredis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self._client.get(key)
        except RedisError as e:
            logger.exception("Redis get failed", extra={"key": key})
            raise CacheError(key, "get", cause=e) from e
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        logger.info("Cache hit", extra={"key": key})
        return value

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            logger.exception("Redis set failed", extra={"key": key})
            raise CacheError(key, "set", cause=e) from e
        logger.info("Cache set", extra={"key": key, "ttl": ttl_seconds})

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryCache(CacheStore):
    """In-memory cache with per-entry TTL and LRU eviction.

    Entries are held in an OrderedDict; reads move an entry to the end and
    inserts beyond ``max_entries`` evict from the front. All access goes
    through an asyncio lock, so concurrent request coroutines see consistent
    state.

    Attributes:
        max_entries: Maximum number of live entries
    """

    def __init__(self, max_entries: int = 1000, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise CacheError(key, "set", cause=ValueError("ttl_seconds must be positive"))
        async with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry: {evicted}")

    def __len__(self) -> int:
        return len(self._entries)
