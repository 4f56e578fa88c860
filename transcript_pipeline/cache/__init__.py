"""Transcript caching layer.

Usage::

    from transcript_pipeline.cache import RedisCache, build_cache_key

    cache = RedisCache.from_url("redis://localhost:6379/0")
    key = build_cache_key("viajera", "dQw4w9WgXcQ")
    text = await cache.get(key)
    if text is None:
        await cache.set_with_ttl(key, transcript, 86400)
"""

from ..config import Config
from .backends import CacheStore, InMemoryCache, RedisCache
from .keys import build_cache_key


def create_cache(config: Config) -> CacheStore:
    """Build the cache backend named by ``config.cache_backend``."""
    if config.cache_backend == "memory":
        return InMemoryCache()
    if config.cache_backend == "redis":
        return RedisCache.from_url(config.redis_url)
    raise ValueError(f"Unknown cache backend: {config.cache_backend}")


__all__ = [
    "CacheStore",
    "InMemoryCache",
    "RedisCache",
    "build_cache_key",
    "create_cache",
]
