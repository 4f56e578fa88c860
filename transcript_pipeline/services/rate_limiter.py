"""Sliding-window admission control keyed by client identity.

Both limiters keep a log of admitted request timestamps per identity and admit
a new request only while fewer than ``capacity`` of them fall inside the last
``window_seconds``. Denied requests are not recorded.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Mapping, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..config import Config
from ..exceptions import RateLimiterUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10
DEFAULT_WINDOW_SECONDS = 60.0

# Evict, count and conditionally append in one step so concurrent callers on
# the same key cannot overshoot capacity. Server time avoids client clock skew.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local window = tonumber(ARGV[1])
local capacity = tonumber(ARGV[2])
local member = ARGV[3]
local t = redis.call('TIME')
local now = tonumber(t[1]) * 1000 + math.floor(tonumber(t[2]) / 1000)
redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
local allowed = 0
if count < capacity then
  redis.call('ZADD', key, now, member)
  count = count + 1
  allowed = 1
end
redis.call('PEXPIRE', key, window)
local reset = now + window
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
if oldest[2] then
  reset = tonumber(oldest[2]) + window
end
return {allowed, capacity - count, reset}
"""


@dataclass(frozen=True)
class RateLimitDecision:
    """Admission decision for one request.

    Attributes:
        allowed: Whether the request may proceed
        remaining: Requests still available in the current window
        reset_at: Unix timestamp (seconds) when the oldest counted request
            leaves the window
        limit: Window capacity
    """

    allowed: bool
    remaining: int
    reset_at: float
    limit: int


class RateLimiter(ABC):
    """Admission control contract."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, window_seconds: float = DEFAULT_WINDOW_SECONDS):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.capacity = capacity
        self.window_seconds = window_seconds

    @abstractmethod
    async def admit(self, identity: str) -> RateLimitDecision:
        """Count a request for ``identity`` if capacity allows.

        Raises:
            RateLimiterUnavailableError: If the backing store fails
        """

    async def close(self) -> None:
        """Release backend resources."""


class RedisSlidingWindowRateLimiter(RateLimiter):
    """Sliding-window limiter backed by a Redis sorted set per identity."""

    def __init__(
        self,
        client: aioredis.Redis,
        capacity: int = DEFAULT_CAPACITY,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        prefix: str = "viajera:ratelimit",
    ):
        super().__init__(capacity, window_seconds)
        self._client = client
        self._prefix = prefix
        self._script = client.register_script(SLIDING_WINDOW_SCRIPT)

    def key_for(self, identity: str) -> str:
        return f"{self._prefix}:{identity}"

    async def admit(self, identity: str) -> RateLimitDecision:
        window_ms = int(self.window_seconds * 1000)
        try:
            allowed, remaining, reset_ms = await self._script(
                keys=[self.key_for(identity)],
                args=[window_ms, self.capacity, uuid.uuid4().hex],
            )
        except RedisError as e:
            logger.error(f"Rate limit check failed for {identity}: {e}")
            raise RateLimiterUnavailableError(identity, cause=e) from e

        return RateLimitDecision(
            allowed=bool(int(allowed)),
            remaining=max(0, int(remaining)),
            reset_at=int(reset_ms) / 1000.0,
            limit=self.capacity,
        )

    async def close(self) -> None:
        await self._client.aclose()


class InMemorySlidingWindowRateLimiter(RateLimiter):
    """Single-process sliding-window limiter.

    Safe for concurrent coroutines on one event loop; not shared across
    processes. Identities whose whole log has left the window are pruned at
    most once per window width, so memory tracks only recently active clients.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(capacity, window_seconds)
        self._clock = clock
        self._windows: Dict[str, Deque[float]] = {}
        self._last_prune = clock()
        self._lock = asyncio.Lock()

    async def admit(self, identity: str) -> RateLimitDecision:
        async with self._lock:
            now = self._clock()
            self._prune(now)
            window = self._windows.setdefault(identity, deque())
            while window and window[0] <= now - self.window_seconds:
                window.popleft()

            allowed = len(window) < self.capacity
            if allowed:
                window.append(now)

            reset_at = window[0] + self.window_seconds if window else now + self.window_seconds
            return RateLimitDecision(
                allowed=allowed,
                remaining=self.capacity - len(window),
                reset_at=reset_at,
                limit=self.capacity,
            )

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.window_seconds:
            return
        horizon = now - self.window_seconds
        stale = [identity for identity, window in self._windows.items() if not window or window[-1] <= horizon]
        for identity in stale:
            del self._windows[identity]
        self._last_prune = now

    def __len__(self) -> int:
        return len(self._windows)


def create_rate_limiter(config: Config) -> RateLimiter:
    """Build the limiter backend named by ``config.rate_limit_backend``."""
    if config.rate_limit_backend == "memory":
        return InMemorySlidingWindowRateLimiter(
            capacity=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window,
        )
    if config.rate_limit_backend == "redis":
        return RedisSlidingWindowRateLimiter(
            aioredis.Redis.from_url(config.redis_url, decode_responses=True),
            capacity=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window,
            prefix=f"{config.namespace}:ratelimit",
        )
    raise ValueError(f"Unknown rate limit backend: {config.rate_limit_backend}")


def client_identity_from_headers(headers: Mapping[str, str]) -> str:
    """Best-effort client IP from proxy headers.

    Uses the first ``X-Forwarded-For`` entry, then ``X-Real-IP``, and falls
    back to ``"unknown"``. Header names are matched case-insensitively.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    forwarded: Optional[str] = lowered.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (lowered.get("x-real-ip") or "").strip()
    return real_ip or "unknown"
