"""Core services: admission control, audio extraction and transcription."""

from .audio_extraction import AudioExtractor, PendingCleanupRegistry
from .rate_limiter import (
    InMemorySlidingWindowRateLimiter,
    RateLimitDecision,
    RateLimiter,
    RedisSlidingWindowRateLimiter,
    client_identity_from_headers,
    create_rate_limiter,
)
from .transcription import TranscriptionClient, classify_error

__all__ = [
    "AudioExtractor",
    "InMemorySlidingWindowRateLimiter",
    "PendingCleanupRegistry",
    "RateLimitDecision",
    "RateLimiter",
    "RedisSlidingWindowRateLimiter",
    "TranscriptionClient",
    "classify_error",
    "client_identity_from_headers",
    "create_rate_limiter",
]
