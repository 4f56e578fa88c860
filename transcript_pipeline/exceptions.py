"""Exception hierarchy for the transcript pipeline."""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(PipelineError):
    """Raised when required configuration is missing or invalid."""


class ValidationError(PipelineError):
    """Raised when request input is malformed or missing."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class AdmissionDeniedError(PipelineError):
    """Raised when a client exceeds its request allowance."""

    def __init__(self, identity: str, remaining: int, reset_at: float):
        self.identity = identity
        self.remaining = remaining
        self.reset_at = reset_at
        super().__init__(f"Rate limit exceeded for '{identity}'")


class RateLimiterUnavailableError(PipelineError):
    """Raised when the rate limiter backing store cannot be reached."""

    def __init__(self, identity: str, cause: Optional[Exception] = None):
        self.identity = identity
        self.cause = cause
        super().__init__(f"Rate limiter unavailable while checking '{identity}'")


class CacheError(PipelineError):
    """Raised when cache operations fail."""

    def __init__(self, key: str, operation: str, cause: Optional[Exception] = None):
        self.key = key
        self.operation = operation
        self.cause = cause
        super().__init__(f"Cache {operation} failed for key '{key}'")


class ExtractionError(PipelineError):
    """Raised when audio extraction fails.

    Attributes:
        kind: ExtractionErrorKind describing the failure
    """

    def __init__(self, kind, message: str):
        self.kind = kind
        super().__init__(message)


class TranscriptionError(PipelineError):
    """Raised when transcription fails after classification and retries.

    Attributes:
        kind: TranscriptionErrorKind describing the failure
    """

    def __init__(self, kind, message: str):
        self.kind = kind
        super().__init__(message)
