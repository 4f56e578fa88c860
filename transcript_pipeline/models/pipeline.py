"""Request and outcome models for the pipeline orchestrator."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator


class ProcessRequest(BaseModel):
    """Inbound request body: ``{"url": "..."}``."""

    url: str

    @field_validator("url")
    @classmethod
    def url_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must not be empty")
        return v


class FailureCategory(Enum):
    """Failure categories with the status code each one maps to."""

    ADMISSION = ("ADMISSION_DENIED", 429)
    VALIDATION = ("VALIDATION_ERROR", 400)
    EXTRACTION = ("EXTRACTION_FAILED", 500)
    TRANSCRIPTION = ("TRANSCRIPTION_FAILED", 500)
    UNAVAILABLE = ("SERVICE_UNAVAILABLE", 503)
    UNEXPECTED = ("UNEXPECTED_ERROR", 500)

    def __init__(self, label: str, status: int):
        self.label = label
        self.status = status


@dataclass
class PipelineOutcome:
    """Final answer for one pipeline request, success or failure."""

    success: bool
    status: int
    duration_ms: int
    video_id: Optional[str] = None
    transcript: Optional[str] = None
    from_cache: bool = False
    cache_key: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None
    category: Optional[FailureCategory] = None
    remaining: Optional[int] = None
    reset_at: Optional[float] = None

    @classmethod
    def succeeded(
        cls,
        video_id: str,
        transcript: str,
        cache_key: str,
        from_cache: bool,
        duration_ms: int,
    ) -> "PipelineOutcome":
        return cls(
            success=True,
            status=200,
            duration_ms=duration_ms,
            video_id=video_id,
            transcript=transcript,
            from_cache=from_cache,
            cache_key=cache_key,
        )

    @classmethod
    def failed(
        cls,
        category: FailureCategory,
        error: str,
        duration_ms: int,
        code: Optional[str] = None,
        **extra: Any,
    ) -> "PipelineOutcome":
        return cls(
            success=False,
            status=category.status,
            duration_ms=duration_ms,
            error=error,
            code=code,
            category=category,
            **extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the response body shape."""
        if self.success:
            return {
                "success": True,
                "videoId": self.video_id,
                "transcript": self.transcript,
                "fromCache": self.from_cache,
                "duration": self.duration_ms,
                "cacheKey": self.cache_key,
            }

        body: Dict[str, Any] = {"success": False, "error": self.error}
        if self.code:
            body["code"] = self.code
        if self.remaining is not None:
            body["remaining"] = self.remaining
        if self.reset_at is not None:
            body["resetAt"] = datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()
        return body
