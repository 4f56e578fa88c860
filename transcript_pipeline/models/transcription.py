"""Data models for transcription attempts and results."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TranscriptionErrorKind(Enum):
    """Fixed taxonomy every speech-to-text failure is mapped onto."""

    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    SERVER_ERROR = "SERVER_ERROR"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"

    @property
    def is_permanent(self) -> bool:
        """Whether waiting and retrying can never change the outcome."""
        return self in _PERMANENT_KINDS


_PERMANENT_KINDS = frozenset(
    {
        TranscriptionErrorKind.AUTH_ERROR,
        TranscriptionErrorKind.UNSUPPORTED_FORMAT,
        TranscriptionErrorKind.FILE_TOO_LARGE,
    }
)


@dataclass(frozen=True)
class ClassifiedFailure:
    """Tagged failure produced at the service-call boundary."""

    kind: TranscriptionErrorKind
    message: str
    status_code: Optional[int] = None


@dataclass
class TranscriptionAttempt:
    """One iteration of the retry loop."""

    index: int
    delay: float = 0.0
    error_kind: Optional[TranscriptionErrorKind] = None
    message: Optional[str] = None


@dataclass
class TranscriptionResult:
    """Outcome of a transcription request across all of its attempts."""

    success: bool
    duration_ms: int
    text: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[TranscriptionErrorKind] = None
    attempts: List[TranscriptionAttempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {"success": self.success, "duration": self.duration_ms}
        if self.success:
            data["text"] = self.text
        else:
            data["error"] = self.error
            data["code"] = self.error_kind.value if self.error_kind else None
        return data
