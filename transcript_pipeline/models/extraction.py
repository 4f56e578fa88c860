"""Data models for audio extraction jobs and their results."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class AudioFormat(Enum):
    """Audio formats the downloader can be asked to produce."""

    MP3 = "mp3"
    WAV = "wav"
    WEBM = "webm"
    M4A = "m4a"


class AudioQualityTier(Enum):
    """Quality tiers, ordered from fastest to best sounding."""

    LOWEST = "lowest"
    LOW = "low"
    MEDIUM = "medium"


class ExtractionErrorKind(Enum):
    """Terminal failure kinds for one extraction job."""

    INVALID_URL = "INVALID_URL"
    IDENTIFIER_MISSING = "IDENTIFIER_MISSING"
    TIMEOUT = "TIMEOUT"
    PROCESS_ERROR = "PROCESS_ERROR"
    OUTPUT_MISSING = "OUTPUT_MISSING"


class JobState(Enum):
    """Lifecycle states of an extraction job."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed-out"


@dataclass
class ExtractionJob:
    """A single extraction attempt owned by the audio extractor."""

    video_id: str
    audio_format: AudioFormat
    output_path: Path
    deadline: float
    state: JobState = JobState.PENDING
    started_at: float = field(default_factory=time.monotonic)

    def finish(self, state: JobState) -> None:
        if self.state is not JobState.PENDING:
            raise RuntimeError(f"Job for {self.video_id} already finished as {self.state.value}")
        self.state = state

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


@dataclass
class ExtractionResult:
    """Outcome of an extraction job.

    On success ``audio_path`` points at a file that the extractor still owns;
    callers must hand it back through ``AudioExtractor.cleanup_file``.
    """

    success: bool
    duration_ms: int
    video_id: Optional[str] = None
    audio_path: Optional[Path] = None
    filename: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ExtractionErrorKind] = None

    @classmethod
    def failure(
        cls,
        kind: ExtractionErrorKind,
        message: str,
        duration_ms: int,
        video_id: Optional[str] = None,
    ) -> "ExtractionResult":
        return cls(
            success=False,
            duration_ms=duration_ms,
            video_id=video_id,
            error=message,
            error_kind=kind,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "videoId": self.video_id,
            "audioPath": str(self.audio_path) if self.audio_path else None,
            "filename": self.filename,
            "duration": self.duration_ms,
            "error": self.error,
            "code": self.error_kind.value if self.error_kind else None,
        }
