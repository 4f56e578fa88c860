"""Data models for extraction, transcription and pipeline outcomes."""

from .extraction import (
    AudioFormat,
    AudioQualityTier,
    ExtractionErrorKind,
    ExtractionJob,
    ExtractionResult,
    JobState,
)
from .pipeline import FailureCategory, PipelineOutcome, ProcessRequest
from .transcription import (
    ClassifiedFailure,
    TranscriptionAttempt,
    TranscriptionErrorKind,
    TranscriptionResult,
)

__all__ = [
    "AudioFormat",
    "AudioQualityTier",
    "ClassifiedFailure",
    "ExtractionErrorKind",
    "ExtractionJob",
    "ExtractionResult",
    "FailureCategory",
    "JobState",
    "PipelineOutcome",
    "ProcessRequest",
    "TranscriptionAttempt",
    "TranscriptionErrorKind",
    "TranscriptionResult",
]
