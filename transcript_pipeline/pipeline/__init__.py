"""Request pipeline composing admission, cache, extraction and transcription."""

from .transcript_pipeline import TranscriptPipeline

__all__ = ["TranscriptPipeline"]
