"""Utility modules for the transcript pipeline."""

from .retry import RetryConfig, calculate_delay
from .secure_temp import build_temp_audio_path, remove_file
from .validation import extract_video_id, is_valid_youtube_url, validate_audio_upload

__all__ = [
    "RetryConfig",
    "build_temp_audio_path",
    "calculate_delay",
    "extract_video_id",
    "is_valid_youtube_url",
    "remove_file",
    "validate_audio_upload",
]
