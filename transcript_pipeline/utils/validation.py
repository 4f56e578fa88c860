"""Input validation for media references and uploaded audio."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Matches:
# - https://www.youtube.com/watch?v=VIDEO_ID
# - https://youtu.be/VIDEO_ID
# - either form followed by &/? query parameters, which are ignored
YOUTUBE_URL_PATTERN = re.compile(
    r"^(https?://)?(www\.)?(youtube\.com/watch\?v=|youtu\.be/)([a-zA-Z0-9_-]{11})([&?].*)?$"
)

VIDEO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")

MAX_UPLOAD_SIZE = 25 * 1024 * 1024  # service limit
SUPPORTED_EXTENSIONS = (".mp3", ".mp4", ".wav", ".webm", ".m4a")
SUPPORTED_MIME_TYPES = ("audio/mpeg", "audio/mp4", "audio/wav", "audio/webm", "audio/m4a")

_MIME_BY_EXTENSION = {
    ".mp3": "audio/mpeg",
    ".mp4": "audio/mp4",
    ".m4a": "audio/mp4",
    ".wav": "audio/wav",
    ".webm": "audio/webm",
}


def is_valid_youtube_url(url: Optional[str]) -> bool:
    """Check whether ``url`` is a recognized watch or short-link URL."""
    if not url or not isinstance(url, str):
        return False
    return YOUTUBE_URL_PATTERN.match(url) is not None


def extract_video_id(url: Optional[str]) -> Optional[str]:
    """Return the 11-character video ID embedded in ``url``, or None.

    Both recognized forms yield the same ID:

        >>> extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42")
        'dQw4w9WgXcQ'
        >>> extract_video_id("https://youtu.be/dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
    """
    if not url or not isinstance(url, str):
        return None
    match = YOUTUBE_URL_PATTERN.match(url)
    return match.group(4) if match else None


def is_valid_video_id(video_id: Optional[str]) -> bool:
    if not video_id or not isinstance(video_id, str):
        return False
    return VIDEO_ID_PATTERN.match(video_id) is not None


def detect_mimetype(path: Path) -> str:
    """Guess the upload MIME type from the file extension."""
    return _MIME_BY_EXTENSION.get(path.suffix.lower(), "audio/mpeg")


@dataclass(frozen=True)
class UploadCheck:
    """Result of validating an audio upload before it is sent anywhere."""

    valid: bool
    error: Optional[str] = None
    too_large: bool = False


def validate_audio_upload(
    filename: str,
    size_bytes: int,
    mime_type: Optional[str] = None,
    max_size: int = MAX_UPLOAD_SIZE,
) -> UploadCheck:
    """Validate name, size and MIME type of an audio payload.

    Args:
        filename: Name the payload will be uploaded under
        size_bytes: Payload size
        mime_type: Declared MIME type, if any
        max_size: Maximum accepted size in bytes

    Returns:
        UploadCheck describing the first problem found, if any
    """
    lowered = filename.lower()
    if not lowered.endswith(SUPPORTED_EXTENSIONS):
        return UploadCheck(
            valid=False,
            error=(
                "Unsupported audio format. Supported formats: "
                f"{', '.join(SUPPORTED_EXTENSIONS)}"
            ),
        )

    if size_bytes > max_size:
        return UploadCheck(
            valid=False,
            too_large=True,
            error=(
                f"File size exceeds maximum of {max_size / 1024 / 1024:.0f}MB. "
                f"Your file: {size_bytes / 1024 / 1024:.2f}MB"
            ),
        )

    if mime_type and mime_type not in SUPPORTED_MIME_TYPES:
        return UploadCheck(
            valid=False,
            error=(
                f"Unsupported MIME type: {mime_type}. Supported types: "
                f"{', '.join(SUPPORTED_MIME_TYPES)}"
            ),
        )

    return UploadCheck(valid=True)
