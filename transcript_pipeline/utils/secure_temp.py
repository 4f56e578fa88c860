"""Temporary audio file naming and removal.

Paths are unpredictable and unique per job: every name carries a fresh
``secrets.token_hex(8)`` suffix, so two concurrent jobs for the same video
never collide.
"""
from __future__ import annotations

import logging
import secrets
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

TEMP_PREFIX = "viajera"
SUFFIX_BYTES = 8


def build_temp_audio_path(
    video_id: str,
    extension: str,
    directory: Optional[Path] = None,
    prefix: str = TEMP_PREFIX,
) -> Path:
    """Build a collision-resistant temp path for one extraction job.

    Args:
        video_id: Content identifier the audio belongs to
        extension: File extension without the dot (e.g. "mp3")
        directory: Target directory (defaults to the system temp dir)
        prefix: Filename prefix

    Returns:
        Path of the form ``<dir>/<prefix>_<video_id>_<16 hex chars>.<ext>``
    """
    base = Path(directory) if directory else Path(tempfile.gettempdir())
    token = secrets.token_hex(SUFFIX_BYTES)
    return base / f"{prefix}_{video_id}_{token}.{extension}"


def remove_file(path: Path) -> bool:
    """Delete ``path`` if present.

    Returns:
        True if a file was removed, False if it was already absent

    Raises:
        OSError: If the file exists but cannot be removed
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    logger.debug(f"Removed temporary file: {path}")
    return True
