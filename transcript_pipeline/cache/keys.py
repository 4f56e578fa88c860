"""Cache key derivation for transcripts."""
from __future__ import annotations

from ..utils.validation import is_valid_video_id


def build_cache_key(namespace: str, video_id: str) -> str:
    """Return ``"<namespace>:transcript:<video_id>"``.

    Raises:
        ValueError: If the namespace is empty or contains ``:``, or the video
            ID is not a well-formed identifier
    """
    if not namespace or ":" in namespace:
        raise ValueError(f"Invalid cache namespace: {namespace!r}")
    if not is_valid_video_id(video_id):
        raise ValueError(f"Invalid video ID: {video_id!r}")
    return f"{namespace}:transcript:{video_id}"
