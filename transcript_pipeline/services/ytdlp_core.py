"""yt-dlp command construction.

Commands are argv lists handed straight to ``asyncio.create_subprocess_exec``;
no shell ever sees them. The URL is placed after ``--`` so a value starting
with a dash cannot be parsed as an option. ``format_command`` gives the
shell-quoted form used in log lines.
"""
from __future__ import annotations

import shlex
from pathlib import Path
from typing import List, Sequence

from ..models.extraction import AudioFormat, AudioQualityTier

FORMAT_SELECTORS = {
    AudioFormat.MP3: "bestaudio[ext=mp3]/best",
    AudioFormat.WEBM: "bestaudio[ext=webm]/best",
    AudioFormat.M4A: "bestaudio[ext=m4a]/best",
    AudioFormat.WAV: "bestaudio[ext=wav]/best",
}


def audio_quality_value(quality: AudioQualityTier) -> str:
    """Map a quality tier onto yt-dlp's ``--audio-quality`` value."""
    return "128" if quality is AudioQualityTier.LOWEST else "192"


def build_extract_command(
    url: str,
    output_path: Path,
    audio_format: AudioFormat = AudioFormat.MP3,
    quality: AudioQualityTier = AudioQualityTier.LOWEST,
    binary: str = "yt-dlp",
) -> List[str]:
    """Build the yt-dlp argv for an audio-only download.

    Args:
        url: Validated media URL
        output_path: Exact path the audio must be written to
        audio_format: Target audio format
        quality: Quality tier
        binary: yt-dlp executable name or path

    Returns:
        Argument list, identical for identical inputs
    """
    return [
        binary,
        "-x",
        "--audio-format",
        audio_format.value,
        "--audio-quality",
        audio_quality_value(quality),
        "-f",
        FORMAT_SELECTORS[audio_format],
        "--quiet",
        "--no-warnings",
        "-o",
        str(output_path),
        "--",
        url,
    ]


def format_command(argv: Sequence[str]) -> str:
    """Render an argv list as a safely quoted shell string for logging."""
    return shlex.join(argv)


def is_warning_only(stderr: str) -> bool:
    """True when every non-blank stderr line is a yt-dlp ``WARNING:`` line."""
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    return bool(lines) and all(line.startswith("WARNING") for line in lines)
