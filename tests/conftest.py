"""Global pytest fixtures and configuration.

This module provides shared fixtures for all tests including:
- A clean, hermetic environment for configuration
- A fake ``yt-dlp`` executable whose behavior each test chooses
- A mocked OpenAI-compatible transcription client
"""
from __future__ import annotations

import stat
import sys
import textwrap
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from transcript_pipeline.config import reset_config

CONFIG_ENV_KEYS = (
    "APP_NAMESPACE",
    "CACHE_BACKEND",
    "CACHE_TTL",
    "REDIS_URL",
    "RATE_LIMIT_BACKEND",
    "RATE_LIMIT_MAX_REQUESTS",
    "RATE_LIMIT_WINDOW",
    "RATE_LIMIT_FAIL_OPEN",
    "EXTRACTION_TIMEOUT",
    "AUDIO_FORMAT",
    "AUDIO_QUALITY",
    "YTDLP_BINARY",
    "TEMP_DIR",
    "TRANSCRIPTION_API_KEY",
    "GROQ_API_KEY",
    "TRANSCRIPTION_BASE_URL",
    "TRANSCRIPTION_MODEL",
    "TRANSCRIPTION_LANGUAGE",
    "TRANSCRIPTION_TIMEOUT",
    "MAX_API_RETRIES",
    "API_RETRY_DELAY",
    "MAX_RETRY_DELAY",
    "LOG_LEVEL",
    "LOG_DIR",
)

# Parses the -o value out of the argv it receives, records the call, then
# behaves according to the mode it was generated for.
FAKE_YTDLP_TEMPLATE = """\
#!/bin/sh
echo "$*" >> "{calls}"
out=""
while [ $# -gt 0 ]; do
  case "$1" in
    -o) out="$2"; shift 2 ;;
    --) shift; break ;;
    *) shift ;;
  esac
done
case "{mode}" in
  success)
    printf 'ID3fake-audio-payload' > "$out"
    ;;
  warning)
    echo "WARNING: unable to extract uploader nickname" >&2
    printf 'ID3fake-audio-payload' > "$out"
    ;;
  noisy)
    echo "some diagnostic chatter" >&2
    printf 'ID3fake-audio-payload' > "$out"
    ;;
  no_output)
    ;;
  fail)
    printf 'partial' > "$out.part"
    echo "ERROR: [youtube] dQw4w9WgXcQ: Video unavailable" >&2
    exit 1
    ;;
  hang)
    printf 'partial' > "$out.part"
    exec sleep 30
    ;;
  orphan)
    ( sleep 2; printf 'late' > "$out.temp" ) &
    exec sleep 30
    ;;
esac
exit 0
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove every configuration variable so tests never read the host's settings."""
    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # Keep load_dotenv from picking up a developer's .env file
    monkeypatch.setattr("transcript_pipeline.config.load_dotenv", lambda *a, **k: False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def audio_dir(tmp_path: Path) -> Path:
    """Dedicated temp directory for extracted audio."""
    directory = tmp_path / "audio"
    directory.mkdir()
    return directory


class FakeYtDlp:
    """Handle on a generated fake downloader script."""

    def __init__(self, binary: str, calls: Path):
        self.binary = binary
        self.calls = calls

    @property
    def call_count(self) -> int:
        if not self.calls.exists():
            return 0
        return len(self.calls.read_text().splitlines())


@pytest.fixture
def fake_ytdlp(tmp_path: Path):
    """Factory writing an executable fake ``yt-dlp`` script.

    Usage::

        downloader = fake_ytdlp("success")
        extractor = AudioExtractor(binary=downloader.binary)
    """
    if sys.platform == "win32":
        pytest.skip("Fake yt-dlp script requires a POSIX shell")

    def _make(mode: str = "success"):
        calls = tmp_path / f"ytdlp_calls_{mode}.log"
        script = tmp_path / f"fake-yt-dlp-{mode}"
        script.write_text(textwrap.dedent(FAKE_YTDLP_TEMPLATE.format(calls=calls, mode=mode)))
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return FakeYtDlp(str(script), calls)

    return _make


@pytest.fixture
def mock_openai_client():
    """Mock AsyncOpenAI client whose transcription call returns fixed text."""
    client = Mock()
    client.audio.transcriptions.create = AsyncMock(return_value=Mock(text="hola mundo"))
    return client


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    return AsyncMock(return_value=None)
