"""Configuration management using environment variables."""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

TRANSCRIPT_TTL_SECONDS = 86400


def _parse_bool(value: str | bool | None) -> bool:
    """Parse boolean value from various formats."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on", "enabled")
    return bool(value)


def _getenv(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.getenv(key, default)


def _getenv_int(key: str, default: int) -> int:
    """Get integer environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as integer
    """
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(
            f"Invalid integer value for {key}='{value}'. "
            f"Expected integer, got: {value}"
        ) from e


def _getenv_float(key: str, default: float) -> float:
    """Get float environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as float
    """
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(
            f"Invalid float value for {key}='{value}'. "
            f"Expected float, got: {value}"
        ) from e


def load_environment(env_file: Optional[Path] = None) -> None:
    """Load a .env file into the process environment without overriding it."""
    candidates = [env_file] if env_file else [Path(".env"), Path("../.env"), Path.home() / ".env"]
    for env_path in candidates:
        if env_path is not None and env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
            break


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # ========== Application Settings ==========
    namespace: str = field(default_factory=lambda: _getenv("APP_NAMESPACE", "viajera"))

    # ========== Logging ==========
    log_level: str = field(default_factory=lambda: _getenv("LOG_LEVEL", "INFO").upper())
    log_dir: Path = field(default_factory=lambda: Path(_getenv("LOG_DIR", "logs")))

    # ========== Cache ==========
    cache_backend: str = field(default_factory=lambda: _getenv("CACHE_BACKEND", "redis").lower())
    cache_ttl: int = field(default_factory=lambda: _getenv_int("CACHE_TTL", TRANSCRIPT_TTL_SECONDS))
    redis_url: str = field(default_factory=lambda: _getenv("REDIS_URL", "redis://localhost:6379/0"))

    # ========== Rate Limiting ==========
    rate_limit_backend: str = field(default_factory=lambda: _getenv("RATE_LIMIT_BACKEND", "redis").lower())
    rate_limit_max_requests: int = field(default_factory=lambda: _getenv_int("RATE_LIMIT_MAX_REQUESTS", 10))
    rate_limit_window: float = field(default_factory=lambda: _getenv_float("RATE_LIMIT_WINDOW", 60.0))
    rate_limit_fail_open: bool = field(default_factory=lambda: _parse_bool(_getenv("RATE_LIMIT_FAIL_OPEN", "false")))

    # ========== Extraction ==========
    extraction_timeout: float = field(default_factory=lambda: _getenv_float("EXTRACTION_TIMEOUT", 300.0))
    audio_format: str = field(default_factory=lambda: _getenv("AUDIO_FORMAT", "mp3").lower())
    audio_quality: str = field(default_factory=lambda: _getenv("AUDIO_QUALITY", "lowest").lower())
    ytdlp_binary: str = field(default_factory=lambda: _getenv("YTDLP_BINARY", "yt-dlp"))
    temp_dir: Path = field(default_factory=lambda: Path(_getenv("TEMP_DIR", tempfile.gettempdir())))

    # ========== Transcription ==========
    TRANSCRIPTION_API_KEY: Optional[str] = field(
        default_factory=lambda: _getenv("TRANSCRIPTION_API_KEY") or _getenv("GROQ_API_KEY") or None
    )
    transcription_base_url: str = field(
        default_factory=lambda: _getenv("TRANSCRIPTION_BASE_URL", "https://api.groq.com/openai/v1")
    )
    transcription_model: str = field(default_factory=lambda: _getenv("TRANSCRIPTION_MODEL", "whisper-large-v3"))
    transcription_language: str = field(default_factory=lambda: _getenv("TRANSCRIPTION_LANGUAGE", "es"))
    transcription_timeout: float = field(default_factory=lambda: _getenv_float("TRANSCRIPTION_TIMEOUT", 120.0))

    # ========== Retry Settings ==========
    max_retries: int = field(default_factory=lambda: _getenv_int("MAX_API_RETRIES", 3))
    retry_delay: float = field(default_factory=lambda: _getenv_float("API_RETRY_DELAY", 1.0))
    max_retry_delay: float = field(default_factory=lambda: _getenv_float("MAX_RETRY_DELAY", 10.0))

    def __repr__(self) -> str:
        """Return repr with redacted API keys for security."""
        items = []
        for field_name in self.__dataclass_fields__:
            value = getattr(self, field_name)
            if field_name == "TRANSCRIPTION_API_KEY" and value:
                items.append(f"{field_name}='***REDACTED***'")
            else:
                items.append(f"{field_name}={value!r}")
        return f"Config({', '.join(items)})"


# Singleton instance with thread-safe initialization
_config_instance: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get global config instance (singleton pattern, thread-safe)."""
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                load_environment()
                _config_instance = Config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached config so the next ``get_config`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = ["Config", "TRANSCRIPT_TTL_SECONDS", "get_config", "load_environment", "reset_config"]
