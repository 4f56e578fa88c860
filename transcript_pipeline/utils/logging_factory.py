"""Centralized logging factory for consistent logger creation across the package.

Usage:
    # Explicit initialization (optional - auto-initializes on first use)
    LoggingFactory.initialize(log_dir=Path("logs"), level=logging.INFO)

    # Get a logger for your module
    logger = get_logger(__name__)
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "transcript_pipeline"
EXTRACTION_LOGGER = "transcript_pipeline.services.audio_extraction"
TRANSCRIPTION_LOGGER = "transcript_pipeline.services.transcription"


class LoggingFactory:
    """Configures the logging system once and hands out module loggers.

    Class Attributes:
        _initialized: Flag to ensure single initialization
        _log_dir: Directory path where log files are stored
        _handlers: Handlers this factory attached to the root logger
    """

    _initialized = False
    _log_dir = Path("logs")
    _handlers: list = []

    @classmethod
    def initialize(
        cls,
        log_dir: Optional[Path] = None,
        level: int = logging.INFO,
        format_string: Optional[str] = None,
        log_to_file: bool = True,
        console: bool = True,
    ) -> None:
        """Initialize the logging system once for the entire application.

        Subsequent calls are ignored. Configures the root logger with a console
        handler and, unless ``log_to_file`` is False, a ``pipeline.log`` file
        handler under ``log_dir``. The root level is always set, even when no
        handler is requested.

        Args:
            log_dir: Directory for log files. If None, uses "logs" in current directory.
            level: Default logging level for root logger
            format_string: Custom format string for log messages
            log_to_file: Whether to also write to ``<log_dir>/pipeline.log``
            console: Whether to attach a plain stderr handler; the CLI turns this
                off when it installs a rich handler instead
        """
        if cls._initialized:
            return

        if log_dir:
            cls._log_dir = log_dir

        if format_string is None:
            format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

        handlers: list[logging.Handler] = [logging.StreamHandler()] if console else []
        if log_to_file:
            cls._log_dir.mkdir(parents=True, exist_ok=True)
            handlers.insert(0, logging.FileHandler(cls._log_dir / "pipeline.log"))

        root = logging.getLogger()
        formatter = logging.Formatter(format_string)
        for handler in handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)
        root.setLevel(level)
        cls._handlers = handlers

        logging.getLogger(EXTRACTION_LOGGER).setLevel(level)
        logging.getLogger(TRANSCRIPTION_LOGGER).setLevel(level)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger, initializing the logging system with defaults if needed."""
        if not cls._initialized:
            cls.initialize()

        return logging.getLogger(name)

    @classmethod
    def configure_verbose(cls, verbose: bool = False) -> None:
        """Switch the package loggers between DEBUG and INFO."""
        level = logging.DEBUG if verbose else logging.INFO

        logging.getLogger().setLevel(level)
        for name in (PACKAGE_LOGGER, EXTRACTION_LOGGER, TRANSCRIPTION_LOGGER):
            logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger for the given module name."""
    return LoggingFactory.get_logger(name)
