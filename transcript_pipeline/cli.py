"""Command line interface for the transcript pipeline.

Subcommands:
    process     Full pipeline: admission, cache, extraction, transcription
    extract     Download audio only
    transcribe  Transcribe a local audio file
"""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import Config, get_config
from .exceptions import ConfigurationError
from .pipeline import TranscriptPipeline
from .services.audio_extraction import AudioExtractor
from .services.transcription import TranscriptionClient
from .ui.console import ConsoleManager
from .utils.logging_factory import PACKAGE_LOGGER, LoggingFactory

logger = logging.getLogger(__name__)


def setup_logging(config: Config, verbose: bool, console_manager: ConsoleManager) -> None:
    """Configure file logging plus a Rich or plain console handler.

    Args:
        config: Supplies the log directory and default level
        verbose: If True, log at DEBUG regardless of ``LOG_LEVEL``
        console_manager: Installs the Rich handler when not in JSON mode
    """
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)
    LoggingFactory.initialize(
        log_dir=config.log_dir,
        level=level,
        console=console_manager.json_output,
    )
    if not console_manager.json_output:
        console_manager.setup_logging(logging.getLogger(PACKAGE_LOGGER))
    LoggingFactory.configure_verbose(verbose)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="transcript-pipeline",
        description="YouTube audio extraction and speech-to-text with caching and rate limiting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  # Full pipeline with Redis-backed cache and rate limiter
  transcript-pipeline process "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

  # Full pipeline without Redis
  transcript-pipeline process "https://youtu.be/dQw4w9WgXcQ" --backend memory

  # Download audio only, removing the file afterwards
  transcript-pipeline extract "https://youtu.be/dQw4w9WgXcQ" --cleanup

  # Transcribe a local file
  transcript-pipeline transcribe recording.mp3 --json-output

Environment:
  TRANSCRIPTION_API_KEY / GROQ_API_KEY  API key for the transcription service
  REDIS_URL                             Redis connection URL
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-output",
        action="store_true",
        help="Print results as JSON on stdout",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)

    process_parser = subparsers.add_parser(
        "process",
        help="Run the full transcript pipeline for a YouTube URL",
    )
    process_parser.add_argument("url", help="YouTube URL (watch?v= or youtu.be form)")
    process_parser.add_argument(
        "--identity",
        default="cli",
        help="Client identity used for rate limiting (default: cli)",
    )
    process_parser.add_argument(
        "--backend",
        choices=["redis", "memory"],
        help="Override both the cache and rate limiter backends",
    )

    extract_parser = subparsers.add_parser(
        "extract",
        help="Download audio from a YouTube URL",
    )
    extract_parser.add_argument("url", help="YouTube URL (watch?v= or youtu.be form)")
    extract_parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete the extracted file before exiting",
    )

    transcribe_parser = subparsers.add_parser(
        "transcribe",
        help="Transcribe a local audio file",
    )
    transcribe_parser.add_argument("audio_file", help="Audio file (.mp3, .mp4, .wav, .webm, .m4a)")

    return parser


async def _run_process(pipeline: TranscriptPipeline, url: str, identity: str):
    try:
        return await pipeline.process(url, identity=identity)
    finally:
        await pipeline.close()


def process_command(args: argparse.Namespace, config: Config, console_manager: ConsoleManager) -> int:
    """Handle the process subcommand.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    if args.backend:
        config = dataclasses.replace(
            config, cache_backend=args.backend, rate_limit_backend=args.backend
        )

    try:
        pipeline = TranscriptPipeline.from_config(config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    pipeline.extractor.install_exit_hooks()
    console_manager.print_stage("Transcript Pipeline", "starting")
    outcome = asyncio.run(_run_process(pipeline, args.url, args.identity))

    console_manager.print_stage("Transcript Pipeline", "complete" if outcome.success else "error")
    console_manager.print_result("Pipeline Result", outcome.to_dict())
    return 0 if outcome.success else 1


async def _run_extract(extractor: AudioExtractor, url: str, cleanup: bool):
    result = await extractor.extract_audio(url)
    if result.success and cleanup:
        await extractor.cleanup_file(result.audio_path)
    return result


def extract_command(args: argparse.Namespace, config: Config, console_manager: ConsoleManager) -> int:
    """Handle the extract subcommand.

    Without ``--cleanup`` the file is left in the temp directory for the caller.
    """
    extractor = AudioExtractor.from_config(config)
    if args.cleanup:
        extractor.install_exit_hooks()

    console_manager.print_stage("Audio Extraction", "starting")
    result = asyncio.run(_run_extract(extractor, args.url, args.cleanup))

    if not result.success:
        console_manager.print_stage("Audio Extraction", "error")
        console_manager.print_result("Extraction Result", result.to_dict())
        return 1

    if not args.cleanup:
        # The caller owns the file from here on
        extractor.registry.discard(result.audio_path)
    console_manager.print_stage("Audio Extraction", "complete")
    console_manager.print_result("Extraction Result", result.to_dict())
    return 0


def transcribe_command(args: argparse.Namespace, config: Config, console_manager: ConsoleManager) -> int:
    """Handle the transcribe subcommand."""
    audio_path = Path(args.audio_file)
    if not audio_path.is_file():
        logger.error(f"Audio file not found: {audio_path}")
        return 1

    try:
        client = TranscriptionClient.from_config(config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    console_manager.print_stage("Transcription", "starting")
    result = asyncio.run(client.transcribe_file(audio_path))

    console_manager.print_stage("Transcription", "complete" if result.success else "error")
    payload = result.to_dict()
    payload["attempts"] = result.attempt_count
    console_manager.print_result("Transcription Result", payload)
    return 0 if result.success else 1


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    config = get_config()
    console_manager = ConsoleManager(verbose=args.verbose, json_output=args.json_output)
    setup_logging(config, args.verbose, console_manager)

    try:
        if args.command == "process":
            return process_command(args, config, console_manager)
        elif args.command == "extract":
            return extract_command(args, config, console_manager)
        elif args.command == "transcribe":
            return transcribe_command(args, config, console_manager)
        else:
            parser.print_help()
            return 1
    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
