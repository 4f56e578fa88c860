"""Audio extraction from remote video references using yt-dlp."""
from __future__ import annotations

import asyncio
import atexit
import logging
import os
import signal
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional, Set, Tuple

from ..config import Config
from ..exceptions import ExtractionError
from ..models.extraction import (
    AudioFormat,
    AudioQualityTier,
    ExtractionErrorKind,
    ExtractionJob,
    ExtractionResult,
    JobState,
)
from ..utils.secure_temp import build_temp_audio_path, remove_file
from ..utils.validation import extract_video_id, is_valid_youtube_url
from .ytdlp_core import build_extract_command, format_command, is_warning_only

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
MAX_DIAGNOSTIC_CHARS = 2000
REAP_TIMEOUT = 5.0


class PendingCleanupRegistry:
    """Thread-safe set of temp files that still have to be deleted.

    Touched from request coroutines and from atexit/signal handlers. Signal
    handlers run on the main thread between bytecodes, possibly while that same
    thread already holds the lock, so it must be reentrant.
    """

    def __init__(self) -> None:
        self._paths: Set[Path] = set()
        self._lock = threading.RLock()

    def add(self, path: Path) -> None:
        with self._lock:
            self._paths.add(path)

    def discard(self, path: Path) -> None:
        with self._lock:
            self._paths.discard(path)

    def snapshot(self) -> Set[Path]:
        with self._lock:
            return set(self._paths)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def sweep(self) -> int:
        """Best-effort delete of every registered path.

        Returns:
            Number of files actually removed
        """
        removed = 0
        for path in self.snapshot():
            try:
                if remove_file(path):
                    removed += 1
            except OSError as e:
                logger.warning(f"Sweep could not remove {path}: {e}")
            finally:
                self.discard(path)
        if removed:
            logger.info(f"Swept {removed} leftover temporary audio file(s)")
        return removed


class AudioExtractor:
    """yt-dlp based audio extractor with a hard timeout and owned temp files.

    Every successful extraction hands out a path the extractor keeps owning:
    callers give it back through :meth:`cleanup_file`, or use
    :meth:`audio_file` which does so on every exit path.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        audio_format: AudioFormat = AudioFormat.MP3,
        quality: AudioQualityTier = AudioQualityTier.LOWEST,
        binary: str = "yt-dlp",
        temp_dir: Optional[Path] = None,
        registry: Optional[PendingCleanupRegistry] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self.audio_format = audio_format
        self.quality = quality
        self.binary = binary
        self.temp_dir = temp_dir
        self.registry = registry or PendingCleanupRegistry()
        self._hooks_installed = False
        self._previous_handlers: Dict[int, object] = {}

    @classmethod
    def from_config(cls, config: Config) -> "AudioExtractor":
        return cls(
            timeout=config.extraction_timeout,
            audio_format=AudioFormat(config.audio_format),
            quality=AudioQualityTier(config.audio_quality),
            binary=config.ytdlp_binary,
            temp_dir=config.temp_dir,
        )

    # ------------------------------------------------------------------
    # Reference validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate(url: str) -> bool:
        return is_valid_youtube_url(url)

    @staticmethod
    def extract_identifier(url: str) -> Optional[str]:
        return extract_video_id(url)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract_audio(self, url: str) -> ExtractionResult:
        """Run one extraction job end-to-end.

        Args:
            url: Media reference to download audio from

        Returns:
            ExtractionResult; on success ``audio_path`` exists and is registered
            for cleanup
        """
        started = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        if not self.validate(url):
            return ExtractionResult.failure(
                ExtractionErrorKind.INVALID_URL, "Invalid YouTube URL format", elapsed()
            )

        video_id = self.extract_identifier(url)
        if not video_id:
            return ExtractionResult.failure(
                ExtractionErrorKind.IDENTIFIER_MISSING,
                "Could not extract video ID from URL",
                elapsed(),
            )

        job = ExtractionJob(
            video_id=video_id,
            audio_format=self.audio_format,
            output_path=build_temp_audio_path(
                video_id, self.audio_format.value, directory=self.temp_dir
            ),
            deadline=started + self.timeout,
        )
        argv = build_extract_command(
            url, job.output_path, self.audio_format, self.quality, binary=self.binary
        )

        logger.info(f"[{video_id}] Starting extraction")
        logger.debug(f"[{video_id}] Command: {format_command(argv)}")

        try:
            returncode, stderr = await self._run(argv, job.deadline - time.monotonic())
        except asyncio.TimeoutError:
            job.finish(JobState.TIMED_OUT)
            self._discard_artifacts(job)
            logger.error(f"[{video_id}] Extraction timed out after {self.timeout:g}s")
            return ExtractionResult.failure(
                ExtractionErrorKind.TIMEOUT,
                f"Audio extraction timed out after {self.timeout:g}s",
                elapsed(),
                video_id,
            )
        except FileNotFoundError:
            job.finish(JobState.FAILED)
            logger.error(f"[{video_id}] Downloader binary not found: {self.binary}")
            return ExtractionResult.failure(
                ExtractionErrorKind.PROCESS_ERROR,
                f"Downloader executable '{self.binary}' not found",
                elapsed(),
                video_id,
            )
        except BaseException:
            # Cancellation or an unexpected fault: never leave a partial file behind
            self._discard_artifacts(job)
            raise

        if returncode != 0:
            job.finish(JobState.FAILED)
            self._discard_artifacts(job)
            diagnostic = stderr.strip()[:MAX_DIAGNOSTIC_CHARS] or "no diagnostic output"
            logger.error(f"[{video_id}] Downloader exited with code {returncode}: {diagnostic}")
            return ExtractionResult.failure(
                ExtractionErrorKind.PROCESS_ERROR,
                f"Downloader exited with code {returncode}: {diagnostic}",
                elapsed(),
                video_id,
            )

        if stderr.strip() and not is_warning_only(stderr):
            logger.warning(f"[{video_id}] Downloader stderr: {stderr.strip()[:MAX_DIAGNOSTIC_CHARS]}")

        if not job.output_path.exists():
            job.finish(JobState.FAILED)
            self._discard_artifacts(job)
            logger.error(f"[{video_id}] Downloader reported success but produced no file")
            return ExtractionResult.failure(
                ExtractionErrorKind.OUTPUT_MISSING,
                "Audio extraction failed: Output file not created",
                elapsed(),
                video_id,
            )

        job.finish(JobState.SUCCEEDED)
        self.registry.add(job.output_path)
        logger.info(f"[{video_id}] Extracted audio to {job.output_path} in {job.elapsed_ms}ms")

        return ExtractionResult(
            success=True,
            duration_ms=elapsed(),
            video_id=video_id,
            audio_path=job.output_path,
            filename=job.output_path.name,
        )

    async def _run(self, argv: list, timeout: float) -> Tuple[int, str]:
        """Run ``argv`` to completion, killing it if ``timeout`` expires.

        Returns:
            Tuple of (return code, decoded stderr)

        Raises:
            asyncio.TimeoutError: If the process outlives the timeout
            FileNotFoundError: If the executable does not exist
        """
        # Own process group, so helpers the downloader spawns (ffmpeg) die with it
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=max(timeout, 0.0))
        except BaseException:
            await self._terminate(proc)
            raise
        return proc.returncode, stderr.decode("utf-8", errors="replace")

    @staticmethod
    async def _terminate(proc: asyncio.subprocess.Process) -> None:
        """Kill the whole process group and reap the leader within ``REAP_TIMEOUT``."""
        # The leader may be gone while its children still hold the pipes open
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(proc.wait(), timeout=REAP_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Downloader process {proc.pid} not reaped after {REAP_TIMEOUT:g}s")

    def _discard_artifacts(self, job: ExtractionJob) -> None:
        """Remove the job's output and any partial siblings the downloader left."""
        # The random token in the name makes the prefix unique to this job
        for candidate in job.output_path.parent.glob(f"{job.output_path.stem}*"):
            try:
                remove_file(candidate)
            except OSError as e:
                logger.warning(f"Could not remove partial artifact {candidate}: {e}")

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    async def cleanup_file(self, audio_path: Path) -> bool:
        """Delete an extracted file; safe to call more than once.

        Returns:
            True if the file was deleted, False if it was already gone or
            could not be removed
        """
        audio_path = Path(audio_path)
        try:
            removed = await asyncio.to_thread(remove_file, audio_path)
        except OSError as e:
            logger.error(f"Cleanup error for {audio_path}: {e}")
            removed = False
        finally:
            self.registry.discard(audio_path)

        if removed:
            logger.info(f"Cleaned up: {audio_path}")
        return removed

    @asynccontextmanager
    async def audio_file(self, url: str) -> AsyncIterator[ExtractionResult]:
        """Extract audio for the body of an ``async with`` block.

        The file is cleaned up exactly once when the block exits, whatever
        happens inside it.

        Raises:
            ExtractionError: If extraction fails; nothing is left on disk
        """
        result = await self.extract_audio(url)
        if not result.success:
            raise ExtractionError(result.error_kind, result.error or "Audio extraction failed")
        try:
            yield result
        finally:
            await self.cleanup_file(result.audio_path)

    def sweep(self) -> int:
        """Delete every file still pending cleanup."""
        return self.registry.sweep()

    def install_exit_hooks(self) -> None:
        """Sweep pending files at interpreter exit and on SIGINT/SIGTERM.

        This is the fallback path only; regular cleanup goes through
        :meth:`cleanup_file`.
        """
        if self._hooks_installed:
            return
        atexit.register(self.sweep)
        if threading.current_thread() is threading.main_thread():
            for signum in (signal.SIGINT, signal.SIGTERM):
                self._previous_handlers[signum] = signal.getsignal(signum)
                signal.signal(signum, self._handle_signal)
        self._hooks_installed = True

    def _handle_signal(self, signum: int, frame) -> None:
        self.sweep()
        previous = self._previous_handlers.get(signum)
        if callable(previous):
            previous(signum, frame)
        elif previous == signal.SIG_DFL:
            signal.signal(signum, signal.SIG_DFL)
            os.kill(os.getpid(), signum)
