"""Tests for AudioExtractor using a fake yt-dlp executable."""

import asyncio
import os
import signal
import sys
import time
from pathlib import Path
from unittest.mock import ANY, AsyncMock, Mock, patch

import pytest

from transcript_pipeline.config import Config
from transcript_pipeline.exceptions import ExtractionError
from transcript_pipeline.models.extraction import (
    AudioFormat,
    AudioQualityTier,
    ExtractionErrorKind,
    ExtractionJob,
    JobState,
)
from transcript_pipeline.services.audio_extraction import AudioExtractor, PendingCleanupRegistry

WATCH_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
SHORT_URL = "https://youtu.be/dQw4w9WgXcQ"


def _leftovers(directory: Path):
    return sorted(p.name for p in directory.iterdir())


class TestReferenceValidation:
    """validate / extract_identifier."""

    def test_validate(self):
        assert AudioExtractor.validate(WATCH_URL) is True
        assert AudioExtractor.validate("https://example.com/video") is False

    def test_identifier_is_equal_across_forms(self):
        assert AudioExtractor.extract_identifier(WATCH_URL) == AudioExtractor.extract_identifier(SHORT_URL)
        assert AudioExtractor.extract_identifier(SHORT_URL) == "dQw4w9WgXcQ"

    def test_constructor_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError, match="timeout"):
            AudioExtractor(timeout=0)

    def test_from_config(self, tmp_path):
        config = Config(
            extraction_timeout=12.5,
            audio_format="m4a",
            audio_quality="medium",
            ytdlp_binary="/opt/yt-dlp",
            temp_dir=tmp_path,
        )
        extractor = AudioExtractor.from_config(config)
        assert extractor.timeout == 12.5
        assert extractor.audio_format is AudioFormat.M4A
        assert extractor.quality is AudioQualityTier.MEDIUM
        assert extractor.binary == "/opt/yt-dlp"
        assert extractor.temp_dir == tmp_path


class TestExtractAudio:
    """extract_audio outcomes for each downloader behavior."""

    @pytest.mark.asyncio
    async def test_invalid_url_spawns_nothing(self, audio_dir):
        extractor = AudioExtractor(temp_dir=audio_dir)
        with patch("asyncio.create_subprocess_exec", new_callable=AsyncMock) as mock_exec:
            result = await extractor.extract_audio("https://example.com/video")

        assert result.success is False
        assert result.error_kind is ExtractionErrorKind.INVALID_URL
        assert result.error == "Invalid YouTube URL format"
        mock_exec.assert_not_called()
        assert _leftovers(audio_dir) == []

    @pytest.mark.asyncio
    async def test_success_registers_file(self, audio_dir, fake_ytdlp):
        downloader = fake_ytdlp("success")
        extractor = AudioExtractor(binary=downloader.binary, temp_dir=audio_dir)

        result = await extractor.extract_audio(WATCH_URL)

        assert result.success is True
        assert result.video_id == "dQw4w9WgXcQ"
        assert result.audio_path.exists()
        assert result.audio_path.parent == audio_dir
        assert result.filename == result.audio_path.name
        assert result.audio_path in extractor.registry
        assert downloader.call_count == 1

        assert await extractor.cleanup_file(result.audio_path) is True

    @pytest.mark.asyncio
    async def test_url_passed_after_separator(self, audio_dir, fake_ytdlp):
        downloader = fake_ytdlp("success")
        extractor = AudioExtractor(binary=downloader.binary, temp_dir=audio_dir)

        result = await extractor.extract_audio(SHORT_URL)

        recorded = downloader.calls.read_text().strip()
        assert recorded.endswith(f"-- {SHORT_URL}")
        await extractor.cleanup_file(result.audio_path)

    @pytest.mark.asyncio
    async def test_warning_stderr_is_not_fatal(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(binary=fake_ytdlp("warning").binary, temp_dir=audio_dir)

        result = await extractor.extract_audio(WATCH_URL)

        assert result.success is True
        await extractor.cleanup_file(result.audio_path)

    @pytest.mark.asyncio
    async def test_other_stderr_with_zero_exit_is_logged_only(self, audio_dir, fake_ytdlp, caplog):
        extractor = AudioExtractor(binary=fake_ytdlp("noisy").binary, temp_dir=audio_dir)

        result = await extractor.extract_audio(WATCH_URL)

        assert result.success is True
        assert "some diagnostic chatter" in caplog.text
        await extractor.cleanup_file(result.audio_path)

    @pytest.mark.asyncio
    async def test_missing_output(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(binary=fake_ytdlp("no_output").binary, temp_dir=audio_dir)

        result = await extractor.extract_audio(WATCH_URL)

        assert result.success is False
        assert result.error_kind is ExtractionErrorKind.OUTPUT_MISSING
        assert result.error == "Audio extraction failed: Output file not created"
        assert len(extractor.registry) == 0

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_process_error(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(binary=fake_ytdlp("fail").binary, temp_dir=audio_dir)

        result = await extractor.extract_audio(WATCH_URL)

        assert result.success is False
        assert result.error_kind is ExtractionErrorKind.PROCESS_ERROR
        assert "Video unavailable" in result.error
        # The partial download is swept with the failed job
        assert _leftovers(audio_dir) == []

    @pytest.mark.asyncio
    async def test_missing_binary_is_process_error(self, audio_dir, tmp_path):
        extractor = AudioExtractor(binary=str(tmp_path / "no-such-yt-dlp"), temp_dir=audio_dir)

        result = await extractor.extract_audio(WATCH_URL)

        assert result.success is False
        assert result.error_kind is ExtractionErrorKind.PROCESS_ERROR
        assert "not found" in result.error

    @pytest.mark.asyncio
    async def test_timeout_kills_process_and_leaves_nothing(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(timeout=0.5, binary=fake_ytdlp("hang").binary, temp_dir=audio_dir)

        result = await asyncio.wait_for(extractor.extract_audio(WATCH_URL), timeout=10)

        assert result.success is False
        assert result.error_kind is ExtractionErrorKind.TIMEOUT
        assert result.error == "Audio extraction timed out after 0.5s"
        assert result.video_id == "dQw4w9WgXcQ"
        assert _leftovers(audio_dir) == []
        assert len(extractor.registry) == 0

    @pytest.mark.asyncio
    async def test_timeout_kills_downloader_children(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(timeout=0.5, binary=fake_ytdlp("orphan").binary, temp_dir=audio_dir)

        started = time.monotonic()
        result = await asyncio.wait_for(extractor.extract_audio(WATCH_URL), timeout=10)
        elapsed = time.monotonic() - started

        assert result.error_kind is ExtractionErrorKind.TIMEOUT
        # The background child holds the pipes for 2s unless it is killed too
        assert elapsed < 1.5
        await asyncio.sleep(2.5)
        assert _leftovers(audio_dir) == []

    @pytest.mark.asyncio
    async def test_cancellation_leaves_nothing(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(timeout=30, binary=fake_ytdlp("hang").binary, temp_dir=audio_dir)

        task = asyncio.ensure_future(extractor.extract_audio(WATCH_URL))
        await asyncio.sleep(0.3)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert _leftovers(audio_dir) == []


class TestCleanup:
    """cleanup_file, audio_file and the fallback sweep."""

    @pytest.mark.asyncio
    async def test_second_cleanup_returns_false(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(binary=fake_ytdlp("success").binary, temp_dir=audio_dir)
        result = await extractor.extract_audio(WATCH_URL)

        assert await extractor.cleanup_file(result.audio_path) is True
        assert not result.audio_path.exists()
        assert await extractor.cleanup_file(result.audio_path) is False
        assert result.audio_path not in extractor.registry

    @pytest.mark.asyncio
    async def test_cleanup_error_is_reported_not_raised(self, tmp_path):
        extractor = AudioExtractor()
        target = tmp_path / "locked.mp3"
        extractor.registry.add(target)

        with patch(
            "transcript_pipeline.services.audio_extraction.remove_file",
            side_effect=PermissionError("denied"),
        ):
            assert await extractor.cleanup_file(target) is False

        assert target not in extractor.registry

    @pytest.mark.asyncio
    async def test_audio_file_removes_on_normal_exit(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(binary=fake_ytdlp("success").binary, temp_dir=audio_dir)

        async with extractor.audio_file(WATCH_URL) as extraction:
            assert extraction.audio_path.exists()
            path = extraction.audio_path

        assert not path.exists()
        assert len(extractor.registry) == 0

    @pytest.mark.asyncio
    async def test_audio_file_removes_when_body_raises(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(binary=fake_ytdlp("success").binary, temp_dir=audio_dir)

        with pytest.raises(RuntimeError, match="boom"):
            async with extractor.audio_file(WATCH_URL):
                raise RuntimeError("boom")

        assert _leftovers(audio_dir) == []

    @pytest.mark.asyncio
    async def test_audio_file_raises_extraction_error(self, audio_dir, fake_ytdlp):
        extractor = AudioExtractor(binary=fake_ytdlp("no_output").binary, temp_dir=audio_dir)

        with pytest.raises(ExtractionError) as exc_info:
            async with extractor.audio_file(WATCH_URL):
                pytest.fail("body must not run when extraction fails")

        assert exc_info.value.kind is ExtractionErrorKind.OUTPUT_MISSING

    def test_sweep_removes_pending_files(self, tmp_path):
        extractor = AudioExtractor()
        leftover = tmp_path / "leftover.mp3"
        leftover.write_bytes(b"x")
        extractor.registry.add(leftover)
        extractor.registry.add(tmp_path / "already-gone.mp3")

        assert extractor.sweep() == 1
        assert not leftover.exists()
        assert len(extractor.registry) == 0


class TestExitHooks:
    """Fallback sweep wiring."""

    def test_install_registers_atexit_and_signals_once(self):
        extractor = AudioExtractor()
        with patch("transcript_pipeline.services.audio_extraction.atexit.register") as mock_register, patch(
            "transcript_pipeline.services.audio_extraction.signal.signal"
        ) as mock_signal, patch(
            "transcript_pipeline.services.audio_extraction.signal.getsignal",
            return_value=signal.SIG_DFL,
        ):
            extractor.install_exit_hooks()
            extractor.install_exit_hooks()

        mock_register.assert_called_once_with(extractor.sweep)
        installed = {call.args[0] for call in mock_signal.call_args_list}
        assert installed == {signal.SIGINT, signal.SIGTERM}

    def test_signal_handler_sweeps_and_chains(self, tmp_path):
        extractor = AudioExtractor()
        leftover = tmp_path / "leftover.mp3"
        leftover.write_bytes(b"x")
        extractor.registry.add(leftover)
        previous = Mock()
        extractor._previous_handlers[signal.SIGTERM] = previous

        extractor._handle_signal(signal.SIGTERM, None)

        assert not leftover.exists()
        previous.assert_called_once_with(signal.SIGTERM, None)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals required")
    def test_signal_while_registry_locked_does_not_deadlock(self, tmp_path):
        extractor = AudioExtractor()
        leftover = tmp_path / "leftover.mp3"
        leftover.write_bytes(b"x")
        extractor.registry.add(leftover)
        previous = Mock()
        extractor._previous_handlers[signal.SIGTERM] = previous
        original = signal.signal(signal.SIGTERM, extractor._handle_signal)

        try:
            with extractor.registry._lock:
                os.kill(os.getpid(), signal.SIGTERM)
                # Give the interpreter a chance to run the handler while locked
                for _ in range(100):
                    if previous.called:
                        break
                    time.sleep(0.01)
        finally:
            signal.signal(signal.SIGTERM, original)

        previous.assert_called_once_with(signal.SIGTERM, ANY)
        assert not leftover.exists()


class TestModels:
    """Registry and job bookkeeping."""

    def test_registry_add_discard(self, tmp_path):
        registry = PendingCleanupRegistry()
        path = tmp_path / "a.mp3"
        registry.add(path)
        registry.add(path)
        assert len(registry) == 1
        assert registry.snapshot() == {path}
        registry.discard(path)
        registry.discard(path)
        assert path not in registry

    def test_job_finishes_once(self, tmp_path):
        job = ExtractionJob(
            video_id="dQw4w9WgXcQ",
            audio_format=AudioFormat.MP3,
            output_path=tmp_path / "a.mp3",
            deadline=0.0,
        )
        assert job.state is JobState.PENDING
        job.finish(JobState.SUCCEEDED)
        with pytest.raises(RuntimeError, match="already finished"):
            job.finish(JobState.FAILED)
