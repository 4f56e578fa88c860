"""Speech-to-text client with error classification and retry logic.

Talks to any OpenAI-compatible ``audio.transcriptions`` endpoint (Groq by
default). Every failure of the service call is turned into a
:class:`ClassifiedFailure` at the boundary; the retry loop only ever looks at
the classified kind.
"""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Union

from openai import APIError, APITimeoutError, AsyncOpenAI

from ..config import Config
from ..exceptions import ConfigurationError
from ..models.transcription import (
    ClassifiedFailure,
    TranscriptionAttempt,
    TranscriptionErrorKind,
    TranscriptionResult,
)
from ..utils.retry import RetryConfig
from ..utils.validation import detect_mimetype, validate_audio_upload

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "whisper-large-v3"
DEFAULT_LANGUAGE = "es"

SleepFn = Callable[[float], Awaitable[None]]


def classify_error(error: BaseException) -> ClassifiedFailure:
    """Map a service-call failure onto the fixed error taxonomy.

    Rules are applied in priority order: auth, rate limit, payload size,
    5xx, format rejection, timeout, then everything else.
    """
    message = str(getattr(error, "message", None) or error) or type(error).__name__

    status: Optional[int] = None
    if isinstance(error, APIError):
        # Connection-level API errors carry no status code
        status = getattr(error, "status_code", None)
        kind: Optional[TranscriptionErrorKind] = None
        if status in (401, 403):
            kind = TranscriptionErrorKind.AUTH_ERROR
        elif status == 429:
            kind = TranscriptionErrorKind.RATE_LIMITED
        elif status == 413:
            kind = TranscriptionErrorKind.FILE_TOO_LARGE
        elif status is not None and status >= 500:
            kind = TranscriptionErrorKind.SERVER_ERROR
        elif "unsupported" in message.lower() or "format" in message.lower():
            kind = TranscriptionErrorKind.UNSUPPORTED_FORMAT
        if kind is not None:
            return ClassifiedFailure(kind=kind, message=message, status_code=status)

    if isinstance(error, (APITimeoutError, asyncio.TimeoutError, TimeoutError, ConnectionAbortedError)):
        return ClassifiedFailure(kind=TranscriptionErrorKind.TIMEOUT, message=message, status_code=status)

    return ClassifiedFailure(kind=TranscriptionErrorKind.UNKNOWN, message=message, status_code=status)


class TranscriptionClient:
    """Retrying wrapper around a speech-to-text service.

    Permanent failures (auth, unsupported format, file too large) return after
    a single attempt. Transient ones are retried up to
    ``retry_config.max_attempts`` with exponential backoff and jitter.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_MODEL,
        language: str = DEFAULT_LANGUAGE,
        retry_config: Optional[RetryConfig] = None,
        sleep: SleepFn = asyncio.sleep,
        validate_uploads: bool = True,
    ) -> None:
        self._client = client
        self.model = model
        self.language = language
        self.retry_config = retry_config or RetryConfig()
        self._sleep = sleep
        self.validate_uploads = validate_uploads

    @classmethod
    def from_config(cls, config: Config) -> "TranscriptionClient":
        """Build a client from configuration.

        Raises:
            ConfigurationError: If no API key is configured
        """
        if not config.TRANSCRIPTION_API_KEY:
            raise ConfigurationError(
                "TRANSCRIPTION_API_KEY (or GROQ_API_KEY) environment variable is not set"
            )
        client = AsyncOpenAI(
            api_key=config.TRANSCRIPTION_API_KEY,
            base_url=config.transcription_base_url,
            timeout=config.transcription_timeout,
            # Retries are owned by this class
            max_retries=0,
        )
        return cls(
            client,
            model=config.transcription_model,
            language=config.transcription_language,
            retry_config=RetryConfig(
                max_attempts=config.max_retries,
                base_delay=config.retry_delay,
                max_delay=config.max_retry_delay,
            ),
        )

    async def transcribe(
        self,
        audio_bytes: bytes,
        filename: str,
        mime_type: str = "audio/mpeg",
    ) -> TranscriptionResult:
        """Transcribe an audio payload.

        Args:
            audio_bytes: Raw audio content
            filename: Name to upload the payload under
            mime_type: MIME type of the payload

        Returns:
            TranscriptionResult with the text on success, or the last
            classified error once retries are exhausted
        """
        start_time = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start_time) * 1000)

        if self.validate_uploads:
            check = validate_audio_upload(filename, len(audio_bytes), mime_type)
            if not check.valid:
                kind = (
                    TranscriptionErrorKind.FILE_TOO_LARGE
                    if check.too_large
                    else TranscriptionErrorKind.UNSUPPORTED_FORMAT
                )
                logger.warning(f"Rejected upload {filename}: {check.error}")
                return TranscriptionResult(
                    success=False, duration_ms=elapsed(), error=check.error, error_kind=kind
                )

        max_attempts = self.retry_config.max_attempts
        attempts: List[TranscriptionAttempt] = []

        for attempt in range(max_attempts):
            record = TranscriptionAttempt(index=attempt)
            attempts.append(record)

            outcome = await self._call_service(audio_bytes, filename, mime_type)

            if isinstance(outcome, str):
                logger.info(
                    f"Transcribed {filename} on attempt {attempt + 1}/{max_attempts} "
                    f"in {elapsed()}ms"
                )
                return TranscriptionResult(
                    success=True, duration_ms=elapsed(), text=outcome, attempts=attempts
                )

            record.error_kind = outcome.kind
            record.message = outcome.message
            logger.warning(
                f"Transcription attempt {attempt + 1}/{max_attempts} failed: "
                f"code={outcome.kind.value} status={outcome.status_code} message={outcome.message}"
            )

            if outcome.kind.is_permanent:
                return self._failure(outcome, outcome.message, elapsed(), attempts)

            if attempt == max_attempts - 1:
                return self._failure(
                    outcome,
                    outcome.message or f"Transcription failed after {max_attempts} attempts",
                    elapsed(),
                    attempts,
                )

            record.delay = self.retry_config.calculate_backoff_delay(attempt)
            logger.info(f"Retrying in {round(record.delay * 1000)}ms...")
            await self._sleep(record.delay)

        # Unreachable while max_attempts >= 1, kept for type checkers
        return TranscriptionResult(
            success=False,
            duration_ms=elapsed(),
            error="Transcription failed: Max retry attempts exceeded",
            error_kind=TranscriptionErrorKind.UNKNOWN,
            attempts=attempts,
        )

    async def transcribe_file(self, audio_path: Path) -> TranscriptionResult:
        """Read ``audio_path`` off the event loop and transcribe it.

        The file is only borrowed: it is never moved or deleted here.
        """
        audio_path = Path(audio_path)
        audio_bytes = await asyncio.to_thread(audio_path.read_bytes)
        logger.info(f"Processing file: {audio_path.name} ({len(audio_bytes)} bytes)")
        return await self.transcribe(audio_bytes, audio_path.name, detect_mimetype(audio_path))

    async def _call_service(
        self, audio_bytes: bytes, filename: str, mime_type: str
    ) -> Union[str, ClassifiedFailure]:
        """Single service call; returns the text or a classified failure."""
        try:
            response = await self._client.audio.transcriptions.create(
                file=(filename, audio_bytes, mime_type),
                model=self.model,
                language=self.language,
                temperature=0,
                response_format="json",
            )
        except Exception as e:  # every failure is classified at this boundary
            return classify_error(e)
        return response.text

    @staticmethod
    def _failure(
        failure: ClassifiedFailure,
        message: str,
        duration_ms: int,
        attempts: List[TranscriptionAttempt],
    ) -> TranscriptionResult:
        return TranscriptionResult(
            success=False,
            duration_ms=duration_ms,
            error=message or f"Transcription failed: {failure.kind.value}",
            error_kind=failure.kind,
            attempts=attempts,
        )
