"""Linear request pipeline: admit → validate → cache lookup → extract → transcribe → cache write.

Each request runs the stages strictly in order and ends in exactly one
:class:`PipelineOutcome`. The extracted audio file is scoped to an
``async with`` block, so it is removed exactly once whether transcription
succeeds, fails, or raises.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional, Tuple, Union

import pydantic

from ..cache import CacheStore, build_cache_key, create_cache
from ..config import TRANSCRIPT_TTL_SECONDS, Config, get_config
from ..exceptions import (
    AdmissionDeniedError,
    CacheError,
    ExtractionError,
    RateLimiterUnavailableError,
    TranscriptionError,
    ValidationError,
)
from ..models.pipeline import FailureCategory, PipelineOutcome, ProcessRequest
from ..models.transcription import TranscriptionErrorKind
from ..services.audio_extraction import AudioExtractor
from ..services.rate_limiter import RateLimitDecision, RateLimiter, create_rate_limiter
from ..services.transcription import TranscriptionClient

logger = logging.getLogger(__name__)

RequestLike = Union[ProcessRequest, Mapping[str, Any], str]

URL_REQUIRED_MESSAGE = 'YouTube URL is required. Expected: { "url": "https://www.youtube.com/watch?v=..." }'
INVALID_URL_MESSAGE = (
    "Invalid YouTube URL format. Supported formats: "
    "https://www.youtube.com/watch?v=VIDEO_ID or https://youtu.be/VIDEO_ID"
)
UNEXPECTED_MESSAGE = "An unexpected error occurred"


class TranscriptPipeline:
    """Orchestrates one transcript request across the injected services.

    Attributes:
        extractor: Produces and owns temporary audio files
        transcriber: Turns audio files into text
        cache: Transcript store; failures are logged and treated as a miss
        rate_limiter: Per-identity admission control
        namespace: Cache key namespace
        ttl_seconds: Lifetime of cached transcripts
        fail_open: Admit requests when the rate limiter store is unreachable
    """

    def __init__(
        self,
        extractor: AudioExtractor,
        transcriber: TranscriptionClient,
        cache: CacheStore,
        rate_limiter: RateLimiter,
        namespace: str = "viajera",
        ttl_seconds: int = TRANSCRIPT_TTL_SECONDS,
        fail_open: bool = False,
    ) -> None:
        self.extractor = extractor
        self.transcriber = transcriber
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.fail_open = fail_open

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "TranscriptPipeline":
        """Wire every service from configuration.

        Raises:
            ConfigurationError: If the transcription API key is missing
        """
        config = config or get_config()
        return cls(
            extractor=AudioExtractor.from_config(config),
            transcriber=TranscriptionClient.from_config(config),
            cache=create_cache(config),
            rate_limiter=create_rate_limiter(config),
            namespace=config.namespace,
            ttl_seconds=config.cache_ttl,
            fail_open=config.rate_limit_fail_open,
        )

    async def process(self, request: RequestLike, identity: str = "unknown") -> PipelineOutcome:
        """Run the full pipeline for one request.

        Args:
            request: ``ProcessRequest``, a ``{"url": ...}`` mapping, or a bare URL
            identity: Client identity used for admission control

        Returns:
            PipelineOutcome; this method does not raise for request-level failures
        """
        started = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        try:
            await self._admit(identity)
            url, video_id = self._parse_request(request)
            cache_key = build_cache_key(self.namespace, video_id)

            logger.info(f"[{video_id}] Starting pipeline for {url}")

            cached = await self._cache_lookup(cache_key)
            if cached is not None:
                logger.info(f"[{video_id}] Cache hit, pipeline completed in {elapsed()}ms")
                return PipelineOutcome.succeeded(video_id, cached, cache_key, True, elapsed())

            logger.info(f"[{video_id}] Cache miss, extracting audio")
            transcript = await self._extract_and_transcribe(url, video_id)

            await self._cache_store(cache_key, transcript)
            logger.info(f"[{video_id}] Pipeline completed in {elapsed()}ms")
            return PipelineOutcome.succeeded(video_id, transcript, cache_key, False, elapsed())

        except AdmissionDeniedError as e:
            logger.warning(f"Rate limit exceeded for {e.identity}")
            return PipelineOutcome.failed(
                FailureCategory.ADMISSION,
                f"Rate limit exceeded. Maximum {self.rate_limiter.capacity} requests "
                f"per {self.rate_limiter.window_seconds:g} seconds.",
                elapsed(),
                code="RATE_LIMITED",
                remaining=e.remaining,
                reset_at=e.reset_at,
            )
        except RateLimiterUnavailableError:
            return PipelineOutcome.failed(
                FailureCategory.UNAVAILABLE,
                "Service temporarily unavailable. Please try again later.",
                elapsed(),
                code="RATE_LIMITER_UNAVAILABLE",
            )
        except ValidationError as e:
            logger.info(f"Rejected request: {e}")
            return PipelineOutcome.failed(FailureCategory.VALIDATION, str(e), elapsed(), code=e.code)
        except ExtractionError as e:
            return PipelineOutcome.failed(
                FailureCategory.EXTRACTION,
                str(e) or "Failed to extract audio from YouTube",
                elapsed(),
                code=e.kind.value,
            )
        except TranscriptionError as e:
            return PipelineOutcome.failed(
                FailureCategory.TRANSCRIPTION,
                str(e) or "Failed to transcribe audio",
                elapsed(),
                code=e.kind.value,
            )
        except Exception:
            logger.exception("Unexpected pipeline error")
            return PipelineOutcome.failed(FailureCategory.UNEXPECTED, UNEXPECTED_MESSAGE, elapsed())

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _admit(self, identity: str) -> Optional[RateLimitDecision]:
        try:
            decision = await self.rate_limiter.admit(identity)
        except RateLimiterUnavailableError:
            if not self.fail_open:
                raise
            logger.warning(f"Rate limiter unavailable, admitting {identity} without a check")
            return None
        if not decision.allowed:
            raise AdmissionDeniedError(identity, decision.remaining, decision.reset_at)
        return decision

    def _parse_request(self, request: RequestLike) -> Tuple[str, str]:
        """Return ``(url, video_id)`` or raise :class:`ValidationError`."""
        if isinstance(request, str):
            request = {"url": request}
        if not isinstance(request, ProcessRequest):
            try:
                request = ProcessRequest.model_validate(
                    dict(request) if isinstance(request, Mapping) else request
                )
            except pydantic.ValidationError as e:
                raise ValidationError(URL_REQUIRED_MESSAGE, code="URL_REQUIRED") from e

        url = request.url
        if not self.extractor.validate(url):
            raise ValidationError(INVALID_URL_MESSAGE, code="INVALID_URL")

        video_id = self.extractor.extract_identifier(url)
        if not video_id:
            raise ValidationError("Could not extract video ID from URL", code="IDENTIFIER_MISSING")
        return url, video_id

    async def _cache_lookup(self, cache_key: str) -> Optional[str]:
        try:
            cached = await self.cache.get(cache_key)
        except CacheError as e:
            logger.warning(f"Cache lookup failed, proceeding with extraction: {e}")
            return None
        # An empty stored transcript is not a usable hit
        return cached or None

    async def _extract_and_transcribe(self, url: str, video_id: str) -> str:
        """Extract audio, transcribe it, and release the file on every path.

        Raises:
            ExtractionError: If no audio file could be produced
            TranscriptionError: If the transcription service gave up
        """
        async with self.extractor.audio_file(url) as extraction:
            logger.info(f"[{video_id}] Audio extracted, transcribing {extraction.filename}")
            result = await self.transcriber.transcribe_file(extraction.audio_path)

        if not result.success:
            kind = result.error_kind or TranscriptionErrorKind.UNKNOWN
            logger.error(
                f"[{video_id}] Transcription failed after {result.attempt_count} attempt(s): {kind.value}"
            )
            raise TranscriptionError(kind, result.error or "Failed to transcribe audio")
        return result.text or ""

    async def _cache_store(self, cache_key: str, transcript: str) -> None:
        try:
            await self.cache.set_with_ttl(cache_key, transcript, self.ttl_seconds)
        except CacheError as e:
            logger.warning(f"Failed to cache transcription: {e}")
            return
        logger.info(f"Transcription cached for {self.ttl_seconds}s: {cache_key}")

    async def close(self) -> None:
        """Close the cache and rate limiter backends."""
        await self.cache.close()
        await self.rate_limiter.close()
