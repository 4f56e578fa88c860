"""Tests for request and outcome models."""

import pydantic
import pytest

from transcript_pipeline.models import (
    ExtractionErrorKind,
    ExtractionResult,
    FailureCategory,
    PipelineOutcome,
    ProcessRequest,
)


class TestProcessRequest:
    def test_strips_whitespace(self):
        assert ProcessRequest(url="  https://youtu.be/dQw4w9WgXcQ ").url == "https://youtu.be/dQw4w9WgXcQ"

    @pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": "   "}, {"url": None}, {"url": 42}])
    def test_rejects_missing_or_blank(self, payload):
        with pytest.raises(pydantic.ValidationError):
            ProcessRequest.model_validate(payload)


class TestFailureCategory:
    @pytest.mark.parametrize(
        "category,status",
        [
            (FailureCategory.ADMISSION, 429),
            (FailureCategory.VALIDATION, 400),
            (FailureCategory.EXTRACTION, 500),
            (FailureCategory.TRANSCRIPTION, 500),
            (FailureCategory.UNAVAILABLE, 503),
            (FailureCategory.UNEXPECTED, 500),
        ],
    )
    def test_status(self, category, status):
        assert category.status == status


class TestPipelineOutcome:
    def test_success_body(self):
        outcome = PipelineOutcome.succeeded(
            "dQw4w9WgXcQ", "hola", "viajera:transcript:dQw4w9WgXcQ", from_cache=True, duration_ms=12
        )
        assert outcome.status == 200
        assert outcome.to_dict() == {
            "success": True,
            "videoId": "dQw4w9WgXcQ",
            "transcript": "hola",
            "fromCache": True,
            "duration": 12,
            "cacheKey": "viajera:transcript:dQw4w9WgXcQ",
        }

    def test_failure_body_with_code(self):
        outcome = PipelineOutcome.failed(FailureCategory.TRANSCRIPTION, "boom", 5, code="SERVER_ERROR")
        assert outcome.status == 500
        assert outcome.to_dict() == {"success": False, "error": "boom", "code": "SERVER_ERROR"}

    def test_failure_body_without_code(self):
        outcome = PipelineOutcome.failed(FailureCategory.UNEXPECTED, "An unexpected error occurred", 5)
        assert outcome.to_dict() == {"success": False, "error": "An unexpected error occurred"}

    def test_admission_body_carries_reset_metadata(self):
        outcome = PipelineOutcome.failed(
            FailureCategory.ADMISSION, "Rate limit exceeded", 1, code="RATE_LIMITED", remaining=0, reset_at=0.0
        )
        body = outcome.to_dict()
        assert outcome.status == 429
        assert body["remaining"] == 0
        assert body["resetAt"] == "1970-01-01T00:00:00+00:00"


class TestExtractionResult:
    def test_failure_to_dict(self):
        result = ExtractionResult.failure(ExtractionErrorKind.TIMEOUT, "timed out", 300000, "dQw4w9WgXcQ")
        body = result.to_dict()
        assert body["success"] is False
        assert body["code"] == "TIMEOUT"
        assert body["audioPath"] is None
        assert body["videoId"] == "dQw4w9WgXcQ"
