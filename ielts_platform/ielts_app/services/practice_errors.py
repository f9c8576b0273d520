"""Errors surfaced by the practice generation endpoint."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict


class PracticeGenerationError(Exception):
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    error_type: str | None = None
    default_message = "Failed to generate content. Please try again."
    default_suggestion: str | None = None

    def __init__(self, message: str | None = None, *, suggestion: str | None = None, details: str | None = None):
        self.message = message or self.default_message
        self.suggestion = suggestion or self.default_suggestion
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.error_type:
            body["errorType"] = self.error_type
        if self.suggestion:
            body["suggestion"] = self.suggestion
        if self.details:
            body["details"] = self.details
        return body


class QuotaExceededError(PracticeGenerationError):
    status = HTTPStatus.TOO_MANY_REQUESTS
    error_type = "QUOTA_EXCEEDED"
    default_message = "QUOTA_EXCEEDED: The Gemini API rate limit has been reached. Please wait a few minutes and try again."
    default_suggestion = "Check your usage at aistudio.google.com or wait a few minutes before retrying."


class TTSFailedError(PracticeGenerationError):
    error_type = "TTS_FAILED"
    default_message = "Audio generation failed. Please try again."


class ContentParseError(PracticeGenerationError):
    error_type = "PARSE_ERROR"
    default_message = "AI returned invalid content. Please try again."


class ModelUnavailableError(PracticeGenerationError):
    pass


class InvalidModuleError(PracticeGenerationError):
    status = HTTPStatus.BAD_REQUEST
    default_message = "Invalid module"


class MissingApiKeyError(PracticeGenerationError):
    status = HTTPStatus.BAD_REQUEST
    default_message = "No API key available. Please add your Gemini API key in Settings to generate practice tests."
