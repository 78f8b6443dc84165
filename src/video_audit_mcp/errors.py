"""Structured error handling: audit error taxonomy and the tool error model.

Fatal errors (``AuditError`` subclasses) abort a run and surface to the
caller. Degrade-level failures (``StageDegraded`` subclasses) are absorbed by
the pipeline and replaced with safe defaults.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """Distinguishable reason for a fatal failure."""

    INVALID_REFERENCE = "INVALID_REFERENCE"
    METADATA_UNAVAILABLE = "METADATA_UNAVAILABLE"
    SCORING_UNAVAILABLE = "SCORING_UNAVAILABLE"
    INTERNAL = "INTERNAL"


class ErrorStatus(str, Enum):
    """Status category of a fatal failure, for the transport layer."""

    CLIENT_ERROR = "client_error"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INTERNAL_ERROR = "internal_error"


class AuditError(Exception):
    """Base class for errors that abort an audit run."""

    category: ErrorCategory = ErrorCategory.INTERNAL
    status: ErrorStatus = ErrorStatus.INTERNAL_ERROR
    retryable: bool = False
    hint: str = "Unexpected failure while auditing the video"


class InvalidReferenceError(AuditError):
    """The supplied URL does not yield a platform video ID."""

    category = ErrorCategory.INVALID_REFERENCE
    status = ErrorStatus.CLIENT_ERROR
    hint = "Pass a YouTube (youtube.com, youtu.be) or TikTok (tiktok.com) video URL"


class MetadataUnavailableError(AuditError):
    """The metadata provider could not return usable metadata."""

    category = ErrorCategory.METADATA_UNAVAILABLE
    status = ErrorStatus.UPSTREAM_UNAVAILABLE
    retryable = True
    hint = "Video metadata could not be fetched; the video may be private, deleted, or the API is down"


class ScoringUnavailableError(AuditError):
    """The language-model scoring service could not be reached."""

    category = ErrorCategory.SCORING_UNAVAILABLE
    status = ErrorStatus.UPSTREAM_UNAVAILABLE
    retryable = True
    hint = "The scoring model did not respond; wait and retry"


class StageDegraded(Exception):
    """A non-fatal stage failure; the pipeline substitutes a safe default."""

    kind: str = "StageDegraded"

    def __init__(self, message: str, *, stage: str):
        self.stage = stage
        super().__init__(message)


class VisualExtractionFailed(StageDegraded):
    kind = "VisualExtractionFailed"


class TranscriptionFailed(StageDegraded):
    kind = "TranscriptionFailed"


class ScoringMalformedResponseError(StageDegraded):
    """The scoring model replied, but not with the expected structure."""

    kind = "ScoringMalformedResponseError"


class ToolError(BaseModel):
    """Structured error returned from the audit tool."""

    error: str
    category: str
    status: str
    hint: str
    retryable: bool = False


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    if isinstance(error, AuditError):
        return ToolError(
            error=str(error),
            category=error.category.value,
            status=error.status.value,
            hint=error.hint,
            retryable=error.retryable,
        ).model_dump(mode="json")
    return ToolError(
        error=str(error) or type(error).__name__,
        category=ErrorCategory.INTERNAL.value,
        status=ErrorStatus.INTERNAL_ERROR.value,
        hint=AuditError.hint,
    ).model_dump(mode="json")
