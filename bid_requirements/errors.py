"""
Error taxonomy for the extraction pipeline.

Only DocumentValidationError (raised before streaming) and the fatal run
errors (EmptyCorpusError, NoCategoriesFound, ...) surface as an overall
failure. Per-category failures are recovered inside the pipeline.
"""

from __future__ import annotations

from bid_requirements.models.enums import InferenceErrorKind


class BidRequirementsError(Exception):
    """Base class for every error raised by this package."""

    user_message: str = "An unexpected error occurred."

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.user_message)

    @property
    def public_message(self) -> str:
        """Message that is safe to show to the client."""
        return str(self)


# ── Pre-stream validation ────────────────────────────────


class DocumentValidationError(BidRequirementsError):
    """Bad or missing document / project ids. Rejected before any streaming."""

    user_message = "Validation failed"

    def __init__(
        self,
        message: str = "",
        errors: dict[str, list[str]] | None = None,
        status_code: int = 422,
    ) -> None:
        super().__init__(message)
        self.errors = errors or {}
        self.status_code = status_code


# ── Corpus ───────────────────────────────────────────────


class ContentExtractionError(BidRequirementsError):
    """A single document could not be converted to plain text."""

    user_message = "Could not read document content."


class EmptyCorpusError(BidRequirementsError):
    user_message = "No readable content found in the selected documents"


# ── Inference ────────────────────────────────────────────


_KIND_MESSAGES = {
    InferenceErrorKind.OVERLOADED: "The AI service is currently busy. Please try again in a few moments.",
    InferenceErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment before trying again.",
    InferenceErrorKind.TIMEOUT: "The AI service took too long to respond. Please try again.",
}


class InferenceError(BidRequirementsError):
    """Raised by an InferenceClient. Always carries a structured kind."""

    retryable: bool = False

    def __init__(self, kind: InferenceErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind

    @property
    def public_message(self) -> str:
        return _KIND_MESSAGES.get(
            self.kind,
            "The AI service encountered an error. Please try again.",
        )


class InferenceTransientError(InferenceError):
    """Overload, timeout or rate limiting. Safe to retry."""

    retryable = True


class InferenceFatalError(InferenceError):
    """Any other inference failure. Never retried."""


# ── Stage failures ───────────────────────────────────────


class NoCategoriesFound(BidRequirementsError):
    user_message = "No requirement types could be identified in the selected documents."

    @property
    def public_message(self) -> str:
        return self.user_message


class CategoryExtractionExhausted(BidRequirementsError):
    """All retry attempts for one category failed. The category is skipped."""

    def __init__(self, category: str, attempts: int, last_error: BaseException | None = None) -> None:
        super().__init__(
            f"Extraction for '{category}' failed after {attempts} attempts: {last_error}"
        )
        self.category = category
        self.attempts = attempts
        self.last_error = last_error


# ── Run lifecycle ────────────────────────────────────────


class PipelineCancelled(BidRequirementsError):
    user_message = "Requirement extraction was cancelled."


class PipelineTimeoutError(BidRequirementsError):
    user_message = "Requirement extraction exceeded the maximum run time."


class RequirementPersistenceError(BidRequirementsError):
    """Saving stopped partway. Records saved before the failure are kept."""

    user_message = "Failed to save the extracted requirements."

    def __init__(self, message: str = "", saved_count: int = 0) -> None:
        super().__init__(message)
        self.saved_count = saved_count

    @property
    def public_message(self) -> str:
        return self.user_message


class InvalidRunTransition(BidRequirementsError):
    pass


class UnexpectedError(BidRequirementsError):
    """Wraps any uncaught exception at the top of a run."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"An unexpected error occurred: {cause}")
        self.cause = cause
