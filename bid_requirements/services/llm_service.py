"""
LLM Service — the Inference Client used by every pipeline stage.

Provides:
  - InferenceClient      → protocol: extract(prompt, schema) -> schema instance
  - GroqInferenceClient  → Groq Cloud via langchain-groq structured output
  - classify_provider_error() → maps provider exceptions onto the
                                Transient / Fatal error taxonomy
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Protocol, Type, TypeVar

import groq
import httpx
from pydantic import BaseModel, ValidationError

from bid_requirements.config import Settings, get_settings
from bid_requirements.errors import (
    InferenceError,
    InferenceFatalError,
    InferenceTransientError,
)
from bid_requirements.models.enums import InferenceErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class InferenceClient(Protocol):
    """Executes a single schema-constrained generation request."""

    def extract(self, prompt: str, schema: Type[T]) -> T:
        ...


# ── Error classification ─────────────────────────────────

_TRANSIENT_STATUS = {
    429: InferenceErrorKind.RATE_LIMITED,
    502: InferenceErrorKind.OVERLOADED,
    503: InferenceErrorKind.OVERLOADED,
    504: InferenceErrorKind.TIMEOUT,
    529: InferenceErrorKind.OVERLOADED,
}

_FATAL_STATUS = {
    400: InferenceErrorKind.BAD_REQUEST,
    401: InferenceErrorKind.AUTHENTICATION,
    403: InferenceErrorKind.AUTHENTICATION,
    413: InferenceErrorKind.BAD_REQUEST,
    422: InferenceErrorKind.BAD_REQUEST,
}


def classify_provider_error(exc: BaseException) -> InferenceError:
    """
    Convert a provider / transport exception into the structured taxonomy.
    Classification uses exception classes and HTTP status codes only.
    """
    if isinstance(exc, InferenceError):
        return exc

    if isinstance(exc, (groq.APITimeoutError, httpx.TimeoutException, TimeoutError)):
        return InferenceTransientError(InferenceErrorKind.TIMEOUT, str(exc))

    if isinstance(exc, groq.APIStatusError):
        status = exc.status_code
        if status in _TRANSIENT_STATUS:
            return InferenceTransientError(_TRANSIENT_STATUS[status], str(exc))
        kind = _FATAL_STATUS.get(status, InferenceErrorKind.UNKNOWN)
        return InferenceFatalError(kind, str(exc))

    if isinstance(exc, (groq.APIConnectionError, httpx.TransportError)):
        return InferenceTransientError(InferenceErrorKind.OVERLOADED, str(exc))

    if isinstance(exc, (ValidationError, ValueError)):
        return InferenceFatalError(InferenceErrorKind.INVALID_RESPONSE, str(exc))

    return InferenceFatalError(InferenceErrorKind.UNKNOWN, f"{type(exc).__name__}: {exc}")


# ── Groq implementation ──────────────────────────────────


class GroqInferenceClient:
    """
    Groq-backed client. Uses LangChain's with_structured_output() so the
    provider is constrained to the requested Pydantic schema.
    """

    def __init__(self, settings: Optional[Settings] = None, llm=None) -> None:
        self.settings = settings or get_settings()
        self._llm = llm

    def _get_llm(self):
        if self._llm is not None:
            return self._llm

        if not self.settings.groq_api_key:
            raise InferenceFatalError(
                InferenceErrorKind.AUTHENTICATION,
                "GROQ_API_KEY is not set in environment / .env file",
            )

        from langchain_groq import ChatGroq

        self._llm = ChatGroq(
            api_key=self.settings.groq_api_key,
            model=self.settings.llm_model,
            temperature=self.settings.llm_temperature,
            max_tokens=self.settings.llm_max_tokens,
            timeout=self.settings.llm_timeout_seconds,
            max_retries=0,  # retries are owned by the pipeline
        )
        logger.info(f"Initialized Groq LLM: {self.settings.llm_model}")
        return self._llm

    def extract(self, prompt: str, schema: Type[T]) -> T:
        logger.debug(
            f"[LLM-JSON] Prompt length: {len(prompt)} chars | "
            f"Target model: {schema.__name__}"
        )
        logger.debug(f"[LLM-JSON] Prompt preview:\n{prompt[:500]}{'…' if len(prompt) > 500 else ''}")

        t0 = time.perf_counter()
        try:
            structured_llm = self._get_llm().with_structured_output(schema)
            result = structured_llm.invoke(prompt)
        except Exception as exc:
            error = classify_provider_error(exc)
            logger.warning(
                f"[LLM-JSON] Call failed after {time.perf_counter() - t0:.2f}s | "
                f"kind={error.kind.value} retryable={error.retryable} | {exc}"
            )
            if error is exc:
                raise
            raise error from exc
        elapsed = time.perf_counter() - t0

        if result is None:
            raise InferenceFatalError(
                InferenceErrorKind.INVALID_RESPONSE,
                f"Provider returned no parsable {schema.__name__}",
            )
        if isinstance(result, dict):
            try:
                result = schema.model_validate(result)
            except ValidationError as exc:
                raise InferenceFatalError(InferenceErrorKind.INVALID_RESPONSE, str(exc)) from exc

        logger.info(f"[LLM-JSON] Response received in {elapsed:.2f}s | Model: {schema.__name__}")
        logger.debug(f"[LLM-JSON] Parsed result: {result}")
        return result
