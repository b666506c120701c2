"""
Base class for the pipeline's inference stages.

Each stage owns one kind of inference call. `_invoke()` wraps the client
call with timing and the banner logging every stage shares.
"""

from __future__ import annotations

import logging
import time
from typing import Type, TypeVar

from pydantic import BaseModel

from bid_requirements.errors import InferenceError
from bid_requirements.services.llm_service import InferenceClient, classify_provider_error

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class BaseAgent:
    """Shared plumbing for stages that call the Inference Client."""

    name: str = "BASE"

    def __init__(self, client: InferenceClient) -> None:
        self.client = client

    def _invoke(self, prompt: str, schema: Type[T], label: str = "") -> T:
        t0 = time.perf_counter()
        tag = f"[{self.name}]" + (f" {label}" if label else "")
        logger.debug(f"▶ {tag} calling inference ({len(prompt)} chars)")
        try:
            result = self.client.extract(prompt, schema)
        except InferenceError as exc:
            logger.warning(f"✘ {tag} failed after {time.perf_counter() - t0:.2f}s: {exc}")
            raise
        except Exception as exc:
            error = classify_provider_error(exc)
            logger.warning(
                f"✘ {tag} failed after {time.perf_counter() - t0:.2f}s: "
                f"{type(exc).__name__} classified as {error.kind.value}: {exc}"
            )
            raise error from exc
        logger.info(f"✔ {tag} completed in {time.perf_counter() - t0:.2f}s")
        return result
