"""
Category Extraction — phase 2 of the layered extraction.

One inference call per category, through the Retry Policy. A category
whose retries are exhausted, or whose call fails fatally, is skipped:
extract() returns None and the run carries on with the other categories.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from bid_requirements.agents.base_agent import BaseAgent
from bid_requirements.errors import CategoryExtractionExhausted, InferenceFatalError
from bid_requirements.models.schemas import RequirementCandidate, RequirementCandidateList
from bid_requirements.orchestration.retry import RetryListener, RetryPolicy
from bid_requirements.prompts import build_category_prompt
from bid_requirements.services.llm_service import InferenceClient

logger = logging.getLogger(__name__)


class CategoryExtractionAgent(BaseAgent):
    name = "EXTRACT"

    def __init__(self, client: InferenceClient, retry_policy: RetryPolicy) -> None:
        super().__init__(client)
        self.retry_policy = retry_policy

    def extract(
        self,
        category: str,
        corpus: str,
        on_retry: Optional[RetryListener] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[list[RequirementCandidate]]:
        prompt = build_category_prompt(category, corpus)

        try:
            result = self.retry_policy.call(
                lambda: self._invoke(prompt, RequirementCandidateList, label=category),
                category=category,
                on_retry=on_retry,
                cancel_event=cancel_event,
            )
        except CategoryExtractionExhausted as exc:
            logger.warning(f"[EXTRACT] Skipping '{category}': {exc}")
            return None
        except InferenceFatalError as exc:
            logger.warning(
                f"[EXTRACT] Skipping '{category}': non-retryable {exc.kind.value} error: {exc}"
            )
            return None

        return self._normalize(category, result.requirements)

    @staticmethod
    def _normalize(category: str, candidates: list[RequirementCandidate]) -> list[RequirementCandidate]:
        """Drop untitled candidates and pin `type` to the extraction key."""
        kept: list[RequirementCandidate] = []
        for candidate in candidates:
            if not candidate.title.strip():
                logger.warning(f"[EXTRACT] Dropping untitled '{category}' requirement")
                continue
            if candidate.type != category:
                candidate = candidate.model_copy(update={"type": category})
            kept.append(candidate)

        logger.info(f"[EXTRACT] '{category}': {len(kept)} requirements")
        return kept
