"""
Taxonomy Discovery — phase 1 of the layered extraction.

One inference call classifies the whole corpus into bid-qualification
requirement categories. There is no retry here: any failure, or an empty
answer, ends the run with NoCategoriesFound.
"""

from __future__ import annotations

import logging

from bid_requirements.agents.base_agent import BaseAgent
from bid_requirements.errors import NoCategoriesFound
from bid_requirements.models.schemas import RequirementTypeList
from bid_requirements.prompts import build_taxonomy_prompt

logger = logging.getLogger(__name__)


def dedupe_categories(labels: list[str]) -> list[str]:
    """Strip, drop blanks and remove case-insensitive duplicates, keeping order."""
    seen: set[str] = set()
    result: list[str] = []
    for label in labels:
        cleaned = " ".join(str(label).split())
        key = cleaned.lower()
        if cleaned and key not in seen:
            seen.add(key)
            result.append(cleaned)
    return result


class TaxonomyDiscoveryAgent(BaseAgent):
    name = "TAXONOMY"

    def discover(self, corpus: str) -> list[str]:
        try:
            result = self._invoke(build_taxonomy_prompt(corpus), RequirementTypeList)
        except Exception as exc:
            logger.error(f"[TAXONOMY] Requirement type discovery failed: {exc}")
            raise NoCategoriesFound(str(exc)) from exc

        categories = dedupe_categories(result.requirement_types)
        if not categories:
            logger.error("[TAXONOMY] Inference returned no requirement types")
            raise NoCategoriesFound()

        logger.info(f"[TAXONOMY] {len(categories)} requirement types: {categories}")
        return categories
