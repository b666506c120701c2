"""
Aggregator — turns accepted candidates into persisted requirement records.

Order is preserved (taxonomy order, then provider order within a category).
Stamping adds id / project / timestamps / provenance, sets status to
Pending, and leaves the candidate's type, title, priority and description
untouched.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from bid_requirements.models.enums import RequirementStatus
from bid_requirements.models.schemas import (
    ExtractionRequest,
    Requirement,
    RequirementCandidate,
    RequirementMetadata,
    utcnow,
)
from bid_requirements.persistence.requirement_repository import RequirementRepository

logger = logging.getLogger(__name__)


def new_requirement_id() -> str:
    return f"req_{uuid.uuid4().hex}"


class RequirementAggregator:
    def __init__(self, repository: RequirementRepository) -> None:
        self.repository = repository

    def stamp(
        self,
        candidates: list[RequirementCandidate],
        request: ExtractionRequest,
        generated_at: Optional[datetime] = None,
    ) -> list[Requirement]:
        generated_at = generated_at or utcnow()
        metadata = RequirementMetadata(
            generated_at=generated_at,
            document_ids=list(request.document_ids),
        )
        return [
            Requirement(
                id=new_requirement_id(),
                project_id=request.project_id,
                type=candidate.type,
                title=candidate.title,
                description=candidate.description,
                priority=candidate.priority,
                status=RequirementStatus.PENDING,
                created_at=generated_at,
                ai_metadata=metadata,
            )
            for candidate in candidates
        ]

    def persist(self, requirements: list[Requirement]) -> list[dict[str, Any]]:
        logger.info(f"[AGGREGATE] Persisting {len(requirements)} requirements")
        return self.repository.save_many(requirements)
