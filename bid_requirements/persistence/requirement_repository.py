"""
Requirement Repository — stores stamped requirement records.

Records are written one at a time. There is no rollback: if a write fails,
the records saved before it stay saved and RequirementPersistenceError
reports how many made it.
"""

from __future__ import annotations

import logging
from typing import Any

from bid_requirements.errors import RequirementPersistenceError
from bid_requirements.models.schemas import Requirement

logger = logging.getLogger(__name__)


class RequirementRepository:
    """In-memory by default; pass a pymongo database handle for MongoDB."""

    def __init__(self, database: Any = None):
        self._db = database
        self._memory_store: dict[str, list[dict[str, Any]]] = {}

    def _insert(self, record: dict[str, Any]) -> None:
        if self._db is not None:
            # insert_one mutates its argument with _id
            self._db["requirements"].insert_one(dict(record))
        else:
            self._memory_store.setdefault(record["project_id"], []).append(record)

    def save_many(self, requirements: list[Requirement]) -> list[dict[str, Any]]:
        """Persist each requirement and return the saved records in order."""
        saved: list[dict[str, Any]] = []
        for requirement in requirements:
            record = requirement.to_record()
            try:
                self._insert(record)
            except Exception as exc:
                logger.error(
                    f"Saving requirement {requirement.id} failed after "
                    f"{len(saved)}/{len(requirements)} records: {exc}"
                )
                raise RequirementPersistenceError(str(exc), saved_count=len(saved)) from exc
            saved.append(record)

        logger.info(f"Saved {len(saved)} requirements")
        return saved

    def list_for_project(self, project_id: str) -> list[dict[str, Any]]:
        if self._db is not None:
            return list(self._db["requirements"].find({"project_id": project_id}, {"_id": 0}))
        return [dict(r) for r in self._memory_store.get(project_id, [])]
