"""
PipelineRun — ephemeral state for one ExtractionRequest.

Lifecycle:
    idle → running → completed
                   → failed

Nothing here is persisted; the run is discarded when the stream ends.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from bid_requirements.errors import InvalidRunTransition
from .enums import RunStatus
from .schemas import ExtractionRequest, Requirement, utcnow

_ALLOWED = {
    RunStatus.IDLE: {RunStatus.RUNNING},
    RunStatus.RUNNING: {RunStatus.COMPLETED, RunStatus.FAILED},
    RunStatus.COMPLETED: set(),
    RunStatus.FAILED: set(),
}


class PipelineRun(BaseModel):
    run_id: str = Field(default_factory=lambda: f"RUN-{uuid.uuid4().hex[:8].upper()}")
    request: ExtractionRequest
    status: RunStatus = RunStatus.IDLE

    categories: list[str] = Field(default_factory=list)
    skipped_categories: list[str] = Field(default_factory=list)
    requirements: list[Requirement] = Field(default_factory=list)
    error_message: str = ""

    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)

    def _transition(self, target: RunStatus) -> None:
        if target not in _ALLOWED[self.status]:
            raise InvalidRunTransition(
                f"Run {self.run_id}: cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def start(self) -> None:
        self._transition(RunStatus.RUNNING)
        self.started_at = utcnow()

    def complete(self, requirements: list[Requirement]) -> None:
        self._transition(RunStatus.COMPLETED)
        self.requirements = list(requirements)
        self.finished_at = utcnow()

    def fail(self, message: str) -> None:
        self._transition(RunStatus.FAILED)
        self.error_message = message
        self.finished_at = utcnow()
