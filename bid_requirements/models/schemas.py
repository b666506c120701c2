"""
Data schemas flowing through the extraction pipeline.

Inference output schemas (RequirementTypeList, RequirementCandidateList) are
handed to the LLM as structured-output targets, so their field descriptions
double as instructions to the model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    GENERATION_METHOD,
    Priority,
    ProgressEventType,
    RequirementStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Request ──────────────────────────────────────────────


class ExtractionRequest(BaseModel):
    """One submitted extraction job. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    document_ids: tuple[str, ...]
    project_id: str

    @field_validator("document_ids", mode="before")
    @classmethod
    def _dedupe_ids(cls, value: Any) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for item in value or ():
            seen.setdefault(str(item), None)
        if not seen:
            raise ValueError("at least one document id is required")
        return tuple(seen)

    @field_validator("project_id", mode="before")
    @classmethod
    def _coerce_project_id(cls, value: Any) -> str:
        value = str(value).strip() if value is not None else ""
        if not value:
            raise ValueError("project_id is required")
        return value


class Document(BaseModel):
    """A stored tender document the pipeline can read."""

    id: str
    project_id: str
    name: str
    file_path: str
    mime_type: str = "application/octet-stream"


# ── Inference schemas ────────────────────────────────────


class RequirementTypeList(BaseModel):
    """Output of taxonomy discovery."""

    requirement_types: list[str] = Field(
        default_factory=list,
        description=(
            "Bid-qualification requirement categories present in the documents, "
            "e.g. 'Financial', 'Experience', 'Personnel'. One short label each."
        ),
    )


class RequirementCandidate(BaseModel):
    """A single qualification requirement returned for one category."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(description="Requirement category")
    title: str = Field(description="Specific requirement title")
    priority: Priority = Field(description="Priority level of the requirement")
    description: str = Field(default="", description="Detailed description of the requirement")

    @property
    def status(self) -> RequirementStatus:
        """Candidates are always pending review; the model never sets this."""
        return RequirementStatus.PENDING


class RequirementCandidateList(BaseModel):
    requirements: list[RequirementCandidate] = Field(
        default_factory=list,
        description="List of extracted requirements",
    )


# ── Stamped records ──────────────────────────────────────


class RequirementMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    generated_at: datetime = Field(default_factory=utcnow)
    document_ids: list[str] = []
    generation_method: str = GENERATION_METHOD


class Requirement(BaseModel):
    """A candidate after aggregation: identified, timestamped, attributed."""

    id: str
    project_id: str
    type: str
    title: str
    description: str = ""
    priority: Priority
    status: RequirementStatus = RequirementStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    ai_metadata: RequirementMetadata

    def to_record(self) -> dict[str, Any]:
        """JSON-safe dict in the persisted record layout."""
        return self.model_dump(mode="json")


# ── Progress events ──────────────────────────────────────


class ProgressEvent(BaseModel):
    """One message on the live progress stream."""

    type: ProgressEventType
    message: Optional[str] = None
    stage: Optional[str] = None
    progress: Optional[float] = Field(default=None, ge=0, le=100)
    total_types: Optional[int] = None
    processed_types: Optional[int] = None
    current_type: Optional[str] = None
    extracted_count: Optional[int] = None
    total_extracted: Optional[int] = None
    attempt: Optional[int] = None
    max_attempts: Optional[int] = None
    wait_time: Optional[float] = None
    data: Optional[list[dict[str, Any]]] = None
    error: Optional[str] = None
    ts: str = Field(default_factory=lambda: utcnow().isoformat())

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
