from .enums import (
    GENERATION_METHOD,
    InferenceErrorKind,
    PipelineStage,
    Priority,
    ProgressEventType,
    RequirementStatus,
    RunStatus,
)
from .schemas import (
    Document,
    ExtractionRequest,
    ProgressEvent,
    Requirement,
    RequirementCandidate,
    RequirementCandidateList,
    RequirementMetadata,
    RequirementTypeList,
)

__all__ = [
    "GENERATION_METHOD",
    "InferenceErrorKind",
    "PipelineStage",
    "Priority",
    "ProgressEventType",
    "RequirementStatus",
    "RunStatus",
    "Document",
    "ExtractionRequest",
    "ProgressEvent",
    "Requirement",
    "RequirementCandidate",
    "RequirementCandidateList",
    "RequirementMetadata",
    "RequirementTypeList",
]
