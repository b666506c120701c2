from enum import Enum


class Priority(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class RequirementStatus(str, Enum):
    PENDING = "Pending"


class RunStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ProgressEventType(str, Enum):
    START = "start"
    PROGRESS = "progress"
    RETRY = "retry"
    PING = "ping"
    COMPLETE = "complete"
    ERROR = "error"
    END = "end"


class PipelineStage(str, Enum):
    ANALYZING = "analyzing"
    DISCOVERING = "discovering_types"
    EXTRACTING = "extracting"
    SAVING = "saving"
    COMPLETE = "complete"


class InferenceErrorKind(str, Enum):
    OVERLOADED = "overloaded"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    AUTHENTICATION = "authentication"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"


GENERATION_METHOD = "layered_extraction"
