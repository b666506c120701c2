"""Services — FileService, ContentExtractor, inference clients."""

from bid_requirements.services.file_service import FileService
from bid_requirements.services.parsing_service import ContentExtractor, build_corpus
from bid_requirements.services.llm_service import (
    GroqInferenceClient,
    InferenceClient,
    classify_provider_error,
)

__all__ = [
    "FileService",
    "ContentExtractor",
    "build_corpus",
    "GroqInferenceClient",
    "InferenceClient",
    "classify_provider_error",
]
