"""
Wiring — builds the collaborators shared by the API and the CLI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from bid_requirements.config import Settings, get_settings
from bid_requirements.orchestration.graph import RequirementsExtractionPipeline
from bid_requirements.persistence import DocumentRepository, MongoClient, RequirementRepository
from bid_requirements.services.file_service import FileService
from bid_requirements.services.llm_service import GroqInferenceClient, InferenceClient

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    settings: Settings
    documents: DocumentRepository
    requirements: RequirementRepository
    files: FileService
    pipeline: RequirementsExtractionPipeline


def build_services(
    settings: Optional[Settings] = None,
    client: Optional[InferenceClient] = None,
) -> AppServices:
    settings = settings or get_settings()

    database = None
    if settings.storage_backend == "mongo":
        database = MongoClient(settings).get_database()
    elif settings.storage_backend != "memory":
        raise ValueError(f"Unknown storage backend '{settings.storage_backend}'")
    logger.info(f"Storage backend: {settings.storage_backend}")

    documents = DocumentRepository(database)
    requirements = RequirementRepository(database)
    files = FileService(settings)
    pipeline = RequirementsExtractionPipeline(
        client=client or GroqInferenceClient(settings),
        documents=documents,
        requirements=requirements,
        files=files,
        settings=settings,
    )
    return AppServices(
        settings=settings,
        documents=documents,
        requirements=requirements,
        files=files,
        pipeline=pipeline,
    )
