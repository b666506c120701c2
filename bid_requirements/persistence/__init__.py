"""Persistence — MongoClient, DocumentRepository, RequirementRepository."""

from bid_requirements.persistence.mongo_client import MongoClient
from bid_requirements.persistence.document_repository import DocumentRepository
from bid_requirements.persistence.requirement_repository import RequirementRepository

__all__ = ["MongoClient", "DocumentRepository", "RequirementRepository"]
