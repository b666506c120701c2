"""
Document Repository — lookup of stored tender documents.

Validates an incoming request before any streaming starts: every id must
exist and belong to the requested project.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from bid_requirements.errors import DocumentValidationError
from bid_requirements.models.schemas import Document, ExtractionRequest

logger = logging.getLogger(__name__)


class DocumentRepository:
    """
    In-memory by default; pass a pymongo database handle to read the
    "documents" collection instead.
    """

    def __init__(self, database: Any = None):
        self._db = database
        self._memory_store: dict[str, Document] = {}

    # ── Writes ───────────────────────────────────────────

    def add(self, document: Document) -> Document:
        if self._db is not None:
            self._db["documents"].replace_one(
                {"id": document.id}, document.model_dump(), upsert=True
            )
        else:
            self._memory_store[document.id] = document
        logger.debug(f"Registered document {document.id} ({document.name})")
        return document

    # ── Reads ────────────────────────────────────────────

    def get(self, document_id: str) -> Optional[Document]:
        if self._db is not None:
            row = self._db["documents"].find_one({"id": document_id}, {"_id": 0})
            return Document(**row) if row else None
        return self._memory_store.get(document_id)

    def get_many(self, document_ids: list[str], project_id: str) -> list[Document]:
        """Documents with the given ids in the given project, in request order."""
        found = []
        for doc_id in document_ids:
            doc = self.get(doc_id)
            if doc is not None and doc.project_id == project_id:
                found.append(doc)
        return found

    # ── Validation ───────────────────────────────────────

    def validate_request(self, request: ExtractionRequest) -> list[Document]:
        """
        Resolve the request's documents or raise DocumentValidationError.

        Unknown ids → 422 with per-id messages.
        Ids that exist but belong to another project → 404.
        """
        missing = [doc_id for doc_id in request.document_ids if self.get(doc_id) is None]
        if missing:
            raise DocumentValidationError(
                "Validation failed",
                errors={
                    f"document_ids.{request.document_ids.index(doc_id)}": [
                        f"The selected document id {doc_id} is invalid."
                    ]
                    for doc_id in missing
                },
            )

        documents = self.get_many(list(request.document_ids), request.project_id)
        if len(documents) != len(request.document_ids):
            raise DocumentValidationError(
                "No valid documents found for the selected project",
                status_code=404,
            )
        return documents
