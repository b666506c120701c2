"""
Mongo Client — database handle for storage_backend == "mongo".

Collections:
  documents     — one row per uploaded tender document (unique `id`)
  requirements  — stamped requirement records, queried by `project_id`
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import pymongo

from bid_requirements.config import Settings, get_settings

logger = logging.getLogger(__name__)


def ensure_indexes(database: Any) -> None:
    """Create the indexes the repositories query by. Idempotent."""
    database["documents"].create_index([("id", pymongo.ASCENDING)], unique=True)
    database["requirements"].create_index([("project_id", pymongo.ASCENDING)])
    database["requirements"].create_index([("id", pymongo.ASCENDING)], unique=True)


class MongoClient:
    """Lazily connects on first get_database() and prepares the indexes."""

    def __init__(self, settings: Optional[Settings] = None, client_factory=pymongo.MongoClient):
        self.settings = settings or get_settings()
        self._client_factory = client_factory
        self._client: Any = None
        self._db: Any = None

    def connect(self) -> None:
        self._client = self._client_factory(self.settings.mongodb_uri)
        self._db = self._client[self.settings.mongodb_database]
        ensure_indexes(self._db)
        logger.info(f"Connected to MongoDB database '{self.settings.mongodb_database}'")

    def get_database(self) -> Any:
        if self._db is None:
            self.connect()
        return self._db

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("MongoDB connection closed")
