"""
File Service — local document storage.
Resolves stored document paths and reads their bytes for parsing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from bid_requirements.config import Settings, get_settings
from bid_requirements.errors import ContentExtractionError

logger = logging.getLogger(__name__)


class FileService:
    """Reads stored documents from under the configured storage root."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.base_path = Path(self.settings.local_storage_path)

    def resolve(self, path: str) -> Path:
        """Absolute paths are used as-is; relative ones live under the storage root."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.base_path / candidate

    def load_file(self, path: str) -> bytes:
        """Load a file's content."""
        resolved = self.resolve(path)
        try:
            data = resolved.read_bytes()
        except OSError as exc:
            raise ContentExtractionError(f"Cannot read {resolved}: {exc}") from exc
        logger.debug(f"Loaded {len(data)} bytes from {resolved}")
        return data
