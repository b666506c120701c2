"""
Parsing Service — normalizes document bytes into plain text.

Supported:
  • PDF   → PyMuPDF page text, in page order
  • DOCX  → paragraphs, then table rows with " | " separated cells
  • text/*, JSON, CSV, Markdown, XML → decoded as UTF-8 unchanged

Does NOT:
  • OCR scanned pages
  • Read legacy binary .doc files
  • Summarize or interpret content
"""

from __future__ import annotations

import io
import logging
import mimetypes
from pathlib import Path
from typing import Iterable

from bid_requirements.errors import ContentExtractionError, EmptyCorpusError

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"

_TEXT_LIKE = {
    "application/json",
    "application/xml",
    "application/csv",
    "application/x-yaml",
}

_EXTENSION_MIME = {
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
    ".doc": DOC_MIME,
    ".md": "text/markdown",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".json": "application/json",
}


def guess_mime_type(file_name: str) -> str:
    """Best-effort MIME type from a file name."""
    suffix = Path(file_name).suffix.lower()
    if suffix in _EXTENSION_MIME:
        return _EXTENSION_MIME[suffix]
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or "application/octet-stream"


class ContentExtractor:
    """
    Content Extractor collaborator:
        text = ContentExtractor().extract_text(data, mime_type)
    """

    def extract_text(self, data: bytes, mime_type: str) -> str:
        mime = (mime_type or "").split(";")[0].strip().lower()

        if mime == PDF_MIME:
            return self._extract_pdf(data)
        if mime == DOCX_MIME:
            return self._extract_docx(data)
        if mime.startswith("text/") or mime in _TEXT_LIKE:
            return data.decode("utf-8", errors="replace")

        raise ContentExtractionError(f"Unsupported document type: {mime or 'unknown'}")

    # ── PDF ──────────────────────────────────────────────

    @staticmethod
    def _extract_pdf(data: bytes) -> str:
        import fitz  # PyMuPDF

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ContentExtractionError(f"Failed to open PDF: {exc}") from exc

        try:
            pages = [page.get_text("text") for page in doc]
        finally:
            doc.close()

        logger.debug(f"[PARSE] PDF: {len(pages)} pages")
        return "\n".join(pages)

    # ── Word ─────────────────────────────────────────────

    @staticmethod
    def _extract_docx(data: bytes) -> str:
        import docx  # python-docx

        try:
            document = docx.Document(io.BytesIO(data))
        except Exception as exc:
            raise ContentExtractionError(f"Failed to parse Word document: {exc}") from exc

        lines: list[str] = [p.text for p in document.paragraphs if p.text.strip()]

        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    lines.append(" | ".join(cells))

        logger.debug(
            f"[PARSE] DOCX: {len(document.paragraphs)} paragraphs, "
            f"{len(document.tables)} tables"
        )
        return "\n".join(lines)


def build_corpus(sections: Iterable[tuple[str, str]], max_chars: int = 0) -> str:
    """
    Concatenate (document name, text) pairs into a single corpus with a
    header per document. Documents without text are left out.

    max_chars > 0 truncates the combined corpus; 0 leaves it unbounded.
    """
    parts: list[str] = []
    for name, text in sections:
        if not text or not text.strip():
            logger.warning(f"[PARSE] No readable content in '{name}' — skipped")
            continue
        parts.append(f"\n\n--- Document: {name} ---\n{text}")

    corpus = "".join(parts)
    if not corpus.strip():
        raise EmptyCorpusError()

    if max_chars and len(corpus) > max_chars:
        logger.warning(
            f"[PARSE] Corpus truncated from {len(corpus)} to {max_chars} chars"
        )
        corpus = corpus[:max_chars]
    return corpus
