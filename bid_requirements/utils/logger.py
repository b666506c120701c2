"""Centralized logging configuration.
Call setup_logging() once at application startup (CLI or API server).
"""

from __future__ import annotations

import io
import logging
import sys
from typing import Optional, TextIO

# Third-party loggers that flood the output at INFO / DEBUG
_NOISY_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "groq": logging.WARNING,
    "pymongo": logging.WARNING,
    "langchain_core": logging.INFO,
    "langchain_groq": logging.INFO,
    "uvicorn.access": logging.WARNING,
}

_DEBUG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(funcName)s:%(lineno)d\n  %(message)s"
_COMPACT_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"


def _utf8_stream(stream: TextIO) -> TextIO:
    # Progress lines carry ▶ ✔ ↻ which cp1252 consoles cannot encode
    buffer = getattr(stream, "buffer", None)
    if buffer is None:
        return stream
    return io.TextIOWrapper(buffer, encoding="utf-8", errors="replace", line_buffering=True)


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> None:
    """
    Attach a single stream handler to the root logger.

    DEBUG uses a two-line format with the calling function and line; every
    other level uses one line per record. Repeated calls are no-ops.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    handler = logging.StreamHandler(_utf8_stream(stream or sys.stdout))
    handler.setFormatter(
        logging.Formatter(
            fmt=_DEBUG_FORMAT if numeric <= logging.DEBUG else _COMPACT_FORMAT,
            datefmt="%H:%M:%S",
        )
    )
    root.setLevel(numeric)
    root.addHandler(handler)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(noisy_level, numeric))
