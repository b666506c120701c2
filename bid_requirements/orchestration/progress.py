"""
Progress Emitter — the event sink the pipeline narrates to.

The pipeline only knows the ProgressSink protocol. Transports (SSE stream,
CLI log, test recorder) are adapters that implement emit().

Percent mapping:
    0        start
    5 → 10   corpus analysis
    15 → 20  taxonomy discovery
    20 → 90  category extraction, linear in processed / total
    95       saving
    100      complete
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Protocol

from bid_requirements.models.enums import PipelineStage, ProgressEventType
from bid_requirements.models.schemas import ProgressEvent

logger = logging.getLogger(__name__)

PERCENT_START = 0.0
PERCENT_ANALYZING = 5.0
PERCENT_ANALYZED = 10.0
PERCENT_DISCOVERING = 15.0
PERCENT_EXTRACTION_START = 20.0
PERCENT_EXTRACTION_END = 90.0
PERCENT_SAVING = 95.0
PERCENT_COMPLETE = 100.0


def extraction_percent(processed: int, total: int) -> float:
    if total <= 0:
        return PERCENT_EXTRACTION_END
    span = PERCENT_EXTRACTION_END - PERCENT_EXTRACTION_START
    return round(PERCENT_EXTRACTION_START + span * processed / total, 1)


class ProgressSink(Protocol):
    def emit(self, event: ProgressEvent) -> None:
        ...


class RecordingSink:
    """Keeps every event in memory. Thread-safe."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: ProgressEventType) -> list[ProgressEvent]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> list[str]:
        return [e.type.value for e in self.events]


class LoggingProgressSink:
    """Writes each event to the log. Used by the CLI."""

    def emit(self, event: ProgressEvent) -> None:
        if event.type == ProgressEventType.ERROR:
            logger.error(f"✗  {event.error or event.message}")
        elif event.type == ProgressEventType.RETRY:
            logger.warning(f"↻  {event.message}")
        elif event.progress is not None:
            logger.info(f"▶  [{event.progress:5.1f}%] {event.message}")
        else:
            logger.info(f"•  {event.type.value}: {event.message or ''}")


class ProgressNarrator:
    """
    Builds ProgressEvents for one run and forwards them to the sink.

    Percent values never go backwards, and `end` is emitted at most once.
    """

    def __init__(self, sink: ProgressSink) -> None:
        self.sink = sink
        self._percent = PERCENT_START
        self._ended = False

    def _emit(self, event_type: ProgressEventType, **fields: Any) -> ProgressEvent:
        if "progress" in fields and fields["progress"] is not None:
            self._percent = max(self._percent, float(fields["progress"]))
            fields["progress"] = self._percent
        event = ProgressEvent(type=event_type, **fields)
        self.sink.emit(event)
        return event

    def _progress(self, stage: PipelineStage, message: str, percent: float, **fields: Any) -> None:
        self._emit(
            ProgressEventType.PROGRESS,
            stage=stage.value,
            message=message,
            progress=percent,
            **fields,
        )

    # ── Lifecycle ────────────────────────────────────────

    def start(self, document_count: int) -> None:
        self._emit(
            ProgressEventType.START,
            message=f"Starting requirement extraction from {document_count} document(s)",
            progress=PERCENT_START,
        )

    def complete(self, records: list[dict[str, Any]]) -> None:
        self._emit(
            ProgressEventType.COMPLETE,
            stage=PipelineStage.COMPLETE.value,
            message=f"Extracted {len(records)} requirements",
            progress=PERCENT_COMPLETE,
            total_extracted=len(records),
            data=records,
        )

    def error(self, message: str) -> None:
        self._emit(ProgressEventType.ERROR, message=message, error=message)

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._emit(ProgressEventType.END, message="Stream finished")

    # ── Stages ───────────────────────────────────────────

    def analyzing(self, document_count: int) -> None:
        self._progress(
            PipelineStage.ANALYZING,
            f"Reading {document_count} document(s)",
            PERCENT_ANALYZING,
        )

    def analyzed(self, corpus_chars: int) -> None:
        self._progress(
            PipelineStage.ANALYZING,
            f"Combined document content ({corpus_chars:,} characters)",
            PERCENT_ANALYZED,
        )

    def discovering(self) -> None:
        self._progress(
            PipelineStage.DISCOVERING,
            "Identifying requirement types",
            PERCENT_DISCOVERING,
        )

    def categories_found(self, categories: list[str]) -> None:
        self._progress(
            PipelineStage.DISCOVERING,
            f"Identified {len(categories)} requirement types: {', '.join(categories)}",
            PERCENT_EXTRACTION_START,
            total_types=len(categories),
            processed_types=0,
        )

    def category_started(self, category: str, processed: int, total: int, total_extracted: int) -> None:
        self._progress(
            PipelineStage.EXTRACTING,
            f"Extracting {category} requirements ({processed + 1}/{total})",
            extraction_percent(processed, total),
            current_type=category,
            processed_types=processed,
            total_types=total,
            total_extracted=total_extracted,
        )

    def category_finished(
        self,
        category: str,
        processed: int,
        total: int,
        extracted_count: int,
        total_extracted: int,
    ) -> None:
        self._progress(
            PipelineStage.EXTRACTING,
            f"Processed {category}: {extracted_count} requirements",
            extraction_percent(processed, total),
            current_type=category,
            processed_types=processed,
            total_types=total,
            extracted_count=extracted_count,
            total_extracted=total_extracted,
        )

    def retry(
        self,
        category: str,
        attempt: int,
        max_attempts: int,
        wait_time: float,
        error: Optional[BaseException] = None,
    ) -> None:
        self._emit(
            ProgressEventType.RETRY,
            stage=PipelineStage.EXTRACTING.value,
            message=(
                f"AI service busy while extracting {category}; "
                f"retrying (attempt {attempt}/{max_attempts}) in {wait_time:.0f}s"
            ),
            current_type=category,
            attempt=attempt,
            max_attempts=max_attempts,
            wait_time=round(wait_time, 2),
            error=str(error) if error is not None else None,
        )

    def saving(self, count: int) -> None:
        self._progress(
            PipelineStage.SAVING,
            f"Saving {count} requirements",
            PERCENT_SAVING,
            total_extracted=count,
        )
