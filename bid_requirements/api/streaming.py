"""
Server-Sent Events transport for live extraction progress.

Provides:
  - QueueProgressSink  → ProgressSink that hands events from the worker
                         thread to the server's event loop
  - KeepaliveTimer     → decides when a `ping` is due
  - ExtractionStream   → runs one pipeline in a background thread and
                         yields its events as SSE frames

Each frame is `data: {json}\\n\\n`. The stream closes after the `end` event.
If the worker thread dies without sending `end`, the stream closes with
an `error` and `end` of its own. If the client disconnects first, the
run's cancel event is set so the
pipeline stops before its next category.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import AsyncIterator, Optional

from bid_requirements.errors import UnexpectedError
from bid_requirements.models.enums import ProgressEventType
from bid_requirements.models.schemas import ExtractionRequest, ProgressEvent
from bid_requirements.orchestration.graph import RequirementsExtractionPipeline
from bid_requirements.orchestration.rate_governor import Clock, SystemClock

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n"


class QueueProgressSink:
    """Thread-safe bridge from the pipeline thread into an asyncio.Queue."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
        self._loop = loop
        self._queue = queue

    def emit(self, event: ProgressEvent) -> None:
        if self._loop.is_closed():
            logger.debug(f"Event loop closed; dropping {event.type.value} event")
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError as exc:
            # Loop shut down between the check and the call
            logger.debug(f"Dropping {event.type.value} event: {exc}")


class KeepaliveTimer:
    """Tracks silence on the stream since the last event sent."""

    def __init__(self, interval: float, clock: Optional[Clock] = None) -> None:
        self.interval = interval
        self.clock = clock or SystemClock()
        self._last = self.clock.monotonic()

    def mark(self) -> None:
        self._last = self.clock.monotonic()

    def silence(self) -> float:
        return self.clock.monotonic() - self._last

    def remaining(self) -> float:
        return max(0.0, self.interval - self.silence())

    def due(self) -> bool:
        return self.silence() >= self.interval


class ExtractionStream:
    def __init__(
        self,
        pipeline: RequirementsExtractionPipeline,
        request: ExtractionRequest,
        keepalive_interval: float,
        clock: Optional[Clock] = None,
    ) -> None:
        self.pipeline = pipeline
        self.request = request
        self.keepalive_interval = keepalive_interval
        self.clock = clock or SystemClock()
        self.cancel_event = threading.Event()

    async def events(self) -> AsyncIterator[ProgressEvent]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        sink = QueueProgressSink(loop, queue)

        worker = threading.Thread(
            target=self.pipeline.run,
            args=(self.request, sink, self.cancel_event),
            name=f"extraction-{self.request.project_id}",
            daemon=True,
        )
        worker.start()

        timer = KeepaliveTimer(self.keepalive_interval, self.clock)
        finished = False
        try:
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=timer.remaining())
                except asyncio.TimeoutError:
                    if not worker.is_alive():
                        # let events the worker queued before exiting reach the queue
                        await asyncio.sleep(0)
                        if queue.empty():
                            logger.error(
                                f"Extraction worker for project {self.request.project_id} "
                                f"exited without ending the stream"
                            )
                            finished = True
                            for event in self._worker_lost_events():
                                yield event
                            return
                        continue
                    if timer.due():
                        timer.mark()
                        yield ProgressEvent(type=ProgressEventType.PING)
                    continue

                timer.mark()
                yield event
                if event.type == ProgressEventType.END:
                    finished = True
                    return
        finally:
            if not finished:
                logger.warning(
                    f"Client disconnected from project {self.request.project_id} stream; "
                    f"cancelling extraction"
                )
                self.cancel_event.set()

    @staticmethod
    def _worker_lost_events() -> list[ProgressEvent]:
        message = str(UnexpectedError(RuntimeError("extraction stopped before finishing")))
        return [
            ProgressEvent(type=ProgressEventType.ERROR, message=message, error=message),
            ProgressEvent(type=ProgressEventType.END, message="Stream finished"),
        ]

    async def sse(self) -> AsyncIterator[str]:
        async for event in self.events():
            yield format_sse(event)
