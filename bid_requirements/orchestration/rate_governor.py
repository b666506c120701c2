"""
Rate Governor — fixed spacing between inference calls.

Built on pyrate-limiter: one in-memory bucket holding a single
Rate(1, interval). release() restamps the bucket with the end of the call
that just finished, so the next acquire() blocks until `interval` seconds
have passed since that mark. The interval is constant; it does not adapt to
observed quota headroom.

Time is read through a Clock so tests can run without real delays. The
bucket factory stamps items from the same Clock.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional, Protocol

from pyrate_limiter import AbstractClock, BucketFactory, Duration, InMemoryBucket, Rate, RateItem

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def monotonic(self) -> float:
        ...

    def sleep(self, seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
        ...


class SystemClock:
    """Wall clock. Sleeps wake early when the cancel event is set."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
        if seconds <= 0:
            return
        if cancel_event is not None:
            cancel_event.wait(seconds)
        else:
            time.sleep(seconds)


class FakeClock:
    """Deterministic clock: sleeping advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float, cancel_event: Optional[threading.Event] = None) -> None:
        if seconds <= 0:
            return
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MillisecondClock(AbstractClock):
    """Integer-millisecond view of a Clock, as pyrate-limiter expects."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock

    def now(self) -> int:
        return int(round(self.clock.monotonic() * 1000))


class GovernorBucketFactory(BucketFactory):
    """Routes every item to one bucket and stamps items from the injected clock."""

    def __init__(self, interval: float, clock: Clock) -> None:
        self.clock = MillisecondClock(clock)
        self.rate = Rate(1, int(interval * Duration.SECOND.value))
        self.bucket = InMemoryBucket([self.rate])

    def wrap_item(self, name: str, weight: int = 1) -> RateItem:
        return RateItem(name, self.clock.now(), weight)

    def get(self, item: RateItem) -> InMemoryBucket:
        return self.bucket


class RateGovernor:
    item_name = "inference"

    def __init__(self, interval: float, clock: Optional[Clock] = None) -> None:
        self.interval = interval
        self.clock = clock or SystemClock()
        # interval <= 0 disables spacing
        self.buckets = GovernorBucketFactory(interval, self.clock) if interval > 0 else None

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> float:
        """Block until the next call may start. Returns the seconds waited."""
        if self.buckets is None:
            return 0.0

        started = self.clock.monotonic()
        item = self.buckets.wrap_item(self.item_name)
        bucket = self.buckets.get(item)
        while not bucket.put(item):
            if cancel_event is not None and cancel_event.is_set():
                break
            wait_ms = max(bucket.waiting(item), 1)
            logger.debug(f"[RATE] Waiting {wait_ms / 1000:.2f}s before next inference call")
            self.clock.sleep(wait_ms / 1000, cancel_event)
            item = self.buckets.wrap_item(self.item_name)

        return self.clock.monotonic() - started

    def release(self) -> None:
        """Mark the end of an inference call; starts the refill interval."""
        if self.buckets is None:
            return
        item = self.buckets.wrap_item(self.item_name)
        bucket = self.buckets.get(item)
        bucket.flush()
        bucket.put(item)
