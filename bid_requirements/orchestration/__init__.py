"""
Orchestration building blocks.

The pipeline itself lives in bid_requirements.orchestration.graph and is
imported from there directly (it depends on the agents, which depend on
the retry policy defined here).
"""

from .progress import (
    LoggingProgressSink,
    ProgressNarrator,
    ProgressSink,
    RecordingSink,
)
from .rate_governor import Clock, FakeClock, RateGovernor, SystemClock
from .retry import RetryPolicy

__all__ = [
    "LoggingProgressSink",
    "ProgressNarrator",
    "ProgressSink",
    "RecordingSink",
    "Clock",
    "FakeClock",
    "RateGovernor",
    "SystemClock",
    "RetryPolicy",
]
