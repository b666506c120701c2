"""
Retry Policy — bounded backoff around one logical inference call.

  attempts : max_attempts (default 3)
  wait     : max(floor, 2**attempt + uniform(0, jitter))  after failed attempt n
  retried  : InferenceTransientError only (overload / timeout / rate limit)
  fatal    : everything else propagates on the first failure
  exhausted: CategoryExtractionExhausted
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable, Optional, TypeVar

import tenacity
from tenacity import RetryCallState, retry_if_exception_type

from bid_requirements.config import Settings
from bid_requirements.errors import (
    CategoryExtractionExhausted,
    InferenceTransientError,
    PipelineCancelled,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# on_retry(category, next_attempt, max_attempts, wait_seconds, error)
RetryListener = Callable[[str, int, int, float, BaseException], None]


class wait_floor_exponential_jitter(tenacity.wait.wait_base):
    """Exponential backoff with additive jitter and a hard lower bound."""

    def __init__(self, floor: float, jitter: float, rng: Optional[random.Random] = None) -> None:
        self.floor = floor
        self.jitter = jitter
        self.rng = rng or random.Random()

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number
        return max(self.floor, 2 ** attempt + self.rng.uniform(0, self.jitter))


class RetryPolicy:
    def __init__(
        self,
        max_attempts: int = 3,
        backoff_floor: float = 3.0,
        jitter: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.max_attempts = max_attempts
        self.wait = wait_floor_exponential_jitter(backoff_floor, jitter, rng)
        self.sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            backoff_floor=settings.backoff_floor_seconds,
            jitter=settings.backoff_jitter_seconds,
            sleep=sleep,
            rng=rng,
        )

    def call(
        self,
        fn: Callable[[], T],
        *,
        category: str,
        on_retry: Optional[RetryListener] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> T:
        """
        Run fn() under the policy.

        Raises CategoryExtractionExhausted when every attempt failed with a
        transient error; any non-transient error is raised unchanged.
        """

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
            next_attempt = retry_state.attempt_number + 1
            logger.warning(
                f"[RETRY] '{category}' attempt {retry_state.attempt_number}/{self.max_attempts} "
                f"failed ({error}); retrying in {wait:.1f}s"
            )
            if on_retry is not None:
                on_retry(category, next_attempt, self.max_attempts, wait, error)

        def attempt() -> T:
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelled()
            return fn()

        retrying = tenacity.Retrying(
            retry=retry_if_exception_type(InferenceTransientError),
            stop=tenacity.stop_after_attempt(self.max_attempts),
            wait=self.wait,
            sleep=self.sleep,
            before_sleep=before_sleep,
            reraise=False,
        )

        try:
            return retrying(attempt)
        except tenacity.RetryError as exc:
            last_error = exc.last_attempt.exception()
            raise CategoryExtractionExhausted(category, self.max_attempts, last_error) from last_error
