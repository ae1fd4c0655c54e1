"""Retry policy: attempts, backoff, delay cap, jitter and retry predicate."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .response import Response


class JitterStrategy(str, Enum):
    NONE = "NONE"
    FULL = "FULL"


def retry_on_error_status(response: Response) -> bool:
    """Default predicate: retry on any 4xx or 5xx status."""
    return response.status.is_error()


@dataclass
class RetryPolicy:
    """How a request is re-sent.

    ``max_attempts`` counts the first attempt, so 1 means "no retry". The
    delay before retrying after attempt ``n`` (0-indexed) is
    ``interval_seconds * backoff_rate ** n``, capped at
    ``max_delay_seconds`` and then, under full jitter, scaled by a fresh
    uniform draw in ``[0, 1)``.
    """

    interval_seconds: float = 0.0
    max_attempts: int = 1
    backoff_rate: float = 1.0
    max_delay_seconds: float | None = None
    jitter_strategy: JitterStrategy = JitterStrategy.NONE
    should_retry: Callable[[Response], bool] = field(
        default=retry_on_error_status
    )

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_rate <= 0:
            raise ValueError("backoff_rate must be > 0")
        if self.max_delay_seconds is not None and self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0 when provided")

    @property
    def enabled(self) -> bool:
        return self.max_attempts > 1

    def compute_delay(self, attempt: int) -> float:
        """Return the capped delay after ``attempt`` before any jitter."""
        try:
            delay = self.interval_seconds * (self.backoff_rate ** attempt)
        except OverflowError:
            delay = float("inf") if self.interval_seconds else 0.0
        if self.max_delay_seconds is not None:
            delay = min(delay, self.max_delay_seconds)
        return delay

    def delay_for(self, attempt: int) -> float:
        """Return the delay to actually wait after ``attempt``."""
        delay = self.compute_delay(attempt)
        if self.jitter_strategy is JitterStrategy.FULL:
            delay *= random.random()
        return delay
