"""Cancellation and deadline propagation for requests."""

from __future__ import annotations

import threading
import time
from typing import Callable


class RequestContext:
    """Carries an optional deadline and a cancellation flag.

    The deadline caps every attempt's transport timeout. Once the context
    is done, an attempt in flight is abandoned and retry waits return early.
    """

    def __init__(self, deadline: float | None = None) -> None:
        """Create a context.

        Args:
            deadline: Absolute ``time.monotonic()`` value after which the
                context is done, or None for no deadline.
        """
        self._deadline = deadline
        self._cancelled = threading.Event()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_handle = 0
        self._lock = threading.Lock()

    @classmethod
    def background(cls) -> RequestContext:
        """Return a context that is never done unless cancelled."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> RequestContext:
        if seconds < 0:
            raise ValueError("timeout must be >= 0")
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def cancel(self) -> None:
        """Mark the context done and run every registered callback once."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def add_done_callback(self, callback: Callable[[], None]) -> int:
        """Run ``callback`` when the context is cancelled.

        The callback runs immediately when the context is already
        cancelled. Deadlines are observed by waiting on :meth:`remaining`,
        see :meth:`wait_until_done`.

        Returns:
            A handle for :meth:`remove_done_callback`.
        """
        with self._lock:
            handle = self._next_handle
            self._next_handle += 1
            if not self._cancelled.is_set():
                self._callbacks[handle] = callback
                return handle
        callback()
        return handle

    def remove_done_callback(self, handle: int) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def done(self) -> bool:
        if self._cancelled.is_set():
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def reason(self) -> str | None:
        """Describe why the context is done, or None if it is not."""
        if self._cancelled.is_set():
            return "context cancelled"
        if self.done():
            return "context deadline exceeded"
        return None

    def wait(self, seconds: float) -> bool:
        """Block for ``seconds`` unless the context finishes first.

        Returns:
            True if the full duration elapsed, False if the context was
            cancelled or its deadline passed.
        """
        if seconds <= 0:
            return not self.done()
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancelled.wait(_clamp(remaining))
            return False
        return not self._cancelled.wait(_clamp(seconds))

    def wait_until_done(self, event: threading.Event) -> None:
        """Block until ``event`` is set or the context is done.

        Cancelling the context sets ``event``.
        """
        handle = self.add_done_callback(event.set)
        try:
            while not event.is_set():
                remaining = self.remaining()
                if remaining is not None and remaining <= 0:
                    break
                event.wait(_clamp(remaining))
        finally:
            self.remove_done_callback(handle)


def _clamp(seconds: float | None) -> float | None:
    if seconds is None:
        return None
    return min(seconds, threading.TIMEOUT_MAX)
