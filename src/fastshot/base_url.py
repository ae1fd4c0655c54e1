"""Base URL resolution: a single fixed origin or round-robin balancing."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Sequence
from urllib.parse import urlsplit


def parse_base_url(url: str) -> str:
    """Validate ``url`` as an absolute http(s) origin and return it.

    Raises:
        ValueError: If the URL is empty, has no scheme/host or an invalid
            port.
    """
    if not url or not url.strip():
        raise ValueError("empty base URL")
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"base URL must be absolute: {url!r}")
    # Accessing .port validates it.
    parts.port
    return url.strip()


class BaseURL(ABC):
    """Yields the origin the next request should target."""

    @abstractmethod
    def resolve(self) -> str:
        """Return the base URL for the next request."""


class FixedBaseURL(BaseURL):
    """Always resolves to the same URL."""

    def __init__(self, url: str) -> None:
        self._url = url

    @property
    def url(self) -> str:
        return self._url

    def resolve(self) -> str:
        return self._url

    def __repr__(self) -> str:
        return f"FixedBaseURL({self._url!r})"


class RoundRobinBaseURL(BaseURL):
    """Cycles through several URLs in registration order.

    The cursor is advanced with a lock-guarded fetch-and-increment, so each
    caller indexes with its own pre-increment snapshot.
    """

    def __init__(self, urls: Sequence[str]) -> None:
        if not urls:
            raise ValueError("round-robin base URL requires at least one URL")
        self._urls = tuple(urls)
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def urls(self) -> tuple[str, ...]:
        return self._urls

    def _next_snapshot(self) -> int:
        with self._lock:
            snapshot = self._cursor
            self._cursor = snapshot + 1
        return snapshot

    def resolve(self) -> str:
        return self._urls[self._next_snapshot() % len(self._urls)]

    def __repr__(self) -> str:
        return f"RoundRobinBaseURL({list(self._urls)!r})"
