"""Error taxonomy for fastshot.

Configuration, URL, build and hook errors happen before any network
activity and are never retried. Transport errors participate in the retry
loop; :class:`RetryExhaustedError` aggregates every attempt once the policy
gives up.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .response import Response


class FastshotError(Exception):
    """Base class for all fastshot errors."""


class ConfigurationError(FastshotError):
    """Deferred validation failures collected while configuring."""

    def __init__(
        self,
        client_errors: Sequence[Exception] = (),
        request_errors: Sequence[Exception] = (),
    ) -> None:
        self.client_errors = tuple(client_errors)
        self.request_errors = tuple(request_errors)
        parts: list[str] = []
        if self.client_errors:
            parts.append(
                "invalid client attributes: "
                + "; ".join(str(e) for e in self.client_errors)
            )
        if self.request_errors:
            parts.append(
                "invalid request attributes: "
                + "; ".join(str(e) for e in self.request_errors)
            )
        super().__init__(" | ".join(parts))

    @property
    def causes(self) -> tuple[Exception, ...]:
        return self.client_errors + self.request_errors


class URLError(FastshotError):
    """The base URL and path could not be joined into a valid URL."""


class RequestBuildError(FastshotError):
    """The wire request could not be constructed."""


class HookError(FastshotError):
    """A before-request hook rejected the request."""


class TransportError(FastshotError):
    """Network-level failure reported by the transport."""


class RequestTimeoutError(TransportError):
    """The transport timed out waiting for the server."""


class ConnectionFailedError(TransportError):
    """The connection could not be established or was dropped."""


class ContextError(TransportError):
    """The request context was cancelled or its deadline passed."""


class RetryConditionError(FastshotError):
    """The retry predicate raised while inspecting a response."""


class ResponseStatusError(FastshotError):
    """The retry predicate rejected a response with this status."""

    def __init__(self, status_code: int, status_text: str) -> None:
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(status_text)


@dataclass(frozen=True)
class AttemptRecord:
    """Outcome of one failed attempt inside the retry loop."""

    attempt: int
    cause: Exception
    status_code: int | None = None
    status_text: str | None = None
    elapsed_seconds: float = 0.0

    def __str__(self) -> str:
        return f"attempt {self.attempt}: {self.cause}"


class RetryExhaustedError(FastshotError):
    """Every attempt allowed by the retry policy failed."""

    def __init__(
        self,
        attempts: Sequence[AttemptRecord],
        response: Response | None = None,
    ) -> None:
        self.attempts = list(attempts)
        self.response = response
        joined = "; ".join(str(record) for record in self.attempts)
        super().__init__(
            f"request failed after {len(self.attempts)} attempts: {joined}"
        )

    @property
    def causes(self) -> list[Exception]:
        return [record.cause for record in self.attempts]
