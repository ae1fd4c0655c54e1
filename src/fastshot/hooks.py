"""Before-request and after-response callbacks."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

import requests

from .errors import HookError

logger = logging.getLogger(__name__)

BeforeRequestHook = Callable[[requests.PreparedRequest], None]
AfterResponseHook = Callable[
    [requests.PreparedRequest, requests.Response], None
]


class Hooks:
    """Ordered hook lists attached to a client or a request."""

    def __init__(self) -> None:
        self.before_request: list[BeforeRequestHook] = []
        self.after_response: list[AfterResponseHook] = []

    def add_before_request(self, hook: BeforeRequestHook) -> None:
        self.before_request.append(hook)

    def add_after_response(self, hook: AfterResponseHook) -> None:
        self.after_response.append(hook)


def run_before_request(
    hooks: Iterable[BeforeRequestHook], request: requests.PreparedRequest
) -> None:
    """Run hooks in order; the first exception aborts the request.

    Raises:
        HookError: Wrapping the exception raised by the failing hook.
    """
    for hook in hooks:
        try:
            hook(request)
        except Exception as exc:
            raise HookError(f"before-request hook failed: {exc}") from exc


def run_after_response(
    hooks: Iterable[AfterResponseHook],
    request: requests.PreparedRequest,
    response: requests.Response,
) -> None:
    """Run observational hooks; failures are logged and do not propagate."""
    for hook in hooks:
        try:
            hook(request, response)
        except Exception:
            logger.warning(
                "after-response hook %r failed for %s %s",
                hook,
                request.method,
                request.url,
                exc_info=True,
            )
