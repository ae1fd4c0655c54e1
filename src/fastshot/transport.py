"""Transport layer: the opaque "send a request, get a response" capability.

The request engine only depends on the :class:`Transport` protocol. The
default implementation, :class:`RequestsTransport`, sends prepared requests
through a :class:`requests.Session` with streaming enabled so the response
body stays bound to the live connection until it is read or closed.
"""

from __future__ import annotations

import io
import logging
import threading
from typing import Any, Protocol

import requests

from .config import TransportConfig
from .context import RequestContext
from .errors import (
    ConnectionFailedError,
    ContextError,
    RequestTimeoutError,
    TransportError,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Smallest timeout handed to requests when a deadline is about to expire.
_MIN_TIMEOUT_SECONDS = 0.001


class Transport(Protocol):
    """Anything able to send a prepared request."""

    def send(
        self,
        request: requests.PreparedRequest,
        *,
        timeout_cap: float | None = None,
    ) -> requests.Response:
        """Send ``request`` and return the streamed response.

        Args:
            request: The wire request.
            timeout_cap: Upper bound in seconds for this attempt, derived
                from the request context deadline.

        Raises:
            requests.exceptions.RequestException: On network failure.
        """
        ...


class RequestsTransport:
    """Default transport backed by :class:`requests.Session`."""

    def __init__(
        self,
        config: TransportConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config or TransportConfig()
        self._session = session or requests.Session()

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def session(self) -> requests.Session:
        return self._session

    def _get_timeout(
        self, cap: float | None
    ) -> float | tuple[float, float] | None:
        """Resolve the configured timeout, bounded by ``cap``."""
        configured: float | tuple[float, float] | None
        if (
            self._config.connect_timeout_seconds is not None
            and self._config.read_timeout_seconds is not None
        ):
            configured = (
                self._config.connect_timeout_seconds,
                self._config.read_timeout_seconds,
            )
        else:
            configured = self._config.timeout_seconds

        if cap is None:
            return configured
        cap = max(cap, _MIN_TIMEOUT_SECONDS)
        if configured is None:
            return cap
        if isinstance(configured, tuple):
            return (min(configured[0], cap), min(configured[1], cap))
        return min(configured, cap)

    def send(
        self,
        request: requests.PreparedRequest,
        *,
        timeout_cap: float | None = None,
    ) -> requests.Response:
        kwargs: dict[str, Any] = {
            "timeout": self._get_timeout(timeout_cap),
            "allow_redirects": self._config.follow_redirects,
            "verify": self._config.verify_tls,
            "stream": True,
        }
        if self._config.proxies is not None:
            kwargs["proxies"] = self._config.proxies
        return self._session.send(request, **kwargs)

    def close(self) -> None:
        self._session.close()


def map_transport_exception(error: Exception) -> TransportError:
    """Map a transport exception to the fastshot error taxonomy."""
    if isinstance(error, TransportError):
        return error

    mapped: TransportError
    if isinstance(error, requests.exceptions.Timeout):
        mapped = RequestTimeoutError(str(error))
    elif isinstance(error, requests.exceptions.ConnectionError):
        mapped = ConnectionFailedError(str(error))
    else:
        mapped = TransportError(str(error) or type(error).__name__)
    mapped.__cause__ = error
    return mapped


class ResponseStream(io.RawIOBase):
    """Readable stream over a streamed :class:`requests.Response`.

    Content-Encoding is decoded on the fly. Closing the stream releases the
    underlying connection.
    """

    def __init__(self, response: requests.Response) -> None:
        super().__init__()
        self._response = response
        self._chunks = response.iter_content(chunk_size=CHUNK_SIZE)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


class _InFlight:
    """Outcome of one send running on a worker thread."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.settled = threading.Event()
        self.finished = False
        self.abandoned = False
        self.response: requests.Response | None = None
        self.error: Exception | None = None


def send_with_context(
    transport: Transport,
    request: requests.PreparedRequest,
    ctx: RequestContext,
) -> requests.Response:
    """Send ``request`` so that ``ctx`` can interrupt it while in flight.

    The transport call runs on a daemon thread while the caller waits for
    it or for the context to be done. An abandoned attempt keeps running in
    the background; its response, if one arrives, is closed immediately.

    Raises:
        ContextError: If the context was cancelled or its deadline passed
            before the transport answered.
        Exception: Whatever the transport raised.
    """
    state = _InFlight()

    def run() -> None:
        try:
            _settle(state, transport, request, ctx)
        finally:
            state.settled.set()

    worker = threading.Thread(target=run, name="fastshot-send", daemon=True)
    worker.start()
    ctx.wait_until_done(state.settled)

    with state.lock:
        if not state.finished:
            state.abandoned = True
            reason = ctx.reason()
            if reason is None:
                raise TransportError("transport send did not complete")
            raise ContextError(reason)
    if state.error is not None:
        raise state.error
    if state.response is None:
        raise TransportError("transport returned no response")
    return state.response


def _settle(
    state: _InFlight,
    transport: Transport,
    request: requests.PreparedRequest,
    ctx: RequestContext,
) -> None:
    response: requests.Response | None = None
    error: Exception | None = None
    try:
        response = transport.send(request, timeout_cap=ctx.remaining())
    except Exception as exc:
        error = exc
    with state.lock:
        if state.abandoned:
            if response is not None:
                response.close()
            logger.debug(
                "Discarded late outcome of abandoned %s %s",
                request.method,
                request.url,
            )
        else:
            state.finished = True
            state.response = response
            state.error = error
