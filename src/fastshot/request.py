"""Request configuration and the send/retry engine.

A :class:`RequestBuilder` owns one :class:`RequestConfig`. Calling
:meth:`RequestBuilder.send` merges it with the client configuration into a
wire request, sends it through the client's transport and, when the retry
policy allows more than one attempt, re-sends it until the policy's
predicate is satisfied or the attempts run out.

``send`` never raises for bad configuration or network failure. It returns
an :class:`~fastshot.types.Ok` with the :class:`~fastshot.response.Response`
or an :class:`~fastshot.types.Err` with the error and, after exhausted
retries, the last response seen.
"""

from __future__ import annotations

import logging
import time
from itertools import chain
from typing import TYPE_CHECKING, Any, Iterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from .body import BufferedBody
from .builders import (
    AuthBuilder,
    BodyBuilder,
    ContextBuilder,
    CookieBuilder,
    HeaderBuilder,
    HookBuilder,
    QueryBuilder,
    RetryBuilder,
)
from .constants import (
    ERR_MSG_CREATE_REQUEST,
    ERR_MSG_EMPTY_BASE_URL,
    ERR_MSG_PARSE_URL,
    HEADER_COOKIE,
    Method,
)
from .context import RequestContext
from .errors import (
    AttemptRecord,
    ConfigurationError,
    ContextError,
    FastshotError,
    HookError,
    RequestBuildError,
    ResponseStatusError,
    RetryConditionError,
    RetryExhaustedError,
    TransportError,
    URLError,
)
from .headers import Cookies, Header, cookie_header
from .hooks import (
    AfterResponseHook,
    Hooks,
    run_after_response,
    run_before_request,
)
from .response import Response
from .retry import RetryPolicy
from .transport import (
    Transport,
    map_transport_exception,
    send_with_context,
)
from .types import Err, Ok, Result
from .validations import Validations

if TYPE_CHECKING:
    from .client import Client, ClientConfig

logger = logging.getLogger(__name__)


class QueryParams:
    """Ordered query parameter multimap."""

    def __init__(self) -> None:
        self._pairs: list[tuple[str, str]] = []

    def add(self, key: str, value: str) -> None:
        self._pairs.append((key, value))

    def set(self, key: str, value: str) -> None:
        self.replace(key, [value])

    def replace(self, key: str, values: list[str]) -> None:
        self._pairs = [pair for pair in self._pairs if pair[0] != key]
        self._pairs.extend((key, value) for value in values)

    def get(self, key: str) -> str:
        for name, value in self._pairs:
            if name == key:
                return value
        return ""

    def get_all(self, key: str) -> list[str]:
        return [value for name, value in self._pairs if name == key]

    def items(self) -> list[tuple[str, str]]:
        return list(self._pairs)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._pairs))

    def __len__(self) -> int:
        return len(self._pairs)


class RequestConfig:
    """Everything one outgoing request is built from."""

    def __init__(self, method: Method | str, path: str) -> None:
        self.method = str(method)
        self.path = path
        self.header = Header()
        self.cookies = Cookies()
        self.query = QueryParams()
        self.context = RequestContext.background()
        self.body = BufferedBody()
        self.validations = Validations()
        self.retry = RetryPolicy()
        self.hooks = Hooks()

    def set_context(self, ctx: RequestContext) -> None:
        self.context = ctx


def join_url(
    base_url: str, path: str, params: list[tuple[str, str]]
) -> str:
    """Join ``base_url`` and ``path`` and append ``params`` to the query.

    Parameters already present in the path are kept. Keys are emitted in
    sorted order; values of one key keep their insertion order.

    Raises:
        ValueError: If the resulting URL cannot be parsed.
    """
    if base_url.endswith("/") and path.startswith("/"):
        path = path[1:]
    parts = urlsplit(base_url + path)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"URL must be absolute: {base_url + path!r}")
    # Accessing .port validates it.
    parts.port
    query = parse_qsl(parts.query, keep_blank_values=True) + list(params)
    query.sort(key=lambda pair: pair[0])
    return urlunsplit(parts._replace(query=urlencode(query)))


class RequestBuilder:
    """Fluent configuration for one request.

    Example::

        result = (
            client.post("/users")
            .header().set("X-Request-Id", "42")
            .body().as_json({"name": "alice"})
            .retry().set_exponential_backoff(0.1, 3, 2.0)
            .send()
        )
    """

    def __init__(
        self, client: Client, method: Method | str, path: str
    ) -> None:
        self._client = client
        self.config = RequestConfig(method, path)

    @property
    def client(self) -> Client:
        return self._client

    def header(self) -> HeaderBuilder[RequestBuilder]:
        return HeaderBuilder(self, self.config.header)

    def cookie(self) -> CookieBuilder[RequestBuilder]:
        return CookieBuilder(self, self.config.cookies)

    def auth(self) -> AuthBuilder[RequestBuilder]:
        return AuthBuilder(self, self.config.header)

    def query(self) -> QueryBuilder[RequestBuilder]:
        return QueryBuilder(self, self.config.query, self.config.validations)

    def body(self) -> BodyBuilder[RequestBuilder]:
        return BodyBuilder(
            self,
            self.config.body,
            self.config.header,
            self.config.validations,
        )

    def retry(self) -> RetryBuilder[RequestBuilder]:
        return RetryBuilder(self, self.config.retry, self.config.validations)

    def context(self) -> ContextBuilder[RequestBuilder]:
        return ContextBuilder(
            self, self.config.set_context, self.config.validations
        )

    def hook(self) -> HookBuilder[RequestBuilder]:
        return HookBuilder(self, self.config.hooks)

    # ------------------------------------------------------------------ #
    # Sending
    # ------------------------------------------------------------------ #

    def _validate(self, client: ClientConfig) -> ConfigurationError | None:
        """Join client and request validation errors, if any."""
        if (
            client.validations.is_empty()
            and self.config.validations.is_empty()
        ):
            return None
        return ConfigurationError(
            client_errors=client.validations.unwrap(),
            request_errors=self.config.validations.unwrap(),
        )

    def _create_full_url(self, client: ClientConfig) -> str:
        if client.base_url is None:
            raise URLError(ERR_MSG_EMPTY_BASE_URL)
        try:
            return join_url(
                client.base_url.resolve(),
                self.config.path,
                self.config.query.items(),
            )
        except ValueError as exc:
            raise URLError(f"{ERR_MSG_PARSE_URL}: {exc}") from exc

    def _create_wire_request(
        self, client: ClientConfig, url: str
    ) -> requests.PreparedRequest:
        try:
            method = Method(self.config.method.upper())
        except ValueError as exc:
            raise RequestBuildError(
                f"{ERR_MSG_CREATE_REQUEST}: invalid method "
                f"{self.config.method!r}"
            ) from exc

        header = self.config.header.merged_onto(client.header)
        existing_cookie = "; ".join(header.get_all(HEADER_COOKIE))
        header.delete(HEADER_COOKIE)
        wire_headers = header.to_wire()
        cookies = cookie_header(
            client.cookies, self.config.cookies, existing=existing_cookie
        )
        if cookies:
            wire_headers[HEADER_COOKIE] = cookies

        body = self.config.body.read_bytes()
        try:
            return requests.Request(
                method=method.value,
                url=url,
                headers=wire_headers,
                data=body or None,
            ).prepare()
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise RequestBuildError(
                f"{ERR_MSG_CREATE_REQUEST}: {exc}"
            ) from exc

    def _build_meta(
        self,
        url: str | None,
        response: Response | None,
        attempts: int,
        final_error: FastshotError | None = None,
    ) -> dict[str, Any]:
        meta: dict[str, Any] = {}
        meta["method"] = self.config.method
        meta["path"] = self.config.path
        meta["url"] = url
        meta["attempts"] = attempts

        if response is not None:
            raw = response.raw
            meta["status"] = raw.status_code
            meta["status_code"] = raw.status_code
            meta["url"] = raw.url or url
            meta["reason"] = raw.reason
            try:
                meta["elapsed_s"] = raw.elapsed.total_seconds()
            except AttributeError:
                pass  # elapsed is only set by real transports
        if final_error is not None:
            meta["final_error"] = type(final_error).__name__

        return meta

    def _attempt(
        self,
        transport: Transport,
        prepared: requests.PreparedRequest,
        after_response: list[AfterResponseHook],
    ) -> Response | TransportError:
        """Send once; return the response or the transport failure."""
        ctx = self.config.context
        reason = ctx.reason()
        if reason is not None:
            return ContextError(reason)
        try:
            raw = send_with_context(transport, prepared.copy(), ctx)
        except (
            requests.exceptions.RequestException,
            OSError,
            TransportError,
        ) as exc:
            reason = ctx.reason()
            if reason is not None and not isinstance(exc, ContextError):
                error: TransportError = ContextError(f"{reason}: {exc}")
                error.__cause__ = exc
                return error
            return map_transport_exception(exc)
        response = Response(raw)
        run_after_response(after_response, prepared, raw)
        return response

    def send(self) -> Result[Response, FastshotError]:
        """Validate, build and send the request, retrying per policy."""
        client = self._client.config

        config_error = self._validate(client)
        if config_error is not None:
            logger.warning(
                "Not sending %s %s: %s",
                self.config.method,
                self.config.path,
                config_error,
            )
            return Err(
                config_error,
                meta=self._build_meta(None, None, 0, config_error),
            )

        try:
            url = self._create_full_url(client)
            prepared = self._create_wire_request(client, url)
        except (URLError, RequestBuildError) as exc:
            return Err(exc, meta=self._build_meta(None, None, 0, exc))

        try:
            run_before_request(
                chain(
                    client.hooks.before_request,
                    self.config.hooks.before_request,
                ),
                prepared,
            )
        except HookError as exc:
            return Err(exc, meta=self._build_meta(url, None, 0, exc))

        return self._execute(client, prepared, url)

    def _execute(
        self,
        client: ClientConfig,
        prepared: requests.PreparedRequest,
        url: str,
    ) -> Result[Response, FastshotError]:
        transport = client.get_transport()
        after_response = [
            *client.hooks.after_response,
            *self.config.hooks.after_response,
        ]
        policy = self.config.retry

        if not policy.enabled:
            outcome = self._attempt(transport, prepared, after_response)
            if isinstance(outcome, TransportError):
                logger.debug(
                    "%s %s failed: %s", prepared.method, url, outcome
                )
                return Err(
                    outcome, meta=self._build_meta(url, None, 1, outcome)
                )
            return Ok(outcome, meta=self._build_meta(url, outcome, 1))

        records: list[AttemptRecord] = []
        response: Response | None = None
        attempts = 0
        for attempt in range(policy.max_attempts):
            attempts += 1
            started = time.monotonic()
            outcome = self._attempt(transport, prepared, after_response)
            elapsed = time.monotonic() - started

            if isinstance(outcome, TransportError):
                logger.debug(
                    "%s %s attempt %d/%d failed: %s",
                    prepared.method,
                    url,
                    attempts,
                    policy.max_attempts,
                    outcome,
                )
                records.append(
                    AttemptRecord(attempts, outcome, elapsed_seconds=elapsed)
                )
                if isinstance(outcome, ContextError):
                    break
            else:
                if response is not None:
                    response.body.close()
                response = outcome
                status = response.status
                logger.debug(
                    "%s %s attempt %d/%d returned %s",
                    prepared.method,
                    url,
                    attempts,
                    policy.max_attempts,
                    status.text(),
                )
                try:
                    retry = policy.should_retry(response)
                except Exception as exc:
                    return self._condition_failed(url, response, attempts, exc)
                if not retry:
                    return Ok(
                        response,
                        meta=self._build_meta(url, response, attempts),
                    )
                records.append(
                    AttemptRecord(
                        attempts,
                        ResponseStatusError(status.code(), status.text()),
                        status_code=status.code(),
                        status_text=status.text(),
                        elapsed_seconds=elapsed,
                    )
                )

            if attempts < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.info(
                    "Retrying %s %s in %.3fs (attempt %d/%d)",
                    prepared.method,
                    url,
                    delay,
                    attempts + 1,
                    policy.max_attempts,
                )
                self.config.context.wait(delay)

        error = RetryExhaustedError(records, response)
        logger.warning("%s %s: %s", prepared.method, url, error)
        return Err(
            error,
            meta=self._build_meta(url, response, attempts, error),
            value=response,
        )

    def _condition_failed(
        self,
        url: str,
        response: Response,
        attempts: int,
        cause: Exception,
    ) -> Err[RetryConditionError]:
        error = RetryConditionError(f"retry condition failed: {cause}")
        error.__cause__ = cause
        logger.warning(
            "%s %s: retry condition raised",
            self.config.method,
            url,
            exc_info=cause,
        )
        return Err(
            error,
            meta=self._build_meta(url, response, attempts, error),
            value=response,
        )
