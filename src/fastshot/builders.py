"""Fluent sub-builders shared by client and request builders.

Each sub-builder mutates exactly one piece of configuration and every
setter returns the parent builder so calls can be chained::

    client.post("/users").header().set("X-Trace", "1").body().as_json(user)
"""

from __future__ import annotations

import base64
import dataclasses
import re
from http.cookiejar import Cookie
from typing import (
    IO,
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    Iterable,
    Mapping,
    TypeVar,
)
from urllib.parse import unquote_plus

from .body import BufferedBody, FormFields
from .constants import (
    ERR_MSG_ENCODE_FORM_DATA,
    ERR_MSG_INVALID_TIMEOUT,
    ERR_MSG_MARSHAL_JSON,
    ERR_MSG_MARSHAL_XML,
    ERR_MSG_PARSE_PROXY_URL,
    ERR_MSG_PARSE_QUERY_STRING,
    ERR_MSG_READ_BODY,
    HEADER_ACCEPT,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    HEADER_USER_AGENT,
)
from .context import RequestContext
from .headers import Cookies, Header
from .hooks import AfterResponseHook, BeforeRequestHook, Hooks
from .retry import JitterStrategy, RetryPolicy
from .validations import Validations, validation_error

if TYPE_CHECKING:
    from .client import ClientConfig
    from .request import QueryParams
    from .response import Response
    from .transport import Transport

ParentT = TypeVar("ParentT")

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class HeaderBuilder(Generic[ParentT]):
    def __init__(self, parent: ParentT, header: Header) -> None:
        self._parent = parent
        self._header = header

    def add(self, key: str, value: str) -> ParentT:
        """Append ``value`` to ``key``."""
        self._header.add(key, value)
        return self._parent

    def add_all(self, headers: Mapping[str, str]) -> ParentT:
        for key, value in headers.items():
            self._header.add(key, value)
        return self._parent

    def set(self, key: str, value: str) -> ParentT:
        """Replace every value of ``key`` with ``value``."""
        self._header.set(key, value)
        return self._parent

    def set_all(self, headers: Mapping[str, str]) -> ParentT:
        for key, value in headers.items():
            self._header.set(key, value)
        return self._parent

    def add_accept(self, value: str) -> ParentT:
        return self.add(HEADER_ACCEPT, value)

    def add_content_type(self, value: str) -> ParentT:
        return self.add(HEADER_CONTENT_TYPE, value)

    def add_user_agent(self, value: str) -> ParentT:
        return self.add(HEADER_USER_AGENT, value)


class CookieBuilder(Generic[ParentT]):
    def __init__(self, parent: ParentT, cookies: Cookies) -> None:
        self._parent = parent
        self._cookies = cookies

    def add(self, cookie: Cookie) -> ParentT:
        self._cookies.add(cookie)
        return self._parent

    def add_all(self, cookies: Iterable[Cookie]) -> ParentT:
        for cookie in cookies:
            self._cookies.add(cookie)
        return self._parent

    def add_value(self, name: str, value: str) -> ParentT:
        self._cookies.add_value(name, value)
        return self._parent


class AuthBuilder(Generic[ParentT]):
    """Writes the ``Authorization`` header."""

    def __init__(self, parent: ParentT, header: Header) -> None:
        self._parent = parent
        self._header = header

    def set(self, value: str) -> ParentT:
        self._header.set(HEADER_AUTHORIZATION, value)
        return self._parent

    def bearer_token(self, token: str) -> ParentT:
        return self.set(f"Bearer {token}")

    def basic_auth(self, username: str, password: str) -> ParentT:
        encoded = base64.b64encode(
            f"{username}:{password}".encode("utf-8")
        ).decode("ascii")
        return self.set(f"Basic {encoded}")


class HookBuilder(Generic[ParentT]):
    def __init__(self, parent: ParentT, hooks: Hooks) -> None:
        self._parent = parent
        self._hooks = hooks

    def on_before_request(self, hook: BeforeRequestHook) -> ParentT:
        """Register ``hook``; raising from it aborts the send."""
        self._hooks.add_before_request(hook)
        return self._parent

    def on_after_response(self, hook: AfterResponseHook) -> ParentT:
        self._hooks.add_after_response(hook)
        return self._parent


def parse_query_string(query: str) -> list[tuple[str, str]]:
    """Parse a raw ``a=1&b=2`` query string.

    Raises:
        ValueError: On a ``;`` separator or a malformed percent escape.
    """
    pairs: list[tuple[str, str]] = []
    for piece in query.strip().split("&"):
        if not piece:
            continue
        if ";" in piece:
            raise ValueError(
                f"invalid semicolon separator in query: {piece!r}"
            )
        key, _, value = piece.partition("=")
        for part in (key, value):
            match = _BAD_ESCAPE.search(part)
            if match:
                escape = part[match.start() : match.start() + 3]
                raise ValueError(f"invalid URL escape {escape!r}")
        pairs.append((unquote_plus(key), unquote_plus(value)))
    return pairs


class QueryBuilder(Generic[ParentT]):
    def __init__(
        self,
        parent: ParentT,
        query: QueryParams,
        validations: Validations,
    ) -> None:
        self._parent = parent
        self._query = query
        self._validations = validations

    def add_param(self, param: str, value: str) -> ParentT:
        self._query.add(param, value)
        return self._parent

    def add_params(self, params: Mapping[str, str]) -> ParentT:
        for param, value in params.items():
            self._query.add(param, value)
        return self._parent

    def set_param(self, param: str, value: str) -> ParentT:
        self._query.set(param, value)
        return self._parent

    def set_params(self, params: Mapping[str, str]) -> ParentT:
        for param, value in params.items():
            self._query.set(param, value)
        return self._parent

    def set_raw_string(self, query: str) -> ParentT:
        """Set parameters from a raw query string.

        Each key present in ``query`` replaces existing values for that key.
        A malformed string is recorded as a validation error.
        """
        try:
            pairs = parse_query_string(query)
        except ValueError as exc:
            self._validations.add(
                validation_error(ERR_MSG_PARSE_QUERY_STRING, exc)
            )
            return self._parent
        grouped: dict[str, list[str]] = {}
        for key, value in pairs:
            grouped.setdefault(key, []).append(value)
        for key, values in grouped.items():
            self._query.replace(key, values)
        return self._parent


class BodyBuilder(Generic[ParentT]):
    """Sets the request payload.

    Serialization failures are recorded as validation errors and reported
    when the request is sent.
    """

    def __init__(
        self,
        parent: ParentT,
        body: BufferedBody,
        header: Header,
        validations: Validations,
    ) -> None:
        self._parent = parent
        self._body = body
        self._header = header
        self._validations = validations

    def as_reader(self, stream: IO[bytes]) -> ParentT:
        try:
            self._body.set(stream)
        except OSError as exc:
            self._validations.add(validation_error(ERR_MSG_READ_BODY, exc))
        return self._parent

    def as_bytes(self, data: bytes) -> ParentT:
        self._body.write_bytes(data)
        return self._parent

    def as_string(self, body: str) -> ParentT:
        self._body.write_string(body)
        return self._parent

    def as_json(self, obj: Any) -> ParentT:
        try:
            self._body.write_json(obj)
        except (TypeError, ValueError) as exc:
            self._validations.add(validation_error(ERR_MSG_MARSHAL_JSON, exc))
        return self._parent

    def as_xml(self, obj: Any) -> ParentT:
        try:
            self._body.write_xml(obj)
        except (TypeError, ValueError) as exc:
            self._validations.add(validation_error(ERR_MSG_MARSHAL_XML, exc))
        return self._parent

    def as_form_data(self, fields: FormFields) -> ParentT:
        """Encode ``fields`` as multipart/form-data and set Content-Type."""
        try:
            content_type = self._body.write_form_data(fields)
        except (TypeError, ValueError) as exc:
            self._validations.add(
                validation_error(ERR_MSG_ENCODE_FORM_DATA, exc)
            )
            return self._parent
        self._header.set(HEADER_CONTENT_TYPE, content_type)
        return self._parent


class RetryBuilder(Generic[ParentT]):
    """Configures the retry policy.

    Intervals and delays are in seconds. Invalid values are recorded as
    validation errors.
    """

    def __init__(
        self,
        parent: ParentT,
        policy: RetryPolicy,
        validations: Validations,
    ) -> None:
        self._parent = parent
        self._policy = policy
        self._validations = validations

    def _apply(
        self,
        interval_seconds: float,
        max_attempts: int,
        backoff_rate: float,
        jitter_strategy: JitterStrategy,
    ) -> ParentT:
        self._policy.interval_seconds = interval_seconds
        self._policy.max_attempts = max_attempts
        self._policy.backoff_rate = backoff_rate
        self._policy.jitter_strategy = jitter_strategy
        return self._validate()

    def _validate(self) -> ParentT:
        try:
            self._policy.validate()
        except ValueError as exc:
            self._validations.add(exc)
        return self._parent

    def set_constant_backoff(
        self, interval_seconds: float, max_attempts: int
    ) -> ParentT:
        return self._apply(
            interval_seconds, max_attempts, 1.0, JitterStrategy.NONE
        )

    def set_constant_backoff_with_jitter(
        self, interval_seconds: float, max_attempts: int
    ) -> ParentT:
        return self._apply(
            interval_seconds, max_attempts, 1.0, JitterStrategy.FULL
        )

    def set_exponential_backoff(
        self, interval_seconds: float, max_attempts: int, backoff_rate: float
    ) -> ParentT:
        return self._apply(
            interval_seconds, max_attempts, backoff_rate, JitterStrategy.NONE
        )

    def set_exponential_backoff_with_jitter(
        self, interval_seconds: float, max_attempts: int, backoff_rate: float
    ) -> ParentT:
        return self._apply(
            interval_seconds, max_attempts, backoff_rate, JitterStrategy.FULL
        )

    def with_retry_condition(
        self, should_retry: Callable[[Response], bool]
    ) -> ParentT:
        self._policy.should_retry = should_retry
        return self._parent

    def with_max_delay(self, max_delay_seconds: float) -> ParentT:
        self._policy.max_delay_seconds = max_delay_seconds
        return self._validate()


class ContextBuilder(Generic[ParentT]):
    def __init__(
        self,
        parent: ParentT,
        setter: Callable[[RequestContext], None],
        validations: Validations,
    ) -> None:
        self._parent = parent
        self._setter = setter
        self._validations = validations

    def set(self, ctx: RequestContext | None) -> ParentT:
        """Attach ``ctx``; None leaves the current context in place."""
        if ctx is not None:
            self._setter(ctx)
        return self._parent

    def with_timeout(self, seconds: float) -> ParentT:
        try:
            self._setter(RequestContext.with_timeout(seconds))
        except ValueError as exc:
            self._validations.add(
                validation_error(ERR_MSG_INVALID_TIMEOUT, exc)
            )
        return self._parent


class ClientConfigBuilder(Generic[ParentT]):
    """Transport settings for a client."""

    def __init__(self, parent: ParentT, config: ClientConfig) -> None:
        self._parent = parent
        self._config = config

    def _replace(self, message: str, **changes: Any) -> ParentT:
        try:
            self._config.transport_config = dataclasses.replace(
                self._config.transport_config, **changes
            )
        except ValueError as exc:
            self._config.validations.add(validation_error(message, exc))
        return self._parent

    def set_custom_transport(self, transport: Transport) -> ParentT:
        self._config.transport = transport
        return self._parent

    def set_timeout(self, seconds: float) -> ParentT:
        return self._replace(ERR_MSG_INVALID_TIMEOUT, timeout_seconds=seconds)

    def set_follow_redirects(self, follow: bool) -> ParentT:
        self._config.transport_config = dataclasses.replace(
            self._config.transport_config, follow_redirects=follow
        )
        return self._parent

    def set_verify_tls(self, verify: bool) -> ParentT:
        self._config.transport_config = dataclasses.replace(
            self._config.transport_config, verify_tls=verify
        )
        return self._parent

    def set_proxy(self, proxy_url: str) -> ParentT:
        return self._replace(ERR_MSG_PARSE_PROXY_URL, proxy_url=proxy_url)
