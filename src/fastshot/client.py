"""Client configuration, client builder and HTTP method shortcuts."""

from __future__ import annotations

import threading
from typing import Sequence

from .base_url import BaseURL, FixedBaseURL, RoundRobinBaseURL, parse_base_url
from .builders import (
    AuthBuilder,
    ClientConfigBuilder,
    CookieBuilder,
    HeaderBuilder,
    HookBuilder,
)
from .config import TransportConfig
from .constants import ERR_MSG_EMPTY_BASE_URL, ERR_MSG_PARSE_URL, Method
from .headers import Cookies, Header
from .hooks import Hooks
from .request import RequestBuilder
from .transport import RequestsTransport, Transport
from .validations import Validations, validation_error


class ClientConfig:
    """State shared by every request built from one client.

    Treat it as read-only once requests start being sent from several
    threads.
    """

    def __init__(
        self,
        base_url: BaseURL | None,
        validations: Validations | None = None,
    ) -> None:
        self.base_url = base_url
        self.validations = validations or Validations()
        self.transport_config = TransportConfig()
        self.transport: Transport | None = None
        self.header = Header()
        self.cookies = Cookies()
        self.hooks = Hooks()
        self._transport_lock = threading.Lock()

    def get_transport(self) -> Transport:
        """Return the configured transport, creating the default one once."""
        with self._transport_lock:
            if self.transport is None:
                self.transport = RequestsTransport(self.transport_config)
            return self.transport


class Client:
    """Entry point for building requests.

    Example::

        client = default_client("https://api.example.com")
        result = client.get("/users").query().add_param("page", "2").send()
        if result.ok:
            users = result.value.body.as_json()
    """

    def __init__(self, config: ClientConfig) -> None:
        self._config = config

    @property
    def config(self) -> ClientConfig:
        return self._config

    def request(self, method: Method | str, path: str) -> RequestBuilder:
        return RequestBuilder(self, method, path)

    def get(self, path: str) -> RequestBuilder:
        return self.request(Method.GET, path)

    def head(self, path: str) -> RequestBuilder:
        return self.request(Method.HEAD, path)

    def post(self, path: str) -> RequestBuilder:
        return self.request(Method.POST, path)

    def put(self, path: str) -> RequestBuilder:
        return self.request(Method.PUT, path)

    def patch(self, path: str) -> RequestBuilder:
        return self.request(Method.PATCH, path)

    def delete(self, path: str) -> RequestBuilder:
        return self.request(Method.DELETE, path)

    def connect(self, path: str) -> RequestBuilder:
        return self.request(Method.CONNECT, path)

    def options(self, path: str) -> RequestBuilder:
        return self.request(Method.OPTIONS, path)

    def trace(self, path: str) -> RequestBuilder:
        return self.request(Method.TRACE, path)

    def close(self) -> None:
        """Close the transport if it holds resources."""
        transport = self._config.transport
        close = getattr(transport, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _fixed_base_url(
    base_url: str, validations: Validations
) -> BaseURL | None:
    if not base_url or not base_url.strip():
        validations.add(ValueError(ERR_MSG_EMPTY_BASE_URL))
        return None
    try:
        return FixedBaseURL(parse_base_url(base_url))
    except ValueError as exc:
        validations.add(validation_error(ERR_MSG_PARSE_URL, exc))
        return None


def _balanced_base_url(
    base_urls: Sequence[str], validations: Validations
) -> BaseURL | None:
    parsed: list[str] = []
    for index, base_url in enumerate(base_urls):
        if not base_url or not base_url.strip():
            validations.add(
                ValueError(f"base URL {index}: {ERR_MSG_EMPTY_BASE_URL}")
            )
            continue
        try:
            parsed.append(parse_base_url(base_url))
        except ValueError as exc:
            validations.add(
                validation_error(f"base URL {index}: {ERR_MSG_PARSE_URL}", exc)
            )
    if not parsed:
        validations.add(ValueError(ERR_MSG_EMPTY_BASE_URL))
        return None
    return RoundRobinBaseURL(parsed)


class ClientBuilder:
    """Fluent configuration for a :class:`Client`.

    Invalid base URLs, proxy URLs or timeouts do not raise here; they are
    recorded and reported by every ``send`` on the built client.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        config: ClientConfig | None = None,
    ) -> None:
        """Create a builder for a single base URL or a prepared config.

        Args:
            base_url: Origin every request targets.
            config: Existing client state to keep configuring; takes
                precedence over ``base_url``.
        """
        if config is None:
            validations = Validations()
            config = ClientConfig(
                _fixed_base_url(base_url or "", validations), validations
            )
        self.client = config

    @classmethod
    def load_balancer(cls, base_urls: Sequence[str]) -> ClientBuilder:
        """Create a builder that spreads requests over ``base_urls``."""
        validations = Validations()
        return cls(
            config=ClientConfig(
                _balanced_base_url(base_urls, validations), validations
            )
        )

    def header(self) -> HeaderBuilder[ClientBuilder]:
        return HeaderBuilder(self, self.client.header)

    def cookie(self) -> CookieBuilder[ClientBuilder]:
        return CookieBuilder(self, self.client.cookies)

    def auth(self) -> AuthBuilder[ClientBuilder]:
        return AuthBuilder(self, self.client.header)

    def hook(self) -> HookBuilder[ClientBuilder]:
        return HookBuilder(self, self.client.hooks)

    def config(self) -> ClientConfigBuilder[ClientBuilder]:
        return ClientConfigBuilder(self, self.client)

    def build(self) -> Client:
        return Client(self.client)


def default_client(base_url: str) -> Client:
    return ClientBuilder(base_url).build()


def default_client_load_balancer(base_urls: Sequence[str]) -> Client:
    return ClientBuilder.load_balancer(base_urls).build()
