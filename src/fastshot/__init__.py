"""fastshot: fluent HTTP client with load balancing and retry policies."""

import logging

from .base_url import BaseURL, FixedBaseURL, RoundRobinBaseURL
from .body import Body, BufferedBody, UnbufferedBody
from .client import (
    Client,
    ClientBuilder,
    ClientConfig,
    default_client,
    default_client_load_balancer,
)
from .config import TransportConfig
from .constants import Method
from .context import RequestContext
from .errors import (
    AttemptRecord,
    ConfigurationError,
    ConnectionFailedError,
    ContextError,
    FastshotError,
    HookError,
    RequestBuildError,
    RequestTimeoutError,
    ResponseStatusError,
    RetryConditionError,
    RetryExhaustedError,
    TransportError,
    URLError,
)
from .request import RequestBuilder, RequestConfig
from .response import Response
from .retry import JitterStrategy, RetryPolicy
from .transport import RequestsTransport, Transport
from .types import Err, Ok, Result
from .validations import Validations

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AttemptRecord",
    "BaseURL",
    "Body",
    "BufferedBody",
    "Client",
    "ClientBuilder",
    "ClientConfig",
    "ConfigurationError",
    "ConnectionFailedError",
    "ContextError",
    "Err",
    "FastshotError",
    "FixedBaseURL",
    "HookError",
    "JitterStrategy",
    "Method",
    "Ok",
    "RequestBuildError",
    "RequestBuilder",
    "RequestConfig",
    "RequestContext",
    "RequestTimeoutError",
    "RequestsTransport",
    "Response",
    "ResponseStatusError",
    "RetryConditionError",
    "Result",
    "RetryExhaustedError",
    "RetryPolicy",
    "RoundRobinBaseURL",
    "Transport",
    "TransportConfig",
    "TransportError",
    "URLError",
    "UnbufferedBody",
    "Validations",
    "default_client",
    "default_client_load_balancer",
]
