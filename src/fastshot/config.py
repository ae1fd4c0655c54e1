"""Configuration model for the default requests-based transport."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit


@dataclass(frozen=True)
class TransportConfig:
    """Settings handed to :class:`~fastshot.transport.RequestsTransport`.

    Timeouts are in seconds. ``timeout_seconds`` applies to the whole
    attempt; ``connect_timeout_seconds`` and ``read_timeout_seconds`` are
    set together and take precedence.
    """

    timeout_seconds: float | None = None
    connect_timeout_seconds: float | None = None
    read_timeout_seconds: float | None = None
    verify_tls: bool = True
    follow_redirects: bool = True
    proxy_url: str | None = None

    def __post_init__(self) -> None:
        has_connect_timeout = self.connect_timeout_seconds is not None
        has_read_timeout = self.read_timeout_seconds is not None
        if has_connect_timeout != has_read_timeout:
            raise ValueError(
                "connect_timeout_seconds and read_timeout_seconds "
                "must be set together"
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0 when provided")
        if (
            self.connect_timeout_seconds is not None
            and self.connect_timeout_seconds <= 0
        ):
            raise ValueError(
                "connect_timeout_seconds must be > 0 when provided"
            )
        if (
            self.read_timeout_seconds is not None
            and self.read_timeout_seconds <= 0
        ):
            raise ValueError("read_timeout_seconds must be > 0 when provided")
        if self.proxy_url is not None:
            validate_proxy_url(self.proxy_url)

    @property
    def proxies(self) -> dict[str, str] | None:
        if self.proxy_url is None:
            return None
        return {"http": self.proxy_url, "https": self.proxy_url}


def validate_proxy_url(url: str) -> str:
    """Return ``url`` if it is a usable proxy URL.

    Raises:
        ValueError: If the URL has no scheme or host, or a bad port.
    """
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"proxy URL must include scheme and host: {url!r}")
    # Accessing .port validates it.
    parts.port
    return url.strip()
