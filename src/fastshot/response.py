"""Read-only views over a transport response."""

from __future__ import annotations

import time
from http import HTTPStatus
from http.cookiejar import Cookie, http2time
from http.cookies import CookieError, SimpleCookie
from typing import IO, Any, Mapping

import requests
from requests.cookies import create_cookie

from .body import UnbufferedBody
from .constants import HEADER_SET_COOKIE
from .transport import ResponseStream


class ResponseStatus:
    """Status code and range predicates."""

    def __init__(self, code: int, reason: str | None = None) -> None:
        self._code = code
        self._reason = reason

    def code(self) -> int:
        return self._code

    def text(self) -> str:
        """Return ``"[code] Reason"``, e.g. ``"[404] Not Found"``."""
        try:
            phrase = HTTPStatus(self._code).phrase
        except ValueError:
            phrase = self._reason or ""
        return f"[{self._code}] {phrase}"

    def is_1xx_informational(self) -> bool:
        return 100 <= self._code < 200

    def is_2xx_successful(self) -> bool:
        return 200 <= self._code < 300

    def is_3xx_redirection(self) -> bool:
        return 300 <= self._code < 400

    def is_4xx_client_error(self) -> bool:
        return 400 <= self._code < 500

    def is_5xx_server_error(self) -> bool:
        return 500 <= self._code < 600

    def is_ok(self) -> bool:
        return self._code == HTTPStatus.OK

    def is_not_found(self) -> bool:
        return self._code == HTTPStatus.NOT_FOUND

    def is_unauthorized(self) -> bool:
        return self._code == HTTPStatus.UNAUTHORIZED

    def is_forbidden(self) -> bool:
        return self._code == HTTPStatus.FORBIDDEN

    def is_error(self) -> bool:
        return self.is_4xx_client_error() or self.is_5xx_server_error()

    def __repr__(self) -> str:
        return f"ResponseStatus({self.text()!r})"


class ResponseHeader:
    """Case-insensitive access to response headers."""

    def __init__(self, response: requests.Response) -> None:
        self._headers = response.headers
        raw_headers = getattr(response.raw, "headers", None)
        self._multi = raw_headers if hasattr(raw_headers, "getlist") else None

    def get(self, key: str) -> str:
        return self._headers.get(key, "")

    def get_all(self, key: str) -> list[str]:
        """Return every value for ``key`` as received."""
        if self._multi is not None:
            return list(self._multi.getlist(key))
        value = self._headers.get(key)
        return [] if value is None else [value]

    def keys(self) -> list[str]:
        return list(self._headers.keys())


def parse_set_cookie(header: str) -> Cookie | None:
    """Parse one ``Set-Cookie`` header value, or return None if malformed."""
    parsed = SimpleCookie()
    try:
        parsed.load(header)
    except CookieError:
        return None
    for morsel in parsed.values():
        rest = {"HttpOnly": morsel["httponly"]} if morsel["httponly"] else {}
        expires: int | None = None
        if morsel["max-age"]:
            try:
                expires = int(time.time()) + int(morsel["max-age"])
            except ValueError:
                return None
        elif morsel["expires"]:
            expires = http2time(morsel["expires"])
        return create_cookie(
            morsel.key,
            morsel.value,
            domain=morsel["domain"],
            path=morsel["path"] or "/",
            secure=bool(morsel["secure"]),
            expires=expires,
            comment=morsel["comment"] or None,
            rest=rest,
        )
    return None


class ResponseCookie:
    """Cookies set by the response, in ``Set-Cookie`` header order.

    Headers are parsed directly, so cookies a jar would reject (e.g. for a
    foreign domain) are kept. Malformed headers are skipped.
    """

    def __init__(self, response: requests.Response) -> None:
        raw_headers = getattr(response.raw, "headers", None)
        if hasattr(raw_headers, "getlist"):
            self._cookies = [
                cookie
                for cookie in map(
                    parse_set_cookie, raw_headers.getlist(HEADER_SET_COOKIE)
                )
                if cookie is not None
            ]
        else:
            self._cookies = list(response.cookies)

    def get_all(self) -> list[Cookie]:
        return list(self._cookies)

    def get(self, name: str) -> Cookie | None:
        for cookie in self._cookies:
            if cookie.name == name:
                return cookie
        return None


class ResponseRequest:
    """The request that was actually sent, for diagnostics."""

    def __init__(self, request: requests.PreparedRequest | None) -> None:
        self._request = request

    def raw(self) -> requests.PreparedRequest | None:
        return self._request

    def method(self) -> str:
        if self._request is None:
            return ""
        return self._request.method or ""

    def url(self) -> str:
        if self._request is None:
            return ""
        return self._request.url or ""

    def headers(self) -> Mapping[str, str]:
        if self._request is None:
            return {}
        return self._request.headers


class ResponseBody:
    """Single-pass body bound to the live connection.

    Every ``as_*`` reader closes the stream before returning, whether or not
    decoding succeeds.
    """

    def __init__(self, body: UnbufferedBody) -> None:
        self._body = body

    def raw(self) -> IO[bytes]:
        return self._body.unwrap()

    def unwrap(self) -> UnbufferedBody:
        return self._body

    def close(self) -> None:
        self._body.close()

    def as_bytes(self) -> bytes:
        try:
            return self._body.read_bytes()
        finally:
            self.close()

    def as_string(self, encoding: str = "utf-8") -> str:
        try:
            return self._body.read_string(encoding)
        finally:
            self.close()

    def as_json(self) -> Any:
        try:
            return self._body.read_json()
        finally:
            self.close()

    def as_xml(self) -> dict[str, Any]:
        try:
            return self._body.read_xml()
        finally:
            self.close()


class Response:
    """Facade over a :class:`requests.Response`."""

    def __init__(self, raw: requests.Response) -> None:
        self._raw = raw
        self._status = ResponseStatus(raw.status_code, raw.reason)
        self._header = ResponseHeader(raw)
        self._cookie = ResponseCookie(raw)
        self._request = ResponseRequest(raw.request)
        self._body = ResponseBody(UnbufferedBody(ResponseStream(raw)))

    @property
    def raw(self) -> requests.Response:
        return self._raw

    @property
    def status(self) -> ResponseStatus:
        return self._status

    @property
    def header(self) -> ResponseHeader:
        return self._header

    @property
    def cookie(self) -> ResponseCookie:
        return self._cookie

    @property
    def request(self) -> ResponseRequest:
        return self._request

    @property
    def body(self) -> ResponseBody:
        return self._body

    def __repr__(self) -> str:
        return f"<Response {self._status.text()}>"
