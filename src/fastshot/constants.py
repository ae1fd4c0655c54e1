"""HTTP methods, header names, MIME types and error messages."""

from __future__ import annotations

from enum import Enum


class Method(str, Enum):
    """HTTP methods accepted by the request builder."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"

    def __str__(self) -> str:
        return self.value


HEADER_ACCEPT = "Accept"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_COOKIE = "Cookie"
HEADER_SET_COOKIE = "Set-Cookie"
HEADER_USER_AGENT = "User-Agent"

MIME_JSON = "application/json"
MIME_XML = "application/xml"
MIME_FORM = "application/x-www-form-urlencoded"
MIME_TEXT = "text/plain"
MIME_OCTET_STREAM = "application/octet-stream"

ERR_MSG_CREATE_REQUEST = "failed to create request"
ERR_MSG_EMPTY_BASE_URL = "empty base URL"
ERR_MSG_MARSHAL_JSON = "failed to marshal JSON"
ERR_MSG_MARSHAL_XML = "failed to marshal XML"
ERR_MSG_ENCODE_FORM_DATA = "failed to encode form data"
ERR_MSG_PARSE_PROXY_URL = "failed to parse proxy URL"
ERR_MSG_PARSE_QUERY_STRING = "failed to parse query string"
ERR_MSG_PARSE_URL = "failed to parse URL"
ERR_MSG_READ_BODY = "failed to read body"
ERR_MSG_INVALID_TIMEOUT = "invalid timeout"
