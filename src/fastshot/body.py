"""Request and response payload containers.

Two variants share one contract: :class:`BufferedBody` keeps the payload in
memory and can be read any number of times, :class:`UnbufferedBody` wraps a
single-pass stream (typically a live connection) whose bytes can be
consumed once. Both are safe to share between threads: reads may run
concurrently, writes are serialized against reads and against each other.
"""

from __future__ import annotations

import io
import json
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import IO, Any, Iterator, Mapping, Sequence, Tuple, Union

from urllib3.filepost import encode_multipart_formdata

from .xml_codec import dict_to_xml, xml_to_dict

FormValue = Union[str, bytes, Tuple[str, Any], Tuple[str, Any, str]]
FormFields = Union[Mapping[str, FormValue], Sequence[Tuple[str, FormValue]]]


class ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Body(ABC):
    """Common read/write contract for payloads.

    Every ``write_*`` call replaces the whole payload. Serialization happens
    before the lock is taken, so a failing write leaves the previous payload
    untouched.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()

    @abstractmethod
    def read_bytes(self) -> bytes:
        """Return the payload bytes."""

    @abstractmethod
    def set(self, stream: IO[bytes] | bytes | str) -> None:
        """Replace the payload with the contents of ``stream``."""

    @abstractmethod
    def unwrap(self) -> IO[bytes]:
        """Return a readable stream over the payload."""

    @abstractmethod
    def close(self) -> None:
        """Release any resource held by the payload."""

    @abstractmethod
    def _replace(self, data: bytes) -> None:
        """Swap in ``data`` as the new payload (write lock held by caller)."""

    def read_string(self, encoding: str = "utf-8") -> str:
        return self.read_bytes().decode(encoding)

    def read_json(self) -> Any:
        """Decode the payload as JSON.

        Raises:
            json.JSONDecodeError: If the payload is not valid JSON.
        """
        return json.loads(self.read_bytes())

    def read_xml(self) -> dict[str, Any]:
        """Decode the payload as XML into the dict form of ``xml_to_dict``."""
        return xml_to_dict(self.read_bytes())

    def write_bytes(self, data: bytes) -> None:
        with self._lock.write():
            self._replace(bytes(data))

    def write_string(self, s: str, encoding: str = "utf-8") -> None:
        self.write_bytes(s.encode(encoding))

    def write_json(self, obj: Any) -> None:
        """Replace the payload with ``obj`` encoded as JSON.

        Raises:
            TypeError: If ``obj`` is not JSON serializable.
            ValueError: If ``obj`` contains circular references or NaN
                handling fails.
        """
        self.write_bytes(json.dumps(obj).encode("utf-8"))

    def write_xml(self, obj: Any) -> None:
        """Replace the payload with ``obj`` encoded as XML.

        ``obj`` is an ``xml.etree.ElementTree.Element`` or a dict with a
        single root key.
        """
        self.write_bytes(dict_to_xml(obj))

    def write_form_data(self, fields: FormFields) -> str:
        """Replace the payload with a multipart/form-data encoding of fields.

        File parts are given as ``(filename, data)`` or
        ``(filename, data, content_type)`` tuples.

        Returns:
            The content type, including the generated boundary.
        """
        data, content_type = encode_multipart_formdata(fields)
        self.write_bytes(data)
        return content_type


def _read_all(stream: IO[bytes] | bytes | str) -> bytes:
    if isinstance(stream, str):
        return stream.encode("utf-8")
    if isinstance(stream, (bytes, bytearray, memoryview)):
        return bytes(stream)
    data = stream.read()
    if isinstance(data, str):
        return data.encode("utf-8")
    return data


class BufferedBody(Body):
    """In-memory payload; reads never consume it."""

    def __init__(self, data: bytes = b"") -> None:
        super().__init__()
        self._buffer = bytearray(data)

    def read_bytes(self) -> bytes:
        with self._lock.read():
            return bytes(self._buffer)

    def set(self, stream: IO[bytes] | bytes | str) -> None:
        data = _read_all(stream)
        with self._lock.write():
            self._replace(data)

    def unwrap(self) -> IO[bytes]:
        with self._lock.read():
            return io.BytesIO(bytes(self._buffer))

    def close(self) -> None:
        return None

    def is_empty(self) -> bool:
        with self._lock.read():
            return not self._buffer

    def _replace(self, data: bytes) -> None:
        self._buffer = bytearray(data)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._buffer)


class UnbufferedBody(Body):
    """Single-pass payload backed by a stream.

    Reads consume the stream; once it is exhausted (or closed) further reads
    return empty results. :meth:`close` releases the stream exactly once.
    """

    def __init__(self, stream: IO[bytes] | None = None) -> None:
        super().__init__()
        self._stream: IO[bytes] = (
            stream if stream is not None else io.BytesIO()
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def read_bytes(self) -> bytes:
        with self._lock.read():
            if self._closed:
                return b""
            return self._stream.read() or b""

    def set(self, stream: IO[bytes] | bytes | str) -> None:
        if isinstance(stream, (str, bytes, bytearray, memoryview)):
            stream = io.BytesIO(_read_all(stream))
        with self._lock.write():
            self._swap(stream)

    def unwrap(self) -> IO[bytes]:
        with self._lock.read():
            return self._stream

    def close(self) -> None:
        with self._lock.write():
            if self._closed:
                return
            self._closed = True
            self._stream.close()

    def _replace(self, data: bytes) -> None:
        self._swap(io.BytesIO(data))

    def _swap(self, stream: IO[bytes]) -> None:
        previous = self._stream
        self._stream = stream
        if not self._closed and previous is not stream:
            previous.close()
        self._closed = False
