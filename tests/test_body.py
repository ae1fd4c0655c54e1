# pyright: reportUnknownParameterType=false, reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false, reportMissingParameterType=false
import io
import json
import threading
import xml.etree.ElementTree as ET
from unittest.mock import Mock

import pytest

from fastshot.body import BufferedBody, ReadWriteLock, UnbufferedBody


def test_buffered_body_reads_are_repeatable():
    body = BufferedBody(b"payload")

    assert body.read_bytes() == b"payload"
    assert body.read_bytes() == b"payload"
    assert body.read_string() == "payload"


def test_buffered_write_replaces_previous_payload():
    body = BufferedBody()

    body.write_bytes(b"A")
    body.write_bytes(b"B")

    assert body.read_bytes() == b"B"


def test_buffered_set_reads_stream_fully():
    body = BufferedBody(b"old")

    body.set(io.BytesIO(b"new contents"))

    assert body.read_bytes() == b"new contents"
    assert len(body) == len(b"new contents")


def test_buffered_unwrap_returns_independent_stream():
    body = BufferedBody(b"abc")

    first = body.unwrap()
    second = body.unwrap()

    assert first.read() == b"abc"
    assert second.read() == b"abc"
    assert body.read_bytes() == b"abc"


def test_buffered_is_empty():
    body = BufferedBody()

    assert body.is_empty()
    body.write_string("x")
    assert not body.is_empty()


def test_write_json_round_trips_through_read_json():
    body = BufferedBody()

    body.write_json({"name": "alice", "tags": ["a", "b"]})

    assert json.loads(body.read_bytes()) == {
        "name": "alice",
        "tags": ["a", "b"],
    }
    assert body.read_json()["name"] == "alice"


def test_failed_write_json_keeps_previous_payload():
    body = BufferedBody(b"keep")

    with pytest.raises(TypeError):
        body.write_json({"bad": object()})

    assert body.read_bytes() == b"keep"


def test_read_json_rejects_invalid_payload():
    body = BufferedBody(b"{not json")

    with pytest.raises(json.JSONDecodeError):
        body.read_json()


def test_write_xml_from_dict():
    body = BufferedBody()

    body.write_xml({"user": {"@id": "7", "name": "alice", "admin": True}})

    root = ET.fromstring(body.read_bytes())
    assert root.tag == "user"
    assert root.get("id") == "7"
    assert root.findtext("name") == "alice"
    assert root.findtext("admin") == "true"


def test_write_xml_from_element():
    element = ET.Element("ping")
    element.text = "pong"
    body = BufferedBody()

    body.write_xml(element)

    assert body.read_xml() == {"ping": "pong"}


def test_write_xml_rejects_ambiguous_root():
    body = BufferedBody(b"keep")

    with pytest.raises(ValueError):
        body.write_xml({"a": 1, "b": 2})

    assert body.read_bytes() == b"keep"


def test_write_form_data_returns_boundary_content_type():
    body = BufferedBody()

    content_type = body.write_form_data(
        {"name": "alice", "file": ("notes.txt", b"hello", "text/plain")}
    )

    assert content_type.startswith("multipart/form-data; boundary=")
    boundary = content_type.split("boundary=", 1)[1]
    payload = body.read_bytes()
    assert boundary.encode() in payload
    assert b'name="name"' in payload
    assert b'filename="notes.txt"' in payload
    assert b"hello" in payload


def test_unbuffered_second_read_returns_empty():
    body = UnbufferedBody(io.BytesIO(b"X"))

    assert body.read_bytes() == b"X"
    assert body.read_bytes() == b""


def test_unbuffered_read_after_close_returns_empty():
    body = UnbufferedBody(io.BytesIO(b"X"))

    body.close()

    assert body.closed
    assert body.read_bytes() == b""


def test_unbuffered_close_releases_stream_once():
    stream = Mock()
    body = UnbufferedBody(stream)

    body.close()
    body.close()

    stream.close.assert_called_once_with()


def test_unbuffered_write_replaces_and_closes_previous_stream():
    previous = Mock()
    body = UnbufferedBody(previous)

    body.write_string("fresh")

    previous.close.assert_called_once_with()
    assert body.read_bytes() == b"fresh"


def test_unbuffered_set_after_close_reopens():
    body = UnbufferedBody(io.BytesIO(b"old"))
    body.close()

    body.set(b"new")

    assert not body.closed
    assert body.read_bytes() == b"new"


def test_unbuffered_unwrap_exposes_stream():
    stream = io.BytesIO(b"raw")
    body = UnbufferedBody(stream)

    assert body.unwrap() is stream


def test_readers_do_not_block_each_other():
    lock = ReadWriteLock()
    inside = threading.Barrier(2, timeout=2)

    def reader():
        with lock.read():
            inside.wait()

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert not inside.broken


def test_concurrent_reads_see_whole_payloads():
    body = BufferedBody(b"a" * 4096)
    seen: set[bytes] = set()
    seen_lock = threading.Lock()

    def reader():
        for _ in range(200):
            data = body.read_bytes()
            with seen_lock:
                seen.add(data)

    def writer():
        for i in range(200):
            body.write_bytes((b"a" if i % 2 else b"b") * 4096)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    threads.append(threading.Thread(target=writer))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert seen <= {b"a" * 4096, b"b" * 4096}
