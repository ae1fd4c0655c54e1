# pyright: reportUnknownParameterType=false, reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false, reportMissingParameterType=false
# pyright: reportUnknownArgumentType=false
import io
import logging
import threading
import time
from unittest.mock import Mock, call, patch

import pytest
import requests

from fastshot.client import ClientBuilder
from fastshot.context import RequestContext
from fastshot.errors import (
    ConfigurationError,
    ConnectionFailedError,
    ContextError,
    HookError,
    RequestBuildError,
    RequestTimeoutError,
    ResponseStatusError,
    RetryConditionError,
    RetryExhaustedError,
    URLError,
)
from fastshot.request import QueryParams, join_url


def _raw_response(
    *, content: bytes = b"", status: int = 200, reason: str = "OK"
) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.raw = io.BytesIO(content)
    return response


def _replay(*outcomes):
    """Transport side effect returning or raising ``outcomes`` in order."""
    queue = list(outcomes)

    def send(request, *, timeout_cap=None):
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        outcome.request = request
        outcome.url = request.url
        return outcome

    return send


@pytest.fixture
def transport():
    return Mock()


@pytest.fixture
def client(transport):
    return (
        ClientBuilder("http://example.com")
        .config()
        .set_custom_transport(transport)
        .build()
    )


def _sent_request(transport, index: int = 0) -> requests.PreparedRequest:
    return transport.send.call_args_list[index][0][0]


def test_join_url_collapses_double_slash():
    assert join_url("http://h/", "/a", []) == "http://h/a"
    assert join_url("http://h", "/a", []) == "http://h/a"


def test_join_url_merges_and_sorts_query():
    url = join_url("http://h", "/a?z=1", [("b", "2"), ("a", "x"), ("b", "1")])

    assert url == "http://h/a?a=x&b=2&b=1&z=1"


def test_join_url_rejects_relative_result():
    with pytest.raises(ValueError):
        join_url("not-a-url", "/a", [])


def test_query_params_multimap():
    params = QueryParams()
    params.add("a", "1")
    params.add("a", "2")
    params.set("b", "3")

    assert params.get("a") == "1"
    assert params.get_all("a") == ["1", "2"]
    assert params.get("missing") == ""
    assert len(params) == 3


def test_send_success_returns_response_and_metadata(client, transport):
    transport.send.side_effect = _replay(
        _raw_response(content=b"hello", status=200)
    )

    result = client.get("/greeting").send()

    assert result.ok
    assert result.value.status.code() == 200
    assert result.value.body.as_string() == "hello"
    assert result.meta["method"] == "GET"
    assert result.meta["path"] == "/greeting"
    assert result.meta["url"] == "http://example.com/greeting"
    assert result.meta["status_code"] == 200
    assert result.meta["attempts"] == 1
    transport.send.assert_called_once()


def test_send_without_retry_returns_error_status_as_ok(client, transport):
    transport.send.side_effect = _replay(
        _raw_response(status=404, reason="Not Found")
    )

    result = client.get("/missing").send()

    assert result.ok
    assert result.value.status.is_not_found()
    assert result.meta["reason"] == "Not Found"


def test_send_validation_failure_skips_transport(transport):
    client = (
        ClientBuilder("")
        .config()
        .set_custom_transport(transport)
        .build()
    )

    result = client.post("/users").body().as_json({"x": object()}).send()

    assert not result.ok
    assert isinstance(result.error, ConfigurationError)
    assert len(result.error.client_errors) == 1
    assert len(result.error.request_errors) == 1
    assert str(result.error).startswith(
        "invalid client attributes: empty base URL | "
        "invalid request attributes: failed to marshal JSON"
    )
    transport.send.assert_not_called()


def test_send_request_only_validation_failure(client, transport):
    result = client.get("/").query().set_raw_string("a=%zz").send()

    assert isinstance(result.error, ConfigurationError)
    assert result.error.client_errors == ()
    assert str(result.error).startswith("invalid request attributes: ")
    assert result.meta["final_error"] == "ConfigurationError"
    transport.send.assert_not_called()


def test_send_invalid_url_is_url_error(transport):
    client = ClientBuilder("http://example.com:99999999").build()
    client.config.transport = transport

    result = client.get("/").send()

    assert isinstance(result.error, ConfigurationError)

    client = ClientBuilder("http://example.com").build()
    client.config.base_url = None
    client.config.transport = transport

    result = client.get("/").send()

    assert isinstance(result.error, URLError)
    transport.send.assert_not_called()


def test_send_invalid_method_is_build_error(client, transport):
    result = client.request("FETCH", "/").send()

    assert isinstance(result.error, RequestBuildError)
    assert "invalid method" in str(result.error)
    transport.send.assert_not_called()


def test_request_headers_layer_over_client_headers(transport):
    client = (
        ClientBuilder("http://example.com")
        .header()
        .add("Accept", "text/plain")
        .header()
        .set("X-Env", "client")
        .config()
        .set_custom_transport(transport)
        .build()
    )
    transport.send.side_effect = _replay(_raw_response())

    client.get("/").header().add("Accept", "application/json").header().set(
        "X-Env", "request"
    ).send()

    sent = _sent_request(transport)
    assert sent.headers["Accept"] == "text/plain, application/json"
    assert sent.headers["X-Env"] == "request"


def test_cookies_are_sent_client_first(transport):
    client = (
        ClientBuilder("http://example.com")
        .cookie()
        .add_value("session", "abc")
        .config()
        .set_custom_transport(transport)
        .build()
    )
    transport.send.side_effect = _replay(_raw_response())

    client.get("/").cookie().add_value("theme", "dark").send()

    assert _sent_request(transport).headers["Cookie"] == (
        "session=abc; theme=dark"
    )


def test_query_params_are_encoded_sorted(client, transport):
    transport.send.side_effect = _replay(_raw_response())

    client.get("/items?z=9").query().add_param("b", "2").query().add_param(
        "a", "hello world"
    ).send()

    assert _sent_request(transport).url == (
        "http://example.com/items?a=hello+world&b=2&z=9"
    )


def test_body_is_sent(client, transport):
    transport.send.side_effect = _replay(_raw_response())

    client.post("/users").body().as_json({"name": "alice"}).send()

    assert _sent_request(transport).body == b'{"name": "alice"}'


def test_before_hooks_run_client_then_request(transport):
    order: list[str] = []
    client = (
        ClientBuilder("http://example.com")
        .hook()
        .on_before_request(lambda req: order.append("client"))
        .config()
        .set_custom_transport(transport)
        .build()
    )
    transport.send.side_effect = _replay(_raw_response())

    def stamp(request):
        order.append("request")
        request.headers["X-Stamped"] = "yes"

    client.get("/").hook().on_before_request(stamp).send()

    assert order == ["client", "request"]
    assert _sent_request(transport).headers["X-Stamped"] == "yes"


def test_failing_before_hook_aborts_send(client, transport):
    def reject(request):
        raise RuntimeError("denied")

    result = client.get("/").hook().on_before_request(reject).send()

    assert isinstance(result.error, HookError)
    assert isinstance(result.error.__cause__, RuntimeError)
    transport.send.assert_not_called()


def test_after_hook_failure_is_logged(client, transport, caplog):
    seen = []
    transport.send.side_effect = _replay(_raw_response())

    def explode(request, response):
        raise RuntimeError("observer broke")

    with caplog.at_level(logging.WARNING, logger="fastshot.hooks"):
        result = (
            client.get("/")
            .hook()
            .on_after_response(explode)
            .hook()
            .on_after_response(lambda req, resp: seen.append(resp))
            .send()
        )

    assert result.ok
    assert seen == [result.value.raw]
    assert "after-response hook" in caplog.text


def test_transport_failure_without_retry(client, transport):
    transport.send.side_effect = requests.exceptions.ConnectTimeout("slow")

    result = client.get("/").send()

    assert isinstance(result.error, RequestTimeoutError)
    assert result.meta["attempts"] == 1


@patch("fastshot.context.RequestContext.wait", return_value=True)
def test_retry_until_success(mock_wait, client, transport):
    transport.send.side_effect = _replay(
        _raw_response(status=500, reason="Internal Server Error"),
        _raw_response(status=500, reason="Internal Server Error"),
        _raw_response(content=b"done", status=200),
    )

    result = (
        client.get("/flaky")
        .retry()
        .set_exponential_backoff(0.1, 3, 2.0)
        .send()
    )

    assert result.ok
    assert result.value.body.as_string() == "done"
    assert result.meta["attempts"] == 3
    assert transport.send.call_count == 3
    assert mock_wait.call_args_list == [call(0.1), call(0.2)]


@patch("fastshot.context.RequestContext.wait", return_value=True)
def test_retry_exhausted_keeps_last_response(mock_wait, client, transport):
    transport.send.side_effect = _replay(
        *[_raw_response(status=503, reason="x") for _ in range(3)]
    )

    result = client.get("/down").retry().set_constant_backoff(0.5, 3).send()

    assert not result.ok
    error = result.error
    assert isinstance(error, RetryExhaustedError)
    assert [record.attempt for record in error.attempts] == [1, 2, 3]
    assert all(
        isinstance(cause, ResponseStatusError) for cause in error.causes
    )
    assert error.attempts[0].status_code == 503
    assert error.attempts[0].status_text == "[503] Service Unavailable"
    assert str(error).startswith("request failed after 3 attempts: ")
    assert "attempt 3: [503] Service Unavailable" in str(error)
    assert result.value is error.response
    assert result.value.status.code() == 503
    assert result.meta["final_error"] == "RetryExhaustedError"
    assert mock_wait.call_args_list == [call(0.5), call(0.5)]


@patch("fastshot.context.RequestContext.wait", return_value=True)
def test_retry_closes_superseded_response_bodies(mock_wait, client, transport):
    first = _raw_response(status=500)
    first.close = Mock()  # type: ignore[method-assign]
    transport.send.side_effect = _replay(first, _raw_response(status=200))

    result = client.get("/").retry().set_constant_backoff(0, 2).send()

    assert result.ok
    first.close.assert_called_once_with()


@patch("fastshot.context.RequestContext.wait", return_value=True)
def test_retry_covers_transport_errors(mock_wait, client, transport):
    transport.send.side_effect = _replay(
        requests.exceptions.ConnectionError("refused"),
        _raw_response(status=200),
    )

    result = client.get("/").retry().set_constant_backoff(0.2, 2).send()

    assert result.ok
    assert result.meta["attempts"] == 2
    mock_wait.assert_called_once_with(0.2)


@patch("fastshot.context.RequestContext.wait", return_value=True)
def test_retry_records_transport_errors(mock_wait, client, transport):
    transport.send.side_effect = _replay(
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.ReadTimeout("slow"),
    )

    result = client.get("/").retry().set_constant_backoff(0, 2).send()

    error = result.error
    assert isinstance(error, RetryExhaustedError)
    assert isinstance(error.causes[0], ConnectionFailedError)
    assert isinstance(error.causes[1], RequestTimeoutError)
    assert error.response is None
    assert result.value is None


def test_custom_retry_condition(client, transport):
    transport.send.side_effect = _replay(
        _raw_response(status=404),
        _raw_response(status=200),
    )

    result = (
        client.get("/")
        .retry()
        .set_constant_backoff(0, 3)
        .retry()
        .with_retry_condition(lambda resp: resp.status.is_5xx_server_error())
        .send()
    )

    assert result.ok
    assert result.value.status.code() == 404
    transport.send.assert_called_once()


def test_cancelled_context_stops_before_sending(client, transport):
    ctx = RequestContext.background()
    ctx.cancel()

    result = (
        client.get("/")
        .context()
        .set(ctx)
        .retry()
        .set_constant_backoff(0, 3)
        .send()
    )

    error = result.error
    assert isinstance(error, RetryExhaustedError)
    assert len(error.attempts) == 1
    assert isinstance(error.causes[0], ContextError)
    assert str(error.causes[0]) == "context cancelled"
    transport.send.assert_not_called()


def test_cancel_during_backoff_ends_retry_loop(client, transport):
    ctx = RequestContext.background()
    transport.send.side_effect = _replay(_raw_response(status=500))

    def cancel_while_waiting(seconds):
        ctx.cancel()
        return False

    with patch.object(ctx, "wait", side_effect=cancel_while_waiting):
        result = (
            client.get("/")
            .context()
            .set(ctx)
            .retry()
            .set_constant_backoff(10, 5)
            .send()
        )

    error = result.error
    assert isinstance(error, RetryExhaustedError)
    assert len(error.attempts) == 2
    assert isinstance(error.causes[1], ContextError)
    assert transport.send.call_count == 1


def test_deadline_caps_transport_timeout(client, transport):
    transport.send.side_effect = _replay(_raw_response())

    client.get("/").context().with_timeout(30).send()

    timeout_cap = transport.send.call_args.kwargs["timeout_cap"]
    assert 0 < timeout_cap <= 30


def test_round_robin_client_targets_each_url(transport):
    client = (
        ClientBuilder.load_balancer(["http://a", "http://b"])
        .config()
        .set_custom_transport(transport)
        .build()
    )
    transport.send.side_effect = _replay(*[_raw_response() for _ in range(3)])

    for _ in range(3):
        client.get("/ping").send()

    urls = [_sent_request(transport, i).url for i in range(3)]
    assert urls == ["http://a/ping", "http://b/ping", "http://a/ping"]


def test_failing_retry_condition_is_returned_as_error(client, transport):
    transport.send.side_effect = _replay(_raw_response(status=500))

    def broken(response):
        raise KeyError("status")

    result = (
        client.get("/")
        .retry()
        .set_constant_backoff(0, 3)
        .retry()
        .with_retry_condition(broken)
        .send()
    )

    assert not result.ok
    assert isinstance(result.error, RetryConditionError)
    assert isinstance(result.error.__cause__, KeyError)
    assert result.value.status.code() == 500
    assert result.meta["final_error"] == "RetryConditionError"
    transport.send.assert_called_once()


def test_cancel_interrupts_attempt_in_flight(client, transport):
    release = threading.Event()
    ctx = RequestContext.background()

    def hang(request, *, timeout_cap=None):
        release.wait(5)
        return _raw_response()

    transport.send.side_effect = hang
    timer = threading.Timer(0.05, ctx.cancel)
    timer.start()

    started = time.monotonic()
    result = client.get("/").context().set(ctx).send()
    elapsed = time.monotonic() - started
    timer.join()
    release.set()

    assert elapsed < 2
    assert isinstance(result.error, ContextError)
    assert str(result.error) == "context cancelled"
