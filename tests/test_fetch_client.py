"""Tests for FetchClient retries and error classification."""
import asyncio
import time

import httpx
import pytest

from substack_dl.fetch.client import SessionCookie, is_retryable_status, validate_url
from substack_dl.fetch.errors import (
    CancellationError,
    FetchTimeoutError,
    HTTPStatusError,
    InvalidURLError,
    NotFoundError,
    RetriesExhaustedError,
    TransportError,
)
from substack_dl.jobs.run_control import RunControl

URL = "https://example.substack.com/p/test-post"


class Recorder:
    """Handler answering from a list of statuses, repeating the last one."""

    def __init__(self, *statuses: int):
        self.statuses = list(statuses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses[min(len(self.requests), len(self.statuses)) - 1]
        return httpx.Response(status, text=f"status {status}")


def run_fetch(client_factory, handler, url=URL, control=None, **kwargs):
    async def scenario():
        async with client_factory(handler, control=control, **kwargs) as client:
            return await client.fetch(url), client

    return asyncio.run(scenario())


def test_fetch_returns_body_and_sends_headers(client_factory):
    handler = Recorder(200)
    cookie = SessionCookie("substack.sid", "secret")
    body, _ = run_fetch(client_factory, handler, cookie=cookie)

    assert body == b"status 200"
    request = handler.requests[0]
    assert request.headers["Cookie"] == "substack.sid=secret"
    assert "Mozilla" in request.headers["User-Agent"]


def test_not_found_is_terminal(client_factory):
    handler = Recorder(404)
    with pytest.raises(NotFoundError) as exc_info:
        run_fetch(client_factory, handler, max_retries=3)
    assert exc_info.value.status_code == 404
    assert len(handler.requests) == 1


def test_client_error_is_terminal(client_factory):
    handler = Recorder(403)
    with pytest.raises(HTTPStatusError) as exc_info:
        run_fetch(client_factory, handler, max_retries=3)
    assert not isinstance(exc_info.value, (NotFoundError, RetriesExhaustedError))
    assert exc_info.value.status_code == 403
    assert len(handler.requests) == 1


def test_server_errors_are_retried_until_success(client_factory):
    handler = Recorder(503, 502, 200)
    body, client = run_fetch(client_factory, handler, max_retries=3)
    assert body == b"status 200"
    assert len(handler.requests) == 3
    assert client.retry_count == 2


def test_rate_limited_exhausts_retries(client_factory):
    handler = Recorder(429)
    with pytest.raises(RetriesExhaustedError) as exc_info:
        run_fetch(client_factory, handler, max_retries=2)
    assert exc_info.value.status_code == 429
    assert len(handler.requests) == 3


def test_transport_errors_are_retried_then_surfaced(client_factory):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        run_fetch(client_factory, handler, max_retries=2)
    assert len(calls) == 3


def test_timeouts_are_classified(client_factory):
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(FetchTimeoutError):
        run_fetch(client_factory, handler, max_retries=1)


def test_invalid_url_is_rejected_without_request(client_factory):
    handler = Recorder(200)
    with pytest.raises(InvalidURLError):
        run_fetch(client_factory, handler, url="invalid-url")
    assert handler.requests == []


def test_cancelled_run_skips_request(client_factory):
    handler = Recorder(200)
    control = RunControl()
    control.cancel("test")
    with pytest.raises(CancellationError):
        run_fetch(client_factory, handler, control=control)
    assert handler.requests == []


def test_cancellation_interrupts_in_flight_request(client_factory):
    async def slow_handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200)

    async def scenario():
        control = RunControl()
        async with client_factory(slow_handler, control=control) as client:
            asyncio.get_running_loop().call_later(0.05, control.cancel, "test")
            start = time.monotonic()
            with pytest.raises(CancellationError):
                await client.fetch(URL)
            return time.monotonic() - start

    assert asyncio.run(scenario()) < 2


def test_cancellation_interrupts_backoff(client_factory):
    handler = Recorder(503)

    async def scenario():
        control = RunControl()
        async with client_factory(
            handler, control=control, max_retries=3, backoff_initial=5, backoff_max=5
        ) as client:
            asyncio.get_running_loop().call_later(0.1, control.cancel, "test")
            start = time.monotonic()
            with pytest.raises(CancellationError):
                await client.fetch(URL)
            return time.monotonic() - start

    assert asyncio.run(scenario()) < 2
    assert len(handler.requests) == 1


def test_session_cookie_names():
    assert SessionCookie("connect.sid", "v").header() == "connect.sid=v"
    with pytest.raises(ValueError):
        SessionCookie("sessionid", "v")


def test_retryable_statuses():
    assert is_retryable_status(429)
    assert is_retryable_status(500)
    assert is_retryable_status(503)
    assert not is_retryable_status(404)
    assert not is_retryable_status(200)


def test_validate_url():
    validate_url("https://example.substack.com")
    for bad in ("", "invalid-url", "ftp://example.com/file", "https://"):
        with pytest.raises(InvalidURLError):
            validate_url(bad)
