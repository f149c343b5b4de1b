from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from mailtext.services.retry import RetryPolicy, retry_after_seconds, send_with_retry

_REQUEST = httpx.Request("GET", "https://graph.example.test/v1.0/me")
_LOGGER = logging.getLogger("tests.retry")


def _response(status: int, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status, headers=headers, request=_REQUEST)


class _ScriptedCall:
    def __init__(self, *outcomes: httpx.Response | Exception) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> httpx.Response:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _run(call: _ScriptedCall, policy: RetryPolicy, sleep: _RecordingSleep) -> httpx.Response:
    return asyncio.run(send_with_retry(call, operation="test_op", policy=policy, logger=_LOGGER, sleep=sleep))


def test_policy_build_clamps_values() -> None:
    policy = RetryPolicy.build(0, 0.0, 0.05)
    assert policy.max_attempts == 1
    assert policy.base_delay_seconds == 0.1
    assert policy.max_delay_seconds == 0.1


def test_backoff_doubles_up_to_cap() -> None:
    policy = RetryPolicy.build(5, 1.0, 5.0)
    assert [policy.backoff(attempt) for attempt in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


def test_retry_after_header() -> None:
    assert retry_after_seconds(_response(429, {"Retry-After": "7"})) == 7.0
    assert retry_after_seconds(_response(429)) is None
    assert retry_after_seconds(_response(429, {"Retry-After": "soon"})) is None
    assert retry_after_seconds(_response(429, {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})) == 0.0


def test_transient_status_is_retried_then_succeeds() -> None:
    call = _ScriptedCall(_response(503), _response(429, {"Retry-After": "3"}), _response(200))
    sleep = _RecordingSleep()

    response = _run(call, RetryPolicy.build(3, 1.0, 8.0), sleep)

    assert response.status_code == 200
    assert call.calls == 3
    assert sleep.delays == [1.0, 3.0]


def test_network_error_is_retried() -> None:
    call = _ScriptedCall(httpx.ConnectError("boom", request=_REQUEST), _response(200))
    sleep = _RecordingSleep()

    assert _run(call, RetryPolicy.build(2, 0.5, 8.0), sleep).status_code == 200
    assert sleep.delays == [0.5]


def test_exhausted_transient_status_raises_status_error() -> None:
    call = _ScriptedCall(_response(503), _response(503))
    sleep = _RecordingSleep()

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        _run(call, RetryPolicy.build(2, 1.0, 8.0), sleep)

    assert excinfo.value.response.status_code == 503
    assert call.calls == 2
    assert sleep.delays == [1.0]


def test_exhausted_network_error_is_reraised() -> None:
    call = _ScriptedCall(httpx.ReadTimeout("slow", request=_REQUEST))

    with pytest.raises(httpx.ReadTimeout):
        _run(call, RetryPolicy.build(1, 1.0, 8.0), _RecordingSleep())


def test_client_error_is_not_retried() -> None:
    call = _ScriptedCall(_response(404), _response(200))
    sleep = _RecordingSleep()

    with pytest.raises(httpx.HTTPStatusError):
        _run(call, RetryPolicy.build(3, 1.0, 8.0), sleep)

    assert call.calls == 1
    assert sleep.delays == []
