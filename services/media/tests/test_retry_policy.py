from __future__ import annotations

import asyncio
import random

import pytest

from services.media.application.retry import RetryPolicy, is_transient_error
from services.media.domain.errors import TransientUpstreamError, UpstreamError


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _flaky(failures: list[Exception], result="ok"):
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if failures:
            raise failures.pop(0)
        return result

    return operation, calls


def test_delays_double_and_cap_without_jitter():
    policy = RetryPolicy(base_delay=0.5, max_delay=4.0, jitter=0.0)

    assert [policy.delay_for(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 4.0, 4.0]


def test_jitter_adds_at_most_the_configured_fraction():
    policy = RetryPolicy(base_delay=1.0, max_delay=4.0, jitter=0.1, rng=random.Random(7))

    for attempt in range(1, 5):
        base = min(4.0, 2 ** (attempt - 1))
        assert base <= policy.delay_for(attempt) <= base * 1.1


def test_transient_errors_are_retried_until_success():
    sleep = RecordingSleep()
    operation, calls = _flaky([ConnectionResetError(), TransientUpstreamError("timeout")])
    policy = RetryPolicy(jitter=0.0, sleep=sleep)

    result = asyncio.run(policy.run(operation, description="part 1"))

    assert result == "ok"
    assert calls["count"] == 3
    assert sleep.delays == [0.5, 1.0]


def test_permanent_errors_are_not_retried():
    sleep = RecordingSleep()
    operation, calls = _flaky([UpstreamError("denied", code="AccessDenied")])

    with pytest.raises(UpstreamError):
        asyncio.run(RetryPolicy(sleep=sleep).run(operation))

    assert calls["count"] == 1
    assert sleep.delays == []


def test_gives_up_after_max_attempts():
    operation, calls = _flaky([TimeoutError() for _ in range(10)])

    with pytest.raises(TimeoutError):
        asyncio.run(RetryPolicy(max_attempts=4, sleep=RecordingSleep()).run(operation))

    assert calls["count"] == 4


def test_is_transient_error_classification():
    assert is_transient_error(TransientUpstreamError("reset"))
    assert is_transient_error(ConnectionError())
    assert not is_transient_error(UpstreamError("denied"))
    assert not is_transient_error(ValueError())


def test_invalid_policy_is_rejected():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=5.0, max_delay=1.0)
