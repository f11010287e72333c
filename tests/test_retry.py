"""Tests for bounded retries."""

from __future__ import annotations

import asyncio

import pytest

from talentrank.retry import RetriesExhausted, call_with_retries


def test_returns_first_successful_attempt() -> None:
    attempts = []

    async def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("try again")
        return "ok"

    result = asyncio.run(call_with_retries(flaky, operation="flaky", attempts=3, backoff=0))

    assert result == "ok"
    assert len(attempts) == 3


def test_raises_after_last_attempt() -> None:
    async def broken() -> None:
        raise ValueError("boom")

    with pytest.raises(RetriesExhausted) as excinfo:
        asyncio.run(call_with_retries(broken, operation="broken", attempts=2, backoff=0))

    assert excinfo.value.attempts == 2
    assert isinstance(excinfo.value.last_error, ValueError)


def test_each_attempt_is_bounded_by_timeout() -> None:
    async def slow() -> None:
        await asyncio.sleep(5)

    with pytest.raises(RetriesExhausted) as excinfo:
        asyncio.run(call_with_retries(slow, operation="slow", attempts=2, timeout=0.01, backoff=0))

    assert isinstance(excinfo.value.last_error, asyncio.TimeoutError)
