"""Bounded retries with a per-attempt timeout for calls to collaborators."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from .logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RetriesExhausted(Exception):
    """Every attempt of a retried call failed or timed out."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException]):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{operation} failed after {attempts} attempt(s): {last_error!r}")


async def call_with_retries(
    func: Callable[[], Awaitable[T]],
    *,
    operation: str,
    attempts: int = 3,
    timeout: float = 10.0,
    backoff: float = 0.5,
) -> T:
    """Await ``func()`` up to ``attempts`` times.

    Each attempt is bounded by ``timeout`` seconds. Between attempts the
    delay starts at ``backoff`` and doubles.

    Raises:
        RetriesExhausted: when no attempt succeeded. The last exception is
            attached as ``last_error`` and as ``__cause__``.
    """
    last_error: Optional[BaseException] = None
    delay = backoff
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(func(), timeout=timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            if attempt < attempts:
                logger.warning(f"{operation}: attempt {attempt}/{attempts} failed ({e!r}); retrying in {delay:.2f}s")
                if delay > 0:
                    await asyncio.sleep(delay)
                delay *= 2
            else:
                logger.error(f"{operation}: all {attempts} attempt(s) failed. Last error: {e!r}")
    raise RetriesExhausted(operation, attempts, last_error) from last_error


__all__ = ["RetriesExhausted", "call_with_retries"]
