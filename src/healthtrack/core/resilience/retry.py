"""Retry policy for transient store and LLM failures.

A ``RetryPolicy`` is plain data: how many attempts, the backoff curve, and
which exceptions are worth another try. The executors below apply a policy
to a synchronous callable or to a coroutine factory.

Usage::

    policy = RetryPolicy(max_attempts=3, base_delay=0.1)
    rows = execute_with_policy(lambda: repo.get_metrics(1, days=30), policy,
                               label="get_metrics")
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from healthtrack.core.errors import HealthTrackError, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# sqlite3.OperationalError messages that indicate contention, not a bad query
_TRANSIENT_SQLITE_MARKERS = ("locked", "busy", "unable to open", "disk i/o")


def is_transient(exc: BaseException) -> bool:
    """Default retry predicate: connection problems and timeouts only."""
    if isinstance(exc, HealthTrackError):
        return False
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        return any(marker in message for marker in _TRANSIENT_SQLITE_MARKERS)
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry a failing operation."""

    max_attempts: int = 3
    base_delay: float = 0.1
    multiplier: float = 2.0
    retryable: Callable[[BaseException], bool] = is_transient

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be at least 1")


def backoff_schedule(policy: RetryPolicy) -> list[float]:
    """Return the delays (seconds) slept between consecutive attempts.

    The first attempt runs immediately, so a policy with ``n`` attempts has
    ``n - 1`` delays: ``base_delay * multiplier ** k`` for ``k = 0 .. n-2``.
    """
    return [
        policy.base_delay * policy.multiplier**k for k in range(policy.max_attempts - 1)
    ]


def execute_with_policy(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` until it succeeds, a non-retryable error occurs, or attempts run out.

    Raises:
        TransientError: When every attempt failed with a retryable error.
            The last failure is chained as ``__cause__``.
    """
    delays = backoff_schedule(policy)
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if not policy.retryable(exc):
                raise
            if attempt == policy.max_attempts:
                logger.error(
                    "%s failed after %d attempt(s): %s", label, attempt, exc
                )
                raise TransientError(
                    f"{label} failed after {attempt} attempt(s)"
                ) from exc
            delay = delays[attempt - 1]
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.0fms: %s",
                label,
                attempt,
                policy.max_attempts,
                delay * 1000,
                exc,
            )
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover


async def aexecute_with_policy(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    timeout: float | None = None,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Async counterpart of :func:`execute_with_policy`.

    ``fn`` is a coroutine factory so each attempt gets a fresh awaitable.
    When ``timeout`` is given each attempt is bounded by it; a timed-out
    attempt counts as a retryable failure.
    """
    delays = backoff_schedule(policy)
    for attempt in range(1, policy.max_attempts + 1):
        try:
            if timeout is None:
                return await fn()
            try:
                return await asyncio.wait_for(fn(), timeout)
            except asyncio.TimeoutError:
                raise TimeoutError(f"{label} timeout after {timeout:g}s") from None
        except Exception as exc:
            if not policy.retryable(exc):
                raise
            if attempt == policy.max_attempts:
                logger.error(
                    "%s failed after %d attempt(s): %s", label, attempt, exc
                )
                raise TransientError(
                    f"{label} failed after {attempt} attempt(s)"
                ) from exc
            delay = delays[attempt - 1]
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.0fms: %s",
                label,
                attempt,
                policy.max_attempts,
                delay * 1000,
                exc,
            )
            await sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
