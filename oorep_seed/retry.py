"""
Retry with exponential backoff for transient source/store failures.

Only the exception types passed in ``retry_on`` are retried; anything else
(including duplicate-key conditions) propagates on the first attempt.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from loguru import logger

T = TypeVar("T")


def retry_call(
    func: Callable[[], T],
    *,
    retry_on: tuple[type[BaseException], ...],
    attempts: int = 3,
    backoff: float = 0.5,
    label: str = "operation",
    on_exhausted: Callable[[BaseException], Exception] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``func`` until it succeeds or ``attempts`` transient failures occur.

    Args:
        func: Zero-argument callable to invoke
        retry_on: Exception types considered transient
        attempts: Total number of attempts (>= 1)
        backoff: Base wait in seconds; doubles each attempt (0.5, 1.0, 2.0, ...)
        label: Name used in log messages
        on_exhausted: Builds the exception raised after the last failure
            (default: re-raise the last transient error)
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever ``func`` returns
    """
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            if attempt == attempts - 1:
                logger.error("{} failed after {} attempts: {}", label, attempts, exc)
                if on_exhausted is not None:
                    raise on_exhausted(exc) from exc
                raise
            wait_time = backoff * (2**attempt)
            logger.warning(
                "{} failed on attempt {}/{}: {}. Retrying in {:.1f}s...",
                label,
                attempt + 1,
                attempts,
                exc,
                wait_time,
            )
            sleep(wait_time)

    raise AssertionError("unreachable")
