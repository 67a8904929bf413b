"""
Retry and timeout wrappers for volatile upstream calls.

    result = await with_timeout(retry(call_provider, attempts=3), 30_000)

Retries run inside the timeout budget, not in addition to it. When the
deadline fires, wait_for cancels the in-flight attempt, which closes the
underlying httpx request.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


def _backoff_seconds(attempt: int, base: float, cap: float) -> float:
    """Exponential backoff for attempt N (1-based). base=0 means retry immediately."""
    if base <= 0:
        return 0.0
    return min(base ** attempt, cap)


async def retry(
    operation: Callable[[], Any],
    attempts: int = 3,
    *,
    backoff_base: float = 0.0,
    backoff_max: float = 10.0,
    should_retry: Callable[[BaseException], bool] | None = None,
) -> Any:
    """
    Call operation up to `attempts` times, returning the first success.
    If every attempt raises, the last error is re-raised unchanged.

    operation may be sync or async. should_retry lets the caller stop early
    on permanent errors (the error is re-raised immediately).
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last_error: BaseException | None = None
    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
            return result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            if should_retry is not None and not should_retry(e):
                logger.debug("Non-retryable error on attempt %d: %s", attempt, e)
                raise
            if attempt < attempts:
                delay = _backoff_seconds(attempt, backoff_base, backoff_max)
                logger.warning(
                    "Attempt %d/%d failed (%s), retrying in %.1fs",
                    attempt, attempts, e, delay,
                )
                if delay:
                    await asyncio.sleep(delay)

    logger.error("All %d attempts failed: %s", attempts, last_error)
    raise last_error


async def with_timeout(awaitable: Awaitable[Any], ms: float) -> Any:
    """Await with a deadline. Raises TimeoutError if ms elapses first."""
    try:
        return await asyncio.wait_for(awaitable, timeout=ms / 1000)
    except asyncio.TimeoutError as e:
        raise TimeoutError(f"Operation timed out after {ms:.0f}ms") from e
