"""
Tests for retry() and with_timeout().
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from andy.errors import ProviderError
from andy.resilience import retry, with_timeout


@pytest.mark.asyncio
async def test_retry_returns_first_success():
    op = AsyncMock(side_effect=[ValueError("boom"), "ok"])
    assert await retry(op, 3) == "ok"
    assert op.await_count == 2


@pytest.mark.asyncio
async def test_retry_exhaustion_raises_last_error():
    calls = []

    async def always_fails():
        calls.append(1)
        raise ProviderError(f"failure {len(calls)}", provider="test")

    with pytest.raises(ProviderError) as exc:
        await retry(always_fails, 3)

    assert len(calls) == 3
    assert exc.value.message == "failure 3"


@pytest.mark.asyncio
async def test_retry_accepts_sync_operation():
    attempts = {"n": 0}

    def flaky():
        attempts["n"] += 1
        if attempts["n"] < 2:
            raise RuntimeError("nope")
        return 42

    assert await retry(flaky, 3) == 42


@pytest.mark.asyncio
async def test_retry_stops_on_non_retryable():
    op = AsyncMock(side_effect=ProviderError("bad key", status_code=401, retryable=False))
    with pytest.raises(ProviderError):
        await retry(op, 3, should_retry=lambda e: getattr(e, "retryable", True))
    assert op.await_count == 1


@pytest.mark.asyncio
async def test_retry_is_immediate_by_default():
    op = AsyncMock(side_effect=[RuntimeError("x"), RuntimeError("y"), "ok"])
    with patch("andy.resilience.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        await retry(op, 3)
    mock_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retry_exponential_backoff():
    op = AsyncMock(side_effect=[RuntimeError("x"), RuntimeError("y"), "ok"])
    with patch("andy.resilience.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        await retry(op, 3, backoff_base=2.0, backoff_max=3.0)
    assert [c.args[0] for c in mock_sleep.await_args_list] == [2.0, 3.0]


@pytest.mark.asyncio
async def test_retry_rejects_zero_attempts():
    with pytest.raises(ValueError):
        await retry(AsyncMock(), 0)


@pytest.mark.asyncio
async def test_with_timeout_returns_result():
    async def quick():
        return "done"

    assert await with_timeout(quick(), 1000) == "done"


@pytest.mark.asyncio
async def test_with_timeout_raises_timeout_error():
    async def slow():
        await asyncio.sleep(5)

    with pytest.raises(TimeoutError):
        await with_timeout(slow(), 20)


@pytest.mark.asyncio
async def test_with_timeout_cancels_underlying_operation():
    cancelled = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    with pytest.raises(TimeoutError):
        await with_timeout(slow(), 20)
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_retries_share_the_timeout_budget():
    """Three slow attempts cannot run past one deadline."""
    calls = []

    async def slow_attempt():
        calls.append(1)
        await asyncio.sleep(0.05)
        raise ProviderError("slow failure")

    with pytest.raises(TimeoutError):
        await with_timeout(retry(slow_attempt, 3), 80)
    assert 1 <= len(calls) < 3
