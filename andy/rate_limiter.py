"""
Fixed-window rate limiter.

Each caller scope gets a window {count, window_start}. The window fully
resets once reset_interval has elapsed since it started, so up to
2 x max_requests can land in a short span straddling a boundary. That burst
is accepted: the limiter protects provider quotas per minute, not per second.

check_limit() never blocks. Callers that get False decide for themselves
whether to wait_for_reset() or fail; the orchestrator fails.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable

from andy.cache import now_ms

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "__global__"


@dataclass
class RateLimiterWindow:
    count: int = 0
    window_start: float = 0.0


class RateLimiter:
    """Counts requests per scope inside non-sliding time buckets."""

    def __init__(
        self,
        max_requests: int = 50,
        per_minute: float = 1.0,
        clock: Callable[[], float] = now_ms,
    ):
        self.max_requests = max_requests
        self.reset_interval_ms = per_minute * 60_000
        self._clock = clock
        self._windows: dict[str, RateLimiterWindow] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: dict) -> "RateLimiter":
        rl = cfg.get("rate_limit", {})
        return cls(
            max_requests=int(rl.get("max_requests", 50)),
            per_minute=float(rl.get("per_minute", 1.0)),
        )

    def _window(self, scope: str, now: float) -> RateLimiterWindow:
        window = self._windows.get(scope)
        if window is None:
            window = RateLimiterWindow(count=0, window_start=now)
            self._windows[scope] = window
        elif now - window.window_start >= self.reset_interval_ms:
            window.count = 0
            window.window_start = now
        return window

    def check_limit(self, scope: str = GLOBAL_SCOPE) -> bool:
        """Count one request against scope. False (and no increment) if over budget."""
        with self._lock:
            window = self._window(scope, self._clock())
            if window.count >= self.max_requests:
                return False
            window.count += 1
            return True

    def time_until_reset(self, scope: str = GLOBAL_SCOPE) -> float:
        """Milliseconds until the scope's current window ends (0 if none open)."""
        with self._lock:
            window = self._windows.get(scope)
            if window is None:
                return 0.0
            elapsed = self._clock() - window.window_start
            return max(0.0, self.reset_interval_ms - elapsed)

    async def wait_for_reset(self, scope: str = GLOBAL_SCOPE) -> None:
        """
        Sleep until the current window ends. Does not reset or re-check;
        call check_limit() again afterwards.
        """
        delay_ms = self.time_until_reset(scope)
        if delay_ms > 0:
            logger.debug("Rate limiter: waiting %.0fms for scope %r", delay_ms, scope)
            await asyncio.sleep(delay_ms / 1000)
