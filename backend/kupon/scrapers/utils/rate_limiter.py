"""Sliding-window rate limiter for per-platform admission control."""

import asyncio
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


class SlidingWindowRateLimiter:
    """Per-key sliding-window limiter.

    Each key keeps an ordered log of admission timestamps. A call is
    admitted once fewer than ``limit`` timestamps remain inside the trailing
    window. Calls for the same key queue on one lock, so two callers can
    never both take the last free slot.
    """

    DEFAULT_LIMIT: Tuple[int, float] = (10, 60.0)

    def __init__(
        self,
        limits: Optional[Dict[str, Tuple[int, float]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            limits: Optional mapping key -> (max requests, window seconds)
            clock: Monotonic clock, injectable for tests
        """
        self._limits: Dict[str, Tuple[int, float]] = dict(limits or {})
        self._logs: Dict[str, Deque[float]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._clock = clock

    def set_limit(self, key: str, requests: int, window_seconds: float) -> None:
        """Set or replace the limit for a key. Existing timestamps are kept."""
        if requests < 1 or window_seconds <= 0:
            raise ValueError("requests must be >= 1 and window_seconds > 0")
        self._limits[key] = (requests, window_seconds)

    def get_limit(self, key: str) -> Tuple[int, float]:
        return self._limits.get(key, self.DEFAULT_LIMIT)

    def _prune(self, log: Deque[float], now: float, window: float) -> None:
        cutoff = now - window
        while log and log[0] <= cutoff:
            log.popleft()

    async def wait(self, key: str) -> float:
        """Block until a request for ``key`` is admitted.

        Args:
            key: Platform slug (or any other rate-limit key)

        Returns:
            Seconds spent waiting (0.0 when admitted immediately)
        """
        limit, window = self.get_limit(key)
        lock = self._locks.setdefault(key, asyncio.Lock())
        log = self._logs.setdefault(key, deque())

        waited = 0.0
        async with lock:
            now = self._clock()
            self._prune(log, now, window)
            while len(log) >= limit:
                wait_time = window - (now - log[0])
                if wait_time > 0:
                    logger.debug("rate_limit_wait", key=key, wait_seconds=round(wait_time, 3), limit=limit)
                    await asyncio.sleep(wait_time)
                    waited += wait_time
                now = self._clock()
                self._prune(log, now, window)
            log.append(now)
        return waited

    def get_status(self, key: str) -> Dict[str, float]:
        """Current usage for a key without consuming a slot."""
        limit, window = self.get_limit(key)
        log = self._logs.get(key, deque())
        now = self._clock()
        in_window = sum(1 for ts in log if ts > now - window)
        return {
            "requests_in_window": in_window,
            "limit": limit,
            "window_seconds": window,
            "remaining": max(0, limit - in_window),
        }

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._logs.clear()
        else:
            self._logs.pop(key, None)
