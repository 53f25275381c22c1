"""Tests for the sliding-window rate limiter."""

import asyncio
import time

import pytest

from kupon.scrapers.utils.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestSlidingWindowRateLimiter:
    """Tests for admission under the sliding window."""

    async def test_admits_up_to_limit_without_waiting(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter({"shopee": (3, 60.0)}, clock=clock)

        waits = [await limiter.wait("shopee") for _ in range(3)]

        assert waits == [0.0, 0.0, 0.0]
        status = limiter.get_status("shopee")
        assert status["requests_in_window"] == 3
        assert status["remaining"] == 0

    async def test_blocks_until_oldest_leaves_window(self):
        """The (limit+1)-th call waits roughly one window."""
        window = 0.3
        limiter = SlidingWindowRateLimiter({"shopee": (2, window)})

        await limiter.wait("shopee")
        await limiter.wait("shopee")
        started = time.monotonic()
        await limiter.wait("shopee")
        elapsed = time.monotonic() - started

        assert elapsed >= window - 0.05

    async def test_window_slides_with_clock(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter({"lazada": (1, 10.0)}, clock=clock)

        await limiter.wait("lazada")
        clock.now += 10.5

        assert await limiter.wait("lazada") == 0.0

    async def test_keys_are_independent(self):
        """A saturated key does not delay another key."""
        limiter = SlidingWindowRateLimiter({"shopee": (1, 60.0), "tokopedia": (1, 60.0)})
        await limiter.wait("shopee")

        waited = await asyncio.wait_for(limiter.wait("tokopedia"), timeout=1.0)

        assert waited == 0.0

    async def test_concurrent_callers_cannot_share_last_slot(self):
        """Two callers racing for one remaining slot: one of them waits."""
        window = 0.3
        limiter = SlidingWindowRateLimiter({"grab": (2, window)})
        await limiter.wait("grab")

        waits = await asyncio.gather(limiter.wait("grab"), limiter.wait("grab"))

        assert sorted(w > 0 for w in waits) == [False, True]

    async def test_default_limit_for_unknown_key(self):
        limiter = SlidingWindowRateLimiter()
        assert limiter.get_limit("unknown") == SlidingWindowRateLimiter.DEFAULT_LIMIT

    def test_set_limit_validates(self):
        limiter = SlidingWindowRateLimiter()
        with pytest.raises(ValueError):
            limiter.set_limit("shopee", 0, 60.0)
        with pytest.raises(ValueError):
            limiter.set_limit("shopee", 5, 0)

    async def test_reset_clears_log(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter({"blibli": (1, 60.0)}, clock=clock)
        await limiter.wait("blibli")

        limiter.reset("blibli")

        assert limiter.get_status("blibli")["remaining"] == 1
