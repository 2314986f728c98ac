"""Tests for the minimum-interval rate limiter."""

import asyncio

import pytest

from azure_deploy_mcp.resilience import ExecutorStatistics, MinIntervalRateLimiter


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


def make_limiter(clock: FakeClock, interval_ms: int = 100) -> MinIntervalRateLimiter:
    return MinIntervalRateLimiter(
        interval_ms,
        clock=clock,
        wall_clock=lambda: clock.now + 1_700_000_000,
        sleep=clock.sleep,
    )


class TestMinIntervalRateLimiter:
    """Tests for MinIntervalRateLimiter."""

    def test_negative_interval_rejected(self) -> None:
        with pytest.raises(ValueError):
            MinIntervalRateLimiter(-1)

    def test_initial_state(self) -> None:
        limiter = MinIntervalRateLimiter()
        assert limiter.min_interval_ms == 100
        assert limiter.is_limited
        assert limiter.get_wait_time() == 0.0
        assert limiter.snapshot() == ExecutorStatistics(0, 0.0)

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self) -> None:
        clock = FakeClock()
        limiter = make_limiter(clock)

        assert await limiter.acquire() == 0.0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_back_to_back_calls_spaced(self) -> None:
        """The second call waits out the remainder of the interval."""
        clock = FakeClock()
        limiter = make_limiter(clock)

        await limiter.acquire()
        clock.now += 0.03
        waited = await limiter.acquire()

        assert waited == pytest.approx(0.07)
        assert clock.sleeps == [pytest.approx(0.07)]

    @pytest.mark.asyncio
    async def test_no_wait_after_interval(self) -> None:
        clock = FakeClock()
        limiter = make_limiter(clock)

        await limiter.acquire()
        clock.now += 0.5
        assert await limiter.acquire() == 0.0

    @pytest.mark.asyncio
    async def test_zero_interval_never_waits(self) -> None:
        clock = FakeClock()
        limiter = make_limiter(clock, interval_ms=0)

        for _ in range(5):
            await limiter.acquire()

        assert not limiter.is_limited
        assert clock.sleeps == []
        assert limiter.snapshot().request_count == 5

    @pytest.mark.asyncio
    async def test_statistics(self) -> None:
        """Each admission counts once and stamps the wall clock."""
        clock = FakeClock()
        limiter = make_limiter(clock)

        await limiter.acquire()
        await limiter.acquire()
        stats = limiter.snapshot()

        assert stats.request_count == 2
        assert stats.last_request_time == clock.now + 1_700_000_000
        assert stats.to_dict() == {
            "request_count": 2,
            "last_request_time": stats.last_request_time,
        }

    @pytest.mark.asyncio
    async def test_concurrent_callers_queue(self) -> None:
        """Concurrent admissions are spaced a full interval apart."""
        clock = FakeClock()
        limiter = make_limiter(clock)
        admitted: list[float] = []

        async def call() -> None:
            await limiter.acquire()
            admitted.append(clock.now)

        await asyncio.gather(*(call() for _ in range(4)))

        gaps = [b - a for a, b in zip(admitted, admitted[1:])]
        assert len(admitted) == 4
        assert all(gap >= 0.1 - 1e-9 for gap in gaps)
        assert limiter.snapshot().request_count == 4

    def test_reused_across_event_loops(self) -> None:
        """A limiter keeps queueing callers when driven by a second loop."""
        clock = FakeClock()
        limiter = make_limiter(clock)

        async def burst() -> None:
            await asyncio.gather(*(limiter.acquire() for _ in range(3)))

        asyncio.run(burst())
        asyncio.run(burst())

        assert limiter.snapshot().request_count == 6
        assert len(clock.sleeps) == 5
