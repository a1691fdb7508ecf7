import pytest

from app.jobs.rate_limit import IntervalRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_first_call_passes_immediately():
    clock = FakeClock()
    limiter = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)

    assert await limiter.wait() == 0.0
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_back_to_back_calls_are_spaced():
    clock = FakeClock()
    limiter = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)

    await limiter.wait()
    clock.now += 0.25
    await limiter.wait()
    await limiter.wait()

    assert clock.sleeps == [pytest.approx(0.75), pytest.approx(1.0)]


@pytest.mark.asyncio
async def test_no_sleep_when_interval_already_elapsed():
    clock = FakeClock()
    limiter = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)

    await limiter.wait()
    clock.now += 5
    assert await limiter.wait() == 0.0
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_reset_forgets_last_call():
    clock = FakeClock()
    limiter = IntervalRateLimiter(1.0, clock=clock, sleep=clock.sleep)

    await limiter.wait()
    limiter.reset()
    await limiter.wait()

    assert clock.sleeps == []


def test_negative_interval_rejected():
    with pytest.raises(ValueError):
        IntervalRateLimiter(-1)
