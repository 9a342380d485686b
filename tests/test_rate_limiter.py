import pytest

from armadai.errors import RateLimitError
from armadai.rate_limiter import RateLimiter, parse_rate


class FakeTime:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.parametrize(
    ("rate", "expected"),
    [
        ("10/min", 10),
        ("1/sec", 60),
        ("60/hour", 1),
        ("5/m", 5),
        ("2/s", 120),
        ("120/h", 2),
        ("3/minute", 3),
        (" 7 / min ", 7),
    ],
)
def test_parse_rate_normalizes_to_per_minute(rate, expected):
    assert parse_rate(rate) == expected


@pytest.mark.parametrize("rate", ["invalid", "10/day", "ten/min", "/min", "-1/min", "10"])
def test_parse_rate_unrecognized_means_no_limit(rate):
    assert parse_rate(rate) is None


@pytest.mark.asyncio
async def test_full_bucket_allows_capacity_calls_without_waiting():
    t = FakeTime()
    limiter = RateLimiter(60, clock=t.clock, sleeper=t.sleep)
    for _ in range(60):
        await limiter.acquire()
    assert t.sleeps == []
    assert limiter.tokens == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_call_past_capacity_waits_for_one_refill_interval():
    t = FakeTime()
    limiter = RateLimiter(60, clock=t.clock, sleeper=t.sleep)
    for _ in range(60):
        await limiter.acquire()

    await limiter.acquire()

    assert t.sleeps == [pytest.approx(1.0)]
    assert 0.0 <= limiter.tokens < 1.0


@pytest.mark.asyncio
async def test_wait_is_exact_deficit_over_refill_rate():
    t = FakeTime()
    limiter = RateLimiter(120, clock=t.clock, sleeper=t.sleep)
    for _ in range(120):
        await limiter.acquire()
    t.now += 0.2  # refills 0.4 token at 2 tokens/sec

    await limiter.acquire()

    assert t.sleeps == [pytest.approx(0.3)]


@pytest.mark.asyncio
async def test_refill_never_exceeds_capacity():
    t = FakeTime()
    limiter = RateLimiter(5, clock=t.clock, sleeper=t.sleep)
    await limiter.acquire()
    t.now += 3600
    await limiter.acquire()
    assert limiter.tokens == pytest.approx(4.0)


def test_zero_rate_cannot_be_satisfied():
    with pytest.raises(RateLimitError):
        RateLimiter(0)
