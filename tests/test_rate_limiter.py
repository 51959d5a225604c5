import pytest

from utils.cache import TTLCache
from utils.rate_limiter import RateLimiter, TokenBucket


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def test_bucket_enforces_minimum_gap(clock):
    bucket = TokenBucket(rate=5, capacity=1, clock=clock)

    assert bucket.try_acquire()
    assert not bucket.try_acquire()
    assert bucket.wait_time() == pytest.approx(0.2)

    clock.advance(0.1)
    assert bucket.wait_time() == pytest.approx(0.1)
    clock.advance(0.1)
    assert bucket.try_acquire()


def test_bucket_allows_burst_up_to_capacity(clock):
    bucket = TokenBucket(rate=1, capacity=3, clock=clock)

    assert [bucket.try_acquire() for _ in range(4)] == [True, True, True, False]

    # Refill never exceeds capacity
    clock.advance(60)
    assert [bucket.try_acquire() for _ in range(4)] == [True, True, True, False]


@pytest.mark.parametrize("rate,capacity", [(0, 1), (-1, 1), (1, 0.5)])
def test_bucket_rejects_bad_settings(rate, capacity):
    with pytest.raises(ValueError):
        TokenBucket(rate=rate, capacity=capacity)


def test_limiter_keeps_one_bucket_per_key(clock):
    limiter = RateLimiter(rate=1, capacity=1, clock=clock)

    assert limiter.bucket("/ticker").try_acquire()
    assert not limiter.bucket("/ticker").try_acquire()
    assert limiter.bucket("/trades").try_acquire()
    assert set(limiter.buckets) == {"/ticker", "/trades"}


@pytest.mark.asyncio
async def test_limiter_wait_returns_when_token_available():
    limiter = RateLimiter(rate=1000, capacity=2)
    await limiter.wait("/ticker")
    await limiter.wait("/ticker")
    await limiter.wait("/ticker")
    assert list(limiter.buckets) == ["/ticker"]


def test_cache_entries_expire(clock):
    cache = TTLCache(ttl=10, clock=clock)
    cache.set("GET:/ticker", {"price": 1})

    clock.advance(9)
    assert cache.get("GET:/ticker") == {"price": 1}

    clock.advance(1)
    assert cache.get("GET:/ticker") is None
    assert len(cache) == 0


def test_cache_invalidate_and_clear(clock):
    cache = TTLCache(ttl=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)

    cache.invalidate("a")
    cache.invalidate("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert len(cache) == 0


def test_cache_set_drops_expired_entries(clock):
    cache = TTLCache(ttl=10, clock=clock)
    for n in range(5):
        cache.set(f"GET:/ticker:{n}", n)

    clock.advance(10)
    cache.set("GET:/ticker:fresh", "fresh")

    assert len(cache) == 1
    assert cache.get("GET:/ticker:fresh") == "fresh"
