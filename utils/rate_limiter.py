"""
Token-bucket rate limiting for upstream API calls.

The client owns one RateLimiter, which holds a bucket per endpoint. Each
bucket refills at `rate` tokens per second up to `capacity`, so a capacity of
1 reproduces a fixed minimum gap between calls while larger capacities allow
short bursts.
"""

import asyncio
import time
from typing import Callable, Dict, Optional

from config.settings import RATE_LIMIT_BURST, REQUEST_DELAY


class TokenBucket:
    def __init__(self, rate: float, capacity: float = 1.0,
                 clock: Callable[[], float] = time.monotonic):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self._clock = clock
        self._updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self._updated = now

    def try_acquire(self) -> bool:
        """Take a token without waiting. Returns False if the bucket is empty."""
        self._refill()
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False

    def wait_time(self) -> float:
        """Seconds until the next token becomes available."""
        self._refill()
        if self.tokens >= 1:
            return 0.0
        return (1 - self.tokens) / self.rate

    async def acquire(self):
        async with self._lock:
            while not self.try_acquire():
                await asyncio.sleep(self.wait_time())


class RateLimiter:
    def __init__(self, rate: Optional[float] = None, capacity: Optional[float] = None,
                 buckets: Optional[Dict[str, TokenBucket]] = None,
                 clock: Callable[[], float] = time.monotonic):
        if rate is None:
            rate = 1.0 / REQUEST_DELAY if REQUEST_DELAY > 0 else 1000.0
        self.rate = rate
        self.capacity = capacity if capacity is not None else RATE_LIMIT_BURST
        self.buckets = buckets if buckets is not None else {}
        self._clock = clock

    def bucket(self, key: str) -> TokenBucket:
        if key not in self.buckets:
            self.buckets[key] = TokenBucket(self.rate, self.capacity, clock=self._clock)
        return self.buckets[key]

    async def wait(self, key: str):
        await self.bucket(key).acquire()
