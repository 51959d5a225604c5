import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """In-memory cache for API responses with per-entry expiry."""

    def __init__(self, ttl: float = 600, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at < self.ttl:
            return value
        del self._entries[key]
        return None

    def set(self, key: str, value: Any):
        now = self._clock()
        self.purge_expired(now)
        self._entries[key] = (value, now)

    def purge_expired(self, now: Optional[float] = None):
        """Drop every entry older than the TTL."""
        now = self._clock() if now is None else now
        expired = [key for key, (_, stored_at) in self._entries.items() if now - stored_at >= self.ttl]
        for key in expired:
            del self._entries[key]

    def invalidate(self, key: str):
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
