import time
from typing import Hashable

from cachetools import TTLCache

from app.config import settings


class SimpleRateLimiter:
    """Sliding-window call counter per key.

    A key's entry expires ``window_seconds`` after its last recorded call, when
    every timestamp in it would be stale anyway, so idle clients drop out.
    """

    def __init__(self, limit: int, window_seconds: float, max_keys: int = 4096):
        self.limit = limit
        self.window = window_seconds
        self.bucket: TTLCache = TTLCache(maxsize=max_keys, ttl=window_seconds)

    def allow(self, key: Hashable) -> bool:
        now = time.time()
        q = [t for t in self.bucket.get(key, []) if now - t < self.window]
        if len(q) >= self.limit:
            self.bucket[key] = q
            return False
        q.append(now)
        self.bucket[key] = q
        return True

    def reset(self) -> None:
        self.bucket.clear()


# Sync fans out to many RPC calls; throttled per client host.
rate_limit_sync = SimpleRateLimiter(
    limit=settings.SYNC_RATE_LIMIT,
    window_seconds=settings.SYNC_RATE_WINDOW_SECONDS,
)
