"""
Fixed-window rate limiting keyed by client address.

The in-memory store only sees the requests of one process. Deployments
running several instances share counters through RedisRateLimitStore.
"""

import logging
import threading
import time
from itertools import islice
from typing import Callable, Dict, Tuple

import redis

from confessions.config import settings
from confessions.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


class InMemoryRateLimitStore:
    """
    Per-process counters: key -> (count, window reset time).

    Keys are kept in window-start order, so once the store is over
    max_entries the expired windows and, if still needed, the oldest live
    windows are dropped from the front.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 10000):
        self._clock = clock
        self._max_entries = max_entries
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, window_seconds: int) -> int:
        """Count one request for key and return the count in its current window."""
        now = self._clock()
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                # New window moves the key to the back
                self._windows.pop(key, None)
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)

            if len(self._windows) > self._max_entries:
                self._prune(now)
        return count

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for k in expired:
            del self._windows[k]

        # Leave headroom so the next prune is max_entries // 10 new keys away
        overflow = len(self._windows) - (self._max_entries - self._max_entries // 10)
        evicted = list(islice(self._windows, max(overflow, 0)))
        for k in evicted:
            del self._windows[k]

        if evicted:
            logger.warning(f"Rate-limit store full: evicted {len(evicted)} live windows")
        logger.debug(f"Pruned {len(expired)} expired rate-limit windows")

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()


class RedisRateLimitStore:
    """Counters shared between instances through Redis INCR/EXPIRE."""

    def __init__(self, client: "redis.Redis", prefix: str = "confessions:ratelimit:"):
        self.client = client
        self.prefix = prefix

    def increment(self, key: str, window_seconds: int) -> int:
        redis_key = f"{self.prefix}{key}"
        try:
            with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.ttl(redis_key)
                count, ttl = pipe.execute()
            if ttl == -1:
                # New window, or the EXPIRE of an earlier request never landed
                self.client.expire(redis_key, window_seconds)
        except redis.RedisError as e:
            logger.error(f"Redis rate-limit store failed: {e}")
            raise UpstreamServiceError("Rate limiter unavailable") from e
        return int(count)


class RateLimiter:
    """Allow at most `limit` requests per key within each window."""

    def __init__(self, store, limit: int = 10, window_seconds: int = 60):
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds

    def is_rate_limited(self, key: str) -> bool:
        count = self.store.increment(key, self.window_seconds)
        limited = count > self.limit
        if limited:
            logger.warning(f"Rate limit exceeded: {count} requests in window (limit={self.limit})")
        return limited


def build_rate_limiter() -> RateLimiter:
    """Create the rate limiter configured by RATE_LIMIT_BACKEND."""
    if settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Using Redis rate-limit store")
        store = RedisRateLimitStore(redis.Redis.from_url(settings.REDIS_URL))
    else:
        store = InMemoryRateLimitStore()
    return RateLimiter(
        store,
        limit=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
