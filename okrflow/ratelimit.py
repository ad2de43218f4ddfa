"""
Fixed-window rate limiting.

Supports an in-memory limiter for tests/single-process runs and a
Redis-backed limiter shared across API processes.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Protocol, Tuple

import redis
from redis import exceptions as redis_exceptions


class RateLimiter(Protocol):
    def check(self, key: str, limit: int, window_seconds: int) -> Tuple[bool, int]:
        """Count a hit for ``key``; return (allowed, remaining)."""
        ...


@dataclass
class InMemoryRateLimiter:
    buckets: dict = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def _sweep(self, now: float, window_seconds: int) -> None:
        # Caller holds the lock.
        if now < self._next_sweep:
            return
        expired = [key for key, (_, expires_at) in self.buckets.items() if expires_at < now]
        for key in expired:
            del self.buckets[key]
        self._next_sweep = now + window_seconds

    def check(self, key: str, limit: int, window_seconds: int) -> Tuple[bool, int]:
        now = time.time()
        with self._lock:
            self._sweep(now, window_seconds)
            count, expires_at = self.buckets.get(key, (0, 0.0))
            if expires_at < now:
                self.buckets[key] = (1, now + window_seconds)
                return True, limit - 1
            if count >= limit:
                return False, 0
            count += 1
            self.buckets[key] = (count, expires_at)
            return True, max(0, limit - count)

    def reset(self) -> None:
        with self._lock:
            self.buckets.clear()


@dataclass
class RedisRateLimiter:
    url: str
    key_prefix: str = "okrflow:ratelimit:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def check(self, key: str, limit: int, window_seconds: int) -> Tuple[bool, int]:
        redis_key = f"{self.key_prefix}{key}"
        try:
            pipe = self.client.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, window_seconds, nx=True)
            count, _ = pipe.execute()
        except redis_exceptions.ConnectionError:
            # Reconnect and let the request through rather than locking users out.
            self.client = redis.Redis.from_url(self.url)
            return True, limit
        if count > limit:
            return False, 0
        return True, max(0, limit - count)
