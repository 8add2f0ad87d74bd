"""
Per-account fixed-window rate limiting.

Counters live in Redis (shared by every API process) when
RATE_LIMIT_REDIS_URL is configured, and in a lock-guarded process-local map
otherwise.
"""

import logging
import threading
import time
from typing import Dict, Optional, Protocol, Tuple

import redis

from motomarket.core.config import settings

logger = logging.getLogger(__name__)


class CounterBackend(Protocol):
    def hit(self, key: str, window_seconds: int, now: float) -> Tuple[int, int]:
        """Count one request; return (requests in window, seconds until reset)"""
        ...


class MemoryBackend:
    def __init__(self):
        self._lock = threading.Lock()
        # key -> (count, window reset timestamp)
        self._windows: Dict[str, Tuple[int, float]] = {}

    def hit(self, key: str, window_seconds: int, now: float) -> Tuple[int, int]:
        with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
            self._purge_expired(now)
        return count, max(1, int(reset_at - now + 0.999))

    def _purge_expired(self, now: float) -> None:
        if len(self._windows) < 10_000:
            return
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            self._windows.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


class RedisBackend:
    def __init__(self, client: "redis.Redis"):
        self.client = client

    def hit(self, key: str, window_seconds: int, now: float) -> Tuple[int, int]:
        window = int(now) // window_seconds
        counter_key = f"rl:v1:{key}:{window}"
        pipe = self.client.pipeline()
        pipe.incr(counter_key)
        pipe.expire(counter_key, window_seconds + 1)
        count, _ = pipe.execute()
        return int(count), max(1, window_seconds - int(now) % window_seconds)

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=0.75,
            socket_timeout=0.75,
            health_check_interval=30,
        )
        return cls(client)


class RateLimiter:
    def __init__(self, backend: CounterBackend, max_requests: int, window_seconds: int):
        self.backend = backend
        self.max_requests = max(1, max_requests)
        self.window_seconds = max(1, window_seconds)

    def check(self, subject: str, now: Optional[float] = None) -> Tuple[bool, int]:
        """Return (allowed, retry_after_seconds) for one request by subject"""
        now = time.time() if now is None else now
        try:
            count, retry_after = self.backend.hit(subject, self.window_seconds, now)
        except redis.RedisError:
            # Counter store unreachable: let the request through
            logger.exception("Rate limit backend unavailable")
            return True, 0
        if count > self.max_requests:
            return False, retry_after
        return True, 0


def build_rate_limiter() -> RateLimiter:
    if settings.RATE_LIMIT_REDIS_URL:
        backend = RedisBackend.from_url(settings.RATE_LIMIT_REDIS_URL)
    else:
        backend = MemoryBackend()
    return RateLimiter(backend, settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)


rate_limiter = build_rate_limiter()
