# shifted_app/core/ratelimit.py
"""
Per-process fixed-window rate limiting.

Buckets live in process memory, so each worker enforces its own quota and
everything resets on restart. Deployments running N instances effectively
allow N times the configured limit; swap in another ``RateLimiter`` (e.g. a
Redis-backed one) through ``app.state.rate_limiter`` if that matters.
"""
from __future__ import annotations
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol

from fastapi import Request

from shifted_app.core.config import logger


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter(Protocol):
    def allow(self, key: str) -> RateLimitDecision: ...


@dataclass
class _Bucket:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    def __init__(self, limit: int, window_sec: float, clock: Callable[[], float] = time.monotonic):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_sec <= 0:
            raise ValueError("window_sec must be > 0")
        self.limit = limit
        self.window_sec = window_sec
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def _evict_expired(self, now: float) -> None:
        expired = [k for k, b in self._buckets.items() if now >= b.reset_at]
        for k in expired:
            del self._buckets[k]

    def allow(self, key: str) -> RateLimitDecision:
        with self._lock:
            now = self._clock()
            self._evict_expired(now)

            bucket = self._buckets.get(key)
            if bucket is None:
                self._buckets[key] = _Bucket(count=1, reset_at=now + self.window_sec)
                return RateLimitDecision(allowed=True)

            if bucket.count >= self.limit:
                retry_after = max(1, math.ceil(bucket.reset_at - now))
                logger.info(f"[rate_limit] limited key={key} retry_after={retry_after}s")
                return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)

            bucket.count += 1
            return RateLimitDecision(allowed=True)


def client_ip(request: Request) -> str:
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else "unknown"
