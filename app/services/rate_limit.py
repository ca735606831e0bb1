from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

import redis
from fastapi import Request

from app.core.config import settings
from app.core.errors import RateLimitError

_LOG = logging.getLogger("app.rate_limit")


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    current_value: int


class RateLimiter(Protocol):
    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        ...


class InMemoryRateLimiter:
    """Fixed-window counters for a single process."""

    def __init__(self):
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = Lock()

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        now = time.monotonic()
        with self._lock:
            count, window_end = self._windows.get(key, (0, 0.0))
            if window_end <= now:
                count, window_end = 0, now + max(int(window_seconds), 1)
            count += 1
            self._windows[key] = (count, window_end)
        retry_after = max(1, math.ceil(window_end - now))
        return RateLimitResult(allowed=count <= limit, retry_after_seconds=retry_after, current_value=count)


class RedisRateLimiter:
    """Fixed-window counters shared by every worker through Redis."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        window = max(int(window_seconds), 1)
        pipe = self.client.pipeline()
        # The first hit of a window creates the key with its expiry.
        pipe.set(key, 0, ex=window, nx=True)
        pipe.incr(key)
        pipe.ttl(key)
        _, count, ttl = pipe.execute()
        retry_after = int(ttl) if int(ttl) > 0 else window
        return RateLimitResult(allowed=int(count) <= limit, retry_after_seconds=retry_after, current_value=int(count))


_limiter: RateLimiter | None = None


def _connect_limiter() -> RateLimiter:
    client = redis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=0.4,
        socket_connect_timeout=0.4,
    )
    try:
        client.ping()
    except (redis.RedisError, OSError):
        _LOG.warning("Redis is unreachable at startup, checkout limits fall back to process memory")
        return InMemoryRateLimiter()
    return RedisRateLimiter(client)


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = _connect_limiter()
    return _limiter



def client_ip(request: Request) -> str:
    xff = str(request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return str(client.host if client else "unknown")


def _hash_key_part(value: str | None) -> str:
    raw = str(value or "").strip()
    if not raw:
        return "-"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:20]


def checkout_rate_limit_or_raise(ip: str, surface: str) -> None:
    """One bucket per client IP shared by both checkout surfaces."""
    limiter = get_rate_limiter()
    window = int(max(settings.CHECKOUT_RATE_LIMIT_WINDOW_SECONDS, 1))
    limit = int(max(settings.CHECKOUT_RATE_LIMIT, 1))
    result = limiter.hit(f"checkout:submit:ip:{_hash_key_part(ip)}", limit=limit, window_seconds=window)
    if not result.allowed:
        _LOG.warning("checkout rate limit hit surface=%s count=%s", surface, result.current_value)
        raise RateLimitError("Too many checkout attempts. Please try again later.", result.retry_after_seconds)
