"""
Rate limiting for the Travedia API
Injected limiter (Redis sliding window or in-process fixed window) plus a
FastAPI dependency keyed on client IP
"""

import asyncio
import time
import uuid
import logging
from typing import Callable, Dict, Optional, Tuple
from fastapi import Request, HTTPException
import redis.asyncio as aioredis

from .config import Settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Answers whether one more request for `key` fits in the current window."""

    def __init__(self, limit: int = 5, window: int = 60):
        self.limit = limit
        self.window = window

    async def allow(self, key: str) -> bool:
        raise NotImplementedError

    async def close(self):
        pass


class MemoryRateLimiter(RateLimiter):
    """Fixed-window counter kept in process memory. Single instance only."""

    def __init__(self, limit: int = 5, window: int = 60, clock: Callable[[], float] = time.monotonic):
        super().__init__(limit, window)
        self.clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = asyncio.Lock()

    async def allow(self, key: str) -> bool:
        async with self._lock:
            now = self.clock()
            self._evict(now)

            started, count = self._windows.get(key, (now, 0))
            if count >= self.limit:
                return False

            self._windows[key] = (started, count + 1)
            return True

    def _evict(self, now: float):
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window]
        for key in expired:
            del self._windows[key]


class RedisRateLimiter(RateLimiter):
    """Sliding-window limiter on a Redis sorted set, shared across instances."""

    def __init__(self, redis_url: str, limit: int = 5, window: int = 60):
        super().__init__(limit, window)
        self.redis_url = redis_url
        self.redis = None

    async def init_redis(self):
        """Initialize Redis connection."""
        if not self.redis:
            self.redis = aioredis.from_url(self.redis_url, decode_responses=True)

    async def allow(self, key: str) -> bool:
        await self.init_redis()

        now = time.time()
        window_start = now - self.window
        redis_key = f"rate_limit:{key}"

        # Use Redis pipeline for atomic operations
        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(redis_key, 0, window_start)
        pipe.zcard(redis_key)
        pipe.zadd(redis_key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
        pipe.expire(redis_key, self.window + 10)

        results = await pipe.execute()
        current_count = results[1]

        return current_count < self.limit

    async def close(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()


def create_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.redis_url:
        logger.info("Using Redis rate limiter")
        return RedisRateLimiter(
            settings.redis_url,
            limit=settings.rate_limit_requests,
            window=settings.rate_limit_window,
        )
    return MemoryRateLimiter(limit=settings.rate_limit_requests, window=settings.rate_limit_window)


def client_ip(request: Request) -> str:
    ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not ip:
        ip = request.headers.get("X-Real-IP", "")
    if not ip:
        ip = getattr(request.client, "host", None) or "unknown"
    return ip


def rate_limit(scope: str):
    """
    Rate limiting dependency for FastAPI routes.

    Uses the limiter on app.state.rate_limiter; routes run unthrottled when
    none is installed or the backend fails.
    """
    async def dependency(request: Request):
        limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
        if limiter is None:
            return

        ip = client_ip(request)
        try:
            allowed = await limiter.allow(f"{scope}:{ip}")
        except Exception as e:
            # Continue without rate limiting if the backend fails
            logger.error(f"Rate limiting error: {e}")
            return

        if not allowed:
            logger.warning(f"Rate limit exceeded for {ip} on {scope}")
            raise HTTPException(
                status_code=429,
                detail={
                    "error": "Rate limit exceeded",
                    "limit": limiter.limit,
                    "window": limiter.window,
                    "message": f"Too many requests. Limit: {limiter.limit} requests per {limiter.window} seconds.",
                },
            )

    return dependency
