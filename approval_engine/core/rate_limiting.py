"""
Rate Limiting

Redis-backed fixed window limiter for unauthenticated endpoints such as the
WhatsApp webhook. Counters live in Redis so every worker shares one window.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import redis.asyncio as redis
from fastapi import Request

from approval_engine.config.settings import settings
from approval_engine.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitResult:
    """Rate limit check result"""
    allowed: bool
    limit: int
    remaining: int
    reset_time: datetime
    retry_after: int
    total_hits: int
    key: str


class FixedWindowLimiter:
    """
    Fixed window rate limiting on Redis ``INCR``/``EXPIRE``.

    Args:
        redis_client: Async Redis client holding the window counters
        limit: Requests allowed per window
        period: Window length in seconds
        clock: Time source, seconds since the epoch
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        limit: int,
        period: int,
        clock: Callable[[], float] = time.time,
    ):
        self.redis = redis_client
        self.limit = limit
        self.period = period
        self.clock = clock

    async def check_limit(self, key: str) -> RateLimitResult:
        """Count a hit for ``key`` and report whether it is allowed."""
        now = self.clock()
        window = int(now // self.period)
        window_key = f"rate_limit:fixed:{key}:{window}"
        next_window_start = (window + 1) * self.period

        try:
            current_count = await self.redis.incr(window_key)
            if current_count == 1:
                # First hit in the window owns the expiry
                await self.redis.expire(window_key, self.period)
        except redis.RedisError as e:
            logger.error(
                "Fixed window rate limit check failed",
                extra={"rate_limit_key": key, "error_message": str(e)},
            )
            # Fail open
            return RateLimitResult(
                allowed=True,
                limit=self.limit,
                remaining=self.limit,
                reset_time=datetime.fromtimestamp(now + self.period),
                retry_after=0,
                total_hits=0,
                key=key,
            )

        if current_count <= self.limit:
            return RateLimitResult(
                allowed=True,
                limit=self.limit,
                remaining=self.limit - current_count,
                reset_time=datetime.fromtimestamp(next_window_start),
                retry_after=0,
                total_hits=current_count,
                key=key,
            )

        logger.warning("Rate limit exceeded", extra={"rate_limit_key": key, "total_hits": current_count})
        return RateLimitResult(
            allowed=False,
            limit=self.limit,
            remaining=0,
            reset_time=datetime.fromtimestamp(next_window_start),
            retry_after=max(int(next_window_start - now), 1),
            total_hits=current_count,
            key=key,
        )


def create_redis_client(url: Optional[str] = None) -> redis.Redis:
    """Client for ``REDIS_URL``; connections are opened lazily on first use."""
    return redis.Redis.from_url(url or settings.REDIS_URL, decode_responses=True)


def get_client_ip(request: Request) -> str:
    """Client address, honouring the first ``X-Forwarded-For`` hop."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip: Optional[str] = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


__all__ = ["RateLimitResult", "FixedWindowLimiter", "create_redis_client", "get_client_ip"]
