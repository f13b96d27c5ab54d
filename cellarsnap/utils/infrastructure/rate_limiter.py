"""
Sliding-window rate limiting for mutation endpoints.

`RateGovernor` keeps its buckets in process memory: a restart forgets them
and N instances admit up to N times the nominal capacity. `RedisRateGovernor`
has the same interface over a shared sorted set for multi-instance
deployments; pick it with RATE_LIMIT_BACKEND=redis.
"""

import logging
import math
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol

from fastapi import Depends, HTTPException, Request, Response
import redis.asyncio as redis
from redis.exceptions import RedisError
from starlette.status import HTTP_429_TOO_MANY_REQUESTS

from cellarsnap.core.config import settings
from cellarsnap.utils.auth.dependencies import get_optional_user_id
from cellarsnap.utils.infrastructure.redis_pool import get_redis

log = logging.getLogger(__name__)

USER_AGENT_MAX_CHARS = 120


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class RateLimitBackend(Protocol):
    async def check(
        self, route_key: str, window_seconds: float, capacity: int, subject: str
    ) -> RateLimitResult: ...


def _result(
    allowed: bool, capacity: int, count: int, oldest: float, window_seconds: float, now: float
) -> RateLimitResult:
    reset_at = oldest + window_seconds
    return RateLimitResult(
        allowed=allowed,
        limit=capacity,
        remaining=max(0, capacity - count),
        reset_at=reset_at,
        retry_after_seconds=max(1, math.ceil(reset_at - now)),
    )


@dataclass
class _Bucket:
    timestamps: deque = field(default_factory=deque)
    # Latest moment any admitted entry is still inside its own window.
    expires_at: float = 0.0

    def prune(self, now: float, window_seconds: float) -> None:
        while self.timestamps and now - self.timestamps[0] >= window_seconds:
            self.timestamps.popleft()

    def admit(self, now: float, window_seconds: float) -> None:
        self.timestamps.append(now)
        self.expires_at = max(self.expires_at, now + window_seconds)


class RateGovernor:
    """
    In-process sliding-window limiter keyed by `route_key|subject`.

    `check` never awaits, so a bucket's prune/count/admit sequence cannot
    interleave with another request on the same event loop. Buckets are
    created lazily; once the table holds `sweep_threshold` buckets, every
    check first drops buckets with nothing left inside their window.
    """

    def __init__(
        self,
        *,
        sweep_threshold: int = 500,
        clock: Callable[[], float] = time.time,
    ):
        self._buckets: dict[str, _Bucket] = {}
        self._sweep_threshold = sweep_threshold
        self._clock = clock

    def __len__(self) -> int:
        return len(self._buckets)

    def _sweep(self, now: float) -> None:
        if len(self._buckets) < self._sweep_threshold:
            return
        before = len(self._buckets)
        for key in [k for k, bucket in self._buckets.items() if bucket.expires_at <= now]:
            del self._buckets[key]
        log.debug("Rate limit sweep: %d -> %d buckets", before, len(self._buckets))

    async def check(
        self, route_key: str, window_seconds: float, capacity: int, subject: str
    ) -> RateLimitResult:
        now = self._clock()
        self._sweep(now)

        key = f"{route_key}|{subject}"
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = _Bucket()
        bucket.prune(now, window_seconds)

        if len(bucket.timestamps) >= capacity:
            oldest = bucket.timestamps[0] if bucket.timestamps else now
            return _result(False, capacity, capacity, oldest, window_seconds, now)

        bucket.admit(now, window_seconds)
        return _result(True, capacity, len(bucket.timestamps), bucket.timestamps[0], window_seconds, now)


class RedisRateGovernor:
    """
    Same contract as `RateGovernor`, backed by one Redis sorted set per key.

    Prune, record and count run in one MULTI/EXEC pipeline, so concurrent
    checks from any number of instances see each other's entries. A denied
    check removes its own entry again.
    """

    def __init__(
        self,
        *,
        key_prefix: str = "ratelimit",
        clock: Callable[[], float] = time.time,
        redis_factory: Callable[[], Awaitable[redis.Redis]] = get_redis,
    ):
        self._key_prefix = key_prefix
        self._clock = clock
        self._redis_factory = redis_factory

    async def check(
        self, route_key: str, window_seconds: float, capacity: int, subject: str
    ) -> RateLimitResult:
        r = await self._redis_factory()
        now = self._clock()
        key = f"{self._key_prefix}:{route_key}|{subject}"
        member = f"{now}:{uuid.uuid4().hex}"

        pipe = r.pipeline(transaction=True)
        pipe.zremrangebyscore(key, 0, now - window_seconds)
        pipe.zadd(key, {member: now})
        pipe.zcard(key)
        pipe.zrange(key, 0, 0, withscores=True)
        pipe.expire(key, int(window_seconds) + 1)
        _, _, count, oldest_entries, _ = await pipe.execute()
        oldest = oldest_entries[0][1] if oldest_entries else now

        if count > capacity:
            await r.zrem(key, member)
            return _result(False, capacity, capacity, oldest, window_seconds, now)

        return _result(True, capacity, count, oldest, window_seconds, now)


def build_rate_governor() -> RateLimitBackend:
    if settings.RATE_LIMIT_BACKEND == "redis":
        log.info("Rate limiting backed by Redis")
        return RedisRateGovernor()
    return RateGovernor(sweep_threshold=settings.RATE_LIMIT_SWEEP_THRESHOLD)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def rate_limit_subject(request: Request, user_id: Optional[int] = None) -> str:
    if user_id is not None:
        return f"user:{user_id}"
    user_agent = (request.headers.get("user-agent") or "unknown")[:USER_AGENT_MAX_CHARS]
    return f"ip:{client_ip(request)}|ua:{user_agent}"


def get_rate_governor(request: Request) -> RateLimitBackend:
    return request.app.state.rate_governor


def rate_limit(
    route_key: str,
    max_requests: int = 30,
    window_seconds: int = 60,
):
    """FastAPI dependency guarding one route; sets X-RateLimit-* headers."""

    async def dependency(
        request: Request,
        response: Response,
        user_id: Optional[int] = Depends(get_optional_user_id),
        governor: RateLimitBackend = Depends(get_rate_governor),
    ) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return

        subject = rate_limit_subject(request, user_id)
        try:
            result = await governor.check(route_key, window_seconds, max_requests, subject)
        except RedisError as e:
            log.error("Rate limit check failed: %s", e, exc_info=True)
            return

        if not result.allowed:
            log.warning(
                "Rate limit exceeded: route=%s subject=%s limit=%d/%ds",
                route_key, subject, max_requests, window_seconds,
            )
            raise HTTPException(
                status_code=HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "ok": False,
                    "error": f"Too many requests. Try again in {result.retry_after_seconds} seconds.",
                    "details": {
                        "retry_after": result.retry_after_seconds,
                        "limit": max_requests,
                        "window": window_seconds,
                    },
                },
                headers=result.headers(),
            )

        response.headers.update(result.headers())

    return dependency
