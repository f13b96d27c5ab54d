"""Infrastructure utilities (rate limiting, Redis)."""

from .rate_limiter import (
    RateGovernor,
    RedisRateGovernor,
    RateLimitResult,
    build_rate_governor,
    rate_limit,
    rate_limit_subject,
)
from .redis_pool import get_redis, close_redis

__all__ = [
    # Rate limiting
    "RateGovernor",
    "RedisRateGovernor",
    "RateLimitResult",
    "build_rate_governor",
    "rate_limit",
    "rate_limit_subject",
    # Redis
    "get_redis",
    "close_redis",
]
