"""
Async Redis client for the shared rate-limit counters.

Only used when RATE_LIMIT_BACKEND=redis. The pool is created lazily on
first use and closed from the application lifespan.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import (
    BusyLoadingError,
    ConnectionError,
    TimeoutError,
)

from cellarsnap.core.config import settings

log = logging.getLogger(__name__)

_redis_pool: Optional[redis.ConnectionPool] = None

POOL_MAX_CONNECTIONS = 20
# A limiter check sits in front of every mutation; fail fast.
SOCKET_TIMEOUT = 1.0
SOCKET_CONNECT_TIMEOUT = 1.0
HEALTH_CHECK_INTERVAL = 30
RETRY_ATTEMPTS = 2

_TRANSIENT_ERRORS = (ConnectionError, TimeoutError, BusyLoadingError)


def _create_pool() -> redis.ConnectionPool:
    if not settings.REDIS_URL:
        raise RuntimeError("REDIS_URL must be set when RATE_LIMIT_BACKEND=redis")
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=POOL_MAX_CONNECTIONS,
        socket_timeout=SOCKET_TIMEOUT,
        socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
        health_check_interval=HEALTH_CHECK_INTERVAL,
        decode_responses=True,
    )


async def get_redis() -> redis.Redis:
    """Client borrowing connections from the shared pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = _create_pool()
        log.info("Redis connection pool initialized (max_connections=%d)", POOL_MAX_CONNECTIONS)

    return redis.Redis(
        connection_pool=_redis_pool,
        retry=Retry(
            retries=RETRY_ATTEMPTS,
            backoff=ExponentialBackoff(cap=0.2, base=0.05),
            supported_errors=_TRANSIENT_ERRORS,
        ),
        retry_on_error=list(_TRANSIENT_ERRORS),
    )


async def close_redis():
    global _redis_pool
    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None
        log.info("Redis connection pool closed")
