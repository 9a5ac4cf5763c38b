"""
Fixed-window rate limiting for public endpoints.

Counts live in process memory. When ``REDIS_URL`` is set, counts are loaded
from and periodically written back to Redis so several workers share one
window; any Redis failure falls back to memory only.
"""

import logging
from threading import Lock
from time import monotonic
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from slotkeeper.core import config

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# Format: {key: {'count': int, 'reset_time': float, 'last_redis_sync': float}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()
last_cleanup_time = 0.0


def get_redis_client() -> Optional[redis.Redis]:
    """Shared Redis client, or None when no ``REDIS_URL`` is configured."""
    global redis_client

    if redis_client is None and config.REDIS_URL:
        redis_client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        logger.info("Rate limiter counts are shared through Redis")
    return redis_client


def cleanup_expired_cache(current_time: float) -> None:
    """Drop entries whose window has ended, at most once per cleanup interval."""
    global last_cleanup_time

    if current_time - last_cleanup_time < config.RATE_LIMIT_CLEANUP_INTERVAL_SECONDS:
        return

    with cache_lock:
        expired_keys = [k for k, v in memory_cache.items() if current_time >= v["reset_time"]]
        for k in expired_keys:
            del memory_cache[k]

    if expired_keys:
        logger.debug("Cleaned up %d expired rate limit entries", len(expired_keys))
    last_cleanup_time = current_time


def _new_entry(key: str, window_seconds: int, current_time: float, client: Optional[redis.Redis]) -> dict:
    entry = {"count": 0, "reset_time": current_time + window_seconds, "last_redis_sync": current_time}
    if client is None:
        return entry

    try:
        stored_count = client.get(key)
        stored_ttl = client.ttl(key)
    except redis.RedisError as exc:
        logger.warning("Failed to load %s from Redis, using memory only: %s", key, exc)
        return entry

    if stored_count and stored_ttl > 0:
        entry["count"] = int(stored_count)
        entry["reset_time"] = current_time + stored_ttl
    return entry


def _sync_entry(key: str, entry: dict, current_time: float, client: redis.Redis) -> None:
    try:
        pipe = client.pipeline()
        pipe.set(key, entry["count"], ex=max(1, int(entry["reset_time"] - current_time)))
        pipe.execute()
    except redis.RedisError as exc:
        logger.warning("Failed to sync %s to Redis: %s", key, exc)
        return
    entry["last_redis_sync"] = current_time


def check_rate_limit(
    key: str,
    limit: int,
    window_seconds: int,
    client: Optional[redis.Redis] = None,
) -> tuple[bool, int, int]:
    """Count one request against ``key``; return (allowed, count, seconds until reset)."""
    current_time = monotonic()
    cleanup_expired_cache(current_time)

    with cache_lock:
        entry = memory_cache.get(key)
        if entry is None:
            entry = _new_entry(key, window_seconds, current_time, client)
            memory_cache[key] = entry
        elif current_time >= entry["reset_time"]:
            entry["count"] = 0
            entry["reset_time"] = current_time + window_seconds
            entry["last_redis_sync"] = 0.0

        is_allowed = entry["count"] < limit
        if is_allowed:
            entry["count"] += 1

        if client is not None and current_time - entry["last_redis_sync"] >= config.RATE_LIMIT_SYNC_INTERVAL_SECONDS:
            _sync_entry(key, entry, current_time, client)

        ttl = int(entry["reset_time"] - current_time)
        return is_allowed, entry["count"], max(0, ttl)


def reset_rate_limits() -> None:
    global last_cleanup_time

    with cache_lock:
        memory_cache.clear()
    last_cleanup_time = 0.0


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def booking_rate_limit(request: Request) -> None:
    """FastAPI dependency limiting public booking attempts per client IP."""
    limit = config.BOOKING_RATE_LIMIT
    window_seconds = config.BOOKING_RATE_WINDOW_SECONDS
    key = f"booking:{client_ip(request)}"

    is_allowed, current_count, retry_after = check_rate_limit(key, limit, window_seconds, get_redis_client())
    if not is_allowed:
        logger.warning("Rate limit exceeded for %s - %s/%s requests used", key, current_count, limit)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )
