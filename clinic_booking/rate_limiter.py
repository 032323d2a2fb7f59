"""
Per-client rate limiting for the public booking endpoints.

Each key counts requests in a fixed window. Windows are kept in process memory
and mirrored to Redis at most every MEMORY_CACHE_SYNC_INTERVAL seconds, so a new
worker resumes a window another worker started without a Redis round trip per
request. If Redis cannot be reached the limiter refuses traffic (fail closed).
"""

import logging
import os
import time
from dataclasses import dataclass
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

MEMORY_CACHE_SYNC_INTERVAL = 10
MEMORY_CACHE_CLEANUP_INTERVAL = 60

redis_client: Optional[redis.Redis] = None


@dataclass
class Window:
    count: int
    resets_at: int
    synced_at: int = 0

    def remaining_seconds(self, now: int) -> int:
        return max(0, self.resets_at - now)


memory_cache: dict[str, Window] = {}
cache_lock = Lock()
last_cleanup_time = 0


def _mask_redis_url(redis_url: str) -> str:
    if "@" not in redis_url:
        return "****"
    credentials, host = redis_url.split("@", 1)
    return f"{credentials.split(':')[0]}:****@{host}"


def _connect() -> redis.Redis:
    options = {
        "decode_responses": True,
        "socket_connect_timeout": 15,
        "socket_timeout": 30,
        "retry_on_timeout": True,
        "health_check_interval": 30,
    }

    redis_url = os.getenv("REDIS_URL")
    if redis_url:
        logger.info(f"📡 Connecting to Redis via URL {_mask_redis_url(redis_url)}")
        return redis.from_url(redis_url, **options)

    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", "6379"))
    use_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"
    logger.info(f"📡 Connecting to Redis at {host}:{port} (ssl={use_ssl})")
    return redis.Redis(
        host=host,
        port=port,
        password=os.getenv("REDIS_PASSWORD"),
        db=int(os.getenv("REDIS_DB", "0")),
        ssl=use_ssl,
        **options,
    )


def get_redis_client() -> redis.Redis:
    """
    Shared Redis client, created and pinged on first use.

    Raises:
        redis.RedisError: Redis is unreachable
    """
    global redis_client

    if redis_client is None:
        client = _connect()
        try:
            client.ping()
        except Exception as e:
            logger.error(f"❌ Redis ping failed: {str(e)}")
            raise
        logger.info("✅ Redis ready for rate limiting")
        redis_client = client

    return redis_client


def cleanup_expired_cache():
    """Drop finished windows, at most once per cleanup interval"""
    global last_cleanup_time
    now = int(time.time())
    if now - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        finished = [key for key, window in memory_cache.items() if now >= window.resets_at]
        for key in finished:
            del memory_cache[key]

    if finished:
        logger.debug(f"🧹 Dropped {len(finished)} finished rate limit windows")
    last_cleanup_time = now


def _load_window(key: str, window_seconds: int, client: redis.Redis, now: int) -> Window:
    """Start a window, resuming the Redis copy when another worker owns one"""
    window = Window(count=0, resets_at=now + window_seconds, synced_at=now)
    try:
        stored = client.get(key)
        ttl = client.ttl(key)
        if stored and ttl > 0:
            window.count = int(stored)
            window.resets_at = now + ttl
    except Exception as e:
        logger.warning(f"⚠️ Could not read {key} from Redis, counting locally: {e}")
    return window


def _sync_window(key: str, window: Window, client: redis.Redis, now: int) -> None:
    if now - window.synced_at < MEMORY_CACHE_SYNC_INTERVAL:
        return
    try:
        client.set(key, window.count, ex=max(1, window.remaining_seconds(now)))
        window.synced_at = now
    except Exception as e:
        logger.warning(f"⚠️ Could not sync {key} to Redis: {e}")


def check_rate_limit(
    key: str, limit: int, window_seconds: int, redis_client: redis.Redis
) -> tuple[bool, int, int]:
    """
    Count one request against key.

    Returns:
        (allowed, count in the current window, seconds until the window resets)
    """
    try:
        now = int(time.time())
        cleanup_expired_cache()

        with cache_lock:
            window = memory_cache.get(key)
            if window is None:
                window = _load_window(key, window_seconds, redis_client, now)
                memory_cache[key] = window
            elif now >= window.resets_at:
                window.count = 0
                window.resets_at = now + window_seconds
                window.synced_at = 0

            allowed = window.count < limit
            if allowed:
                window.count += 1

            _sync_window(key, window, redis_client, now)
            return allowed, window.count, window.remaining_seconds(now)

    except Exception as e:
        logger.error(f"❌ Rate limit check failed for {key}: {str(e)} - denying (fail-closed)")
        return False, limit, 0


def get_client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    use_ip: bool = True,
):
    subject = get_client_ip(request) if use_ip else "global"
    key = f"{key_prefix}:{subject}"

    try:
        client = get_redis_client()
    except Exception as e:
        logger.error(f"🔒 Rate limiter unavailable, rejecting {key}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    allowed, count, retry_after = check_rate_limit(key, limit, window_seconds, client)
    if not allowed:
        logger.warning(f"🚫 Rate limit hit for {key} ({count}/{limit})")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": f"Too many booking attempts. Please try again in {max(retry_after // 60, 1)} minutes.",
                "retry_after": retry_after,
                "limit": limit,
                "window_seconds": window_seconds,
            },
            headers={"Retry-After": str(retry_after)},
        )

    request.state.rate_limit_remaining = limit - count


def create_rate_limiter(
    limit: int, window_seconds: int, key_prefix: str = "rate_limit", use_ip: bool = True
):
    """Build a dependency enforcing limit requests per window_seconds"""

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix, use_ip)

    return rate_limiter
