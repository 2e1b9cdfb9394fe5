"""
Redis cache for the queue overview screens.

Only the per-destination summaries and the bookable-destination list are
cached; both are read by every counter terminal on each refresh. Anything
that allocates seats reads the database under row locks and never goes
through here.

Keys all start with ``queue:`` and every write route drops the whole prefix
after its transaction commits. The TTL bounds staleness if an invalidation
is lost. Redis being down only means cache misses; after a failed connect
the next attempt waits REDIS_RETRY_SECONDS so reads do not each pay the
connect timeout.
"""

import json
import time
from typing import Any, Optional

import redis.asyncio as redis

from station_queue.core.config import get_settings
from station_queue.core.logging import get_logger
from station_queue.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

SUMMARIES_KEY = "queue:summaries"

_redis_client: Optional[redis.Redis] = None
# time.monotonic() before which no new connection is attempted
_retry_after: float = 0.0


async def get_redis() -> Optional[redis.Redis]:
    """Return the shared client, or None when Redis is disabled or unreachable."""
    global _redis_client, _retry_after

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        if time.monotonic() < _retry_after:
            return None
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except redis.RedisError as e:
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e), retry_in=settings.REDIS_RETRY_SECONDS)
            await client.aclose()
            _retry_after = time.monotonic() + settings.REDIS_RETRY_SECONDS
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def destinations_key(governorate: Optional[str], delegation: Optional[str]) -> str:
    return f"queue:destinations:gov={governorate or ''}&del={delegation or ''}"


async def get_cached(key: str) -> Optional[Any]:
    client = await get_redis()
    if client is None:
        return None

    try:
        data = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=data is not None)
    if data is None:
        logger.debug("cache_miss", key=key)
        return None
    logger.debug("cache_hit", key=key)
    return json.loads(data)


async def set_cached(key: str, value: Any) -> None:
    client = await get_redis()
    if client is None:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(value, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def get_cached_summaries() -> Optional[list[dict]]:
    return await get_cached(SUMMARIES_KEY)


async def set_cached_summaries(summaries: list[dict]) -> None:
    await set_cached(SUMMARIES_KEY, summaries)


async def invalidate_queue_cache() -> None:
    """Drop every ``queue:*`` key."""
    client = await get_redis()
    if client is None:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match="queue:*", count=100):
            await client.delete(key)
            deleted += 1
        logger.debug("cache_invalidated", keys_deleted=deleted)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    client = await get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
