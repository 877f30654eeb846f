"""
Redis cache for derived analytics.

Results are stored as JSON with a TTL. Without Redis every call is a miss
and every write is dropped; analyses are then simply recomputed.

An analytics key carries the analysis name, the user, the lookback and the
high-water mark (newest completed set) of the input, so logging a new set
moves readers to a fresh key rather than serving a stale result.
"""
import hashlib
import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional
import redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError
from core.config import settings

logger = logging.getLogger(__name__)

CACHE_ERRORS = (ConnectionError, TimeoutError, RedisError)

_redis_client: Optional[redis.Redis] = None


def _connect() -> redis.Redis:
    client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
        health_check_interval=30,
    )
    client.ping()
    return client


def get_redis_client() -> Optional[redis.Redis]:
    """Shared client, connected on first use. None while Redis is unreachable."""
    global _redis_client
    if _redis_client is None:
        try:
            _redis_client = _connect()
            logger.info("Connected to Redis for analytics caching")
        except CACHE_ERRORS as e:
            logger.warning(f"Redis unavailable, analytics will not be cached: {e}")
    return _redis_client


def cache_key(prefix: str, *parts, **named) -> str:
    """
    ``prefix:part1:part2:name1:value1...``

    Named parts are sorted by name. None values are left out entirely.
    """
    segments = [prefix]
    segments.extend(str(part) for part in parts if part is not None)
    segments.extend(f"{name}:{value}" for name, value in sorted(named.items()) if value is not None)
    return ":".join(segments)


def analytics_cache_key(
    analysis: str,
    user_id: Any,
    lookback_weeks: Optional[int],
    high_water_mark: Optional[datetime],
    as_of: Optional[datetime] = None,
    inputs: Optional[str] = None,
) -> str:
    """
    Key for one analysis over one input snapshot, e.g.
    ``analytics:trends:<user>:hwm:2024-06-11T10:01:00+00:00:weeks:12``.

    An empty log has no high-water mark and is keyed ``hwm:none``.
    ``inputs`` fingerprints anything else the analysis reads (stored goals,
    the exercise library) that logging a set does not change.
    """
    return cache_key(
        f"analytics:{analysis}",
        user_id,
        as_of=as_of.isoformat() if as_of is not None else None,
        hwm=high_water_mark.isoformat() if high_water_mark is not None else "none",
        inputs=inputs,
        weeks=lookback_weeks,
    )


def input_fingerprint(items: Iterable[Any]) -> str:
    """Short stable digest of immutable records (frozen dataclasses, tuples)."""
    digest = hashlib.sha256(repr(tuple(items)).encode("utf-8"))
    return digest.hexdigest()[:16]


def get_cache(key: str) -> Optional[Any]:
    client = get_redis_client()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except CACHE_ERRORS as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return None
    return json.loads(raw) if raw else None


def set_cache(key: str, value: Any, ttl: Optional[int] = None) -> bool:
    """Store ``value`` as JSON; False when Redis is missing or the write fails."""
    client = get_redis_client()
    if client is None:
        return False
    try:
        # dates and enums serialize through str()
        client.setex(key, ttl or settings.CACHE_TTL_DEFAULT, json.dumps(value, default=str))
    except CACHE_ERRORS as e:
        logger.warning(f"Cache write failed for {key}: {e}")
        return False
    return True
