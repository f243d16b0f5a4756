"""Redis client for the shared, short-lived state.

Revoked session ids (read on every authenticated request) and the
invitation-email queue live here; tenant data never does.  Without a
REDIS_URL ``redis_pool`` is None and both fall back to per-process
implementations.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from stockroom.core.config import SETTINGS

logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = None  # type: ignore[type-arg]

if SETTINGS.redis_url:
    redis_pool = aioredis.from_url(
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )


def _describe(client: aioredis.Redis) -> str:  # type: ignore[type-arg]
    kwargs = client.connection_pool.connection_kwargs
    return f"{kwargs.get('host', '?')}:{kwargs.get('port', '?')}/{kwargs.get('db', 0)}"


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("REDIS_URL not set; session revocation and task queue are in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        # Keep serving: require_user treats revocation lookup failures as 401
        logger.exception("Redis unreachable at startup  target=%s", _describe(redis_pool))
    else:
        logger.info("Redis connected  target=%s", _describe(redis_pool))

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
