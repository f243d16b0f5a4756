"""Logged-out session ids.

Access and session tokens carry a ``jti``.  Logout records it here until
the token's own ``exp``; after that the signature check rejects the
token anyway and the entry can go.  ``require_user`` consults this on
every request.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from stockroom.core.metrics import SESSION_REVOCATION_CHECKS
from stockroom.db.redis import redis_pool

REVOKED_KEY_PREFIX = "revoked:jti:"


def _observe(revoked: bool) -> bool:
    SESSION_REVOCATION_CHECKS.labels(result="revoked" if revoked else "valid").inc()
    return revoked


@runtime_checkable
class SessionRevocation(Protocol):
    async def revoke(self, jti: str, expires_at: float) -> None: ...
    async def is_revoked(self, jti: str) -> bool: ...


class InMemorySessionRevocation:
    def __init__(self) -> None:
        self._revoked: dict[str, float] = {}

    async def revoke(self, jti: str, expires_at: float) -> None:
        if expires_at > time.time():
            self._revoked[jti] = expires_at

    async def is_revoked(self, jti: str) -> bool:
        expires_at = self._revoked.get(jti)
        if expires_at is not None and expires_at <= time.time():
            self._revoked.pop(jti, None)
            expires_at = None
        return _observe(expires_at is not None)


class RedisSessionRevocation:
    """SETEX per jti, so Redis drops the entry when the token expires."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def revoke(self, jti: str, expires_at: float) -> None:
        remaining = int(expires_at - time.time())
        if remaining > 0:
            await self._redis.setex(REVOKED_KEY_PREFIX + jti, remaining, "1")

    async def is_revoked(self, jti: str) -> bool:
        return _observe(bool(await self._redis.exists(REVOKED_KEY_PREFIX + jti)))


session_revocation: SessionRevocation = (
    RedisSessionRevocation(redis_pool)
    if redis_pool is not None
    else InMemorySessionRevocation()
)
