"""JWT creation and validation (ES256).

auth.py issues tokens here and dependencies.py validates them, so both
share one key and one claims schema.  Two token kinds exist:

- access tokens: ``Authorization: Bearer`` for API clients
- session tokens: the HttpOnly ``session`` cookie for browsers

Both carry only identity (``sub``, ``jti``).  Organization and role are
never embedded; they are resolved from the membership table on every
request.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# Dev/test: ephemeral EC key pair generated on import.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "stockroom"
AUDIENCE = "stockroom-api"
ACCESS_TOKEN_TTL_MIN = 15

# Same key, different audience: a session JWT is never accepted as an
# access token and vice versa.
SESSION_AUDIENCE = "stockroom-session"
SESSION_TTL_MIN = 60 * 24


def _encode(*, sub: str, audience: str, ttl: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": audience,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def _decode(token: str, audience: str) -> dict:
    # Algorithm is pinned to ES256 to rule out alg:none and alg switching.
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=audience,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )


def create_access_token(*, sub: str) -> str:
    return _encode(
        sub=sub, audience=AUDIENCE, ttl=timedelta(minutes=ACCESS_TOKEN_TTL_MIN)
    )


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return _decode(token, AUDIENCE)


def create_session_token(*, sub: str) -> str:
    return _encode(
        sub=sub, audience=SESSION_AUDIENCE, ttl=timedelta(minutes=SESSION_TTL_MIN)
    )


def decode_session_token(token: str) -> dict:
    """Verify a session cookie JWT.  Pins audience to SESSION_AUDIENCE."""
    return _decode(token, SESSION_AUDIENCE)
