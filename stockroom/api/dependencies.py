"""Request guards shared by every router.

Chain for organization-scoped routes::

    require_user -> require_organization -> require_org_role(...)

FastAPI caches each dependency once per request, so the organization
context is resolved exactly once no matter how many guards ask for it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, Header, Request
from fastapi.security import OAuth2PasswordBearer

from stockroom.core.errors import Unauthenticated
from stockroom.models.organization import Role
from stockroom.models.principal import Identity, OrganizationContext
from stockroom.repos.store import Store, get_store
from stockroom.services import role_gate, token_service
from stockroom.services.org_context import resolve_organization_context
from stockroom.services.session_revocation import session_revocation

logger = logging.getLogger(__name__)

# auto_error=False: a missing header falls through to the session cookie
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

SESSION_COOKIE = "session"


async def _resolve_identity(
    store: Store, bearer: str | None, session_cookie: str | None
) -> Identity:
    if bearer:
        raw, decode = bearer, token_service.decode_access_token
    elif session_cookie:
        raw, decode = session_cookie, token_service.decode_session_token
    else:
        raise Unauthenticated()

    try:
        claims = decode(raw)
    except jwt.ExpiredSignatureError:
        logger.info("Expired token rejected")
        raise Unauthenticated() from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise Unauthenticated() from None

    try:
        revoked = await session_revocation.is_revoked(claims["jti"])
    except Exception:
        # Fail closed: an unreachable revocation store rejects the request
        logger.exception("Session revocation check failed")
        raise Unauthenticated() from None
    if revoked:
        logger.info("Revoked token rejected  jti=%s", claims["jti"])
        raise Unauthenticated()

    try:
        user_id = UUID(claims["sub"])
    except ValueError:
        logger.warning("Token subject is not a user id")
        raise Unauthenticated() from None

    async with store.transaction() as repos:
        user = await repos.users.get_by_id(user_id)
    if user is None or not user.is_active:
        logger.warning("Token for unknown or inactive user=%s", user_id)
        raise Unauthenticated()

    return Identity(user_id=user.id, email=user.email, name=user.name)


async def require_user(
    request: Request,
    store: Annotated[Store, Depends(get_store)],
    bearer: Annotated[str | None, Depends(oauth2_scheme)],
) -> Identity:
    """Verified caller identity from the bearer token or session cookie."""
    return await _resolve_identity(store, bearer, request.cookies.get(SESSION_COOKIE))


async def optional_user(
    request: Request,
    store: Annotated[Store, Depends(get_store)],
    bearer: Annotated[str | None, Depends(oauth2_scheme)],
) -> Identity | None:
    """Same resolution as require_user, None instead of 401.

    Only for public endpoints.  Never use it in front of organization
    scoped work; require_organization depends on require_user.
    """
    try:
        return await _resolve_identity(
            store, bearer, request.cookies.get(SESSION_COOKIE)
        )
    except Unauthenticated:
        return None


async def require_organization(
    request: Request,
    identity: Annotated[Identity, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
    x_organization_id: Annotated[str | None, Header(alias="X-Organization-Id")] = None,
) -> OrganizationContext:
    """Resolve the tenant for this request from the X-Organization-Id header.

    The header is the only accepted source.  A query parameter or body
    field of the same name is ignored.
    """
    context = await resolve_organization_context(store, identity, x_organization_id)
    request.state.organization = context
    return context


def require_org_role(roles: Iterable[Role]):
    """Dependency factory: demand one of ``roles`` in the current organization.

    Usage::

        _require_admin = require_org_role(role_gate.REQUIRE_ADMIN)

        @router.patch("/v1/organization")
        async def update(context: Annotated[OrganizationContext, Depends(_require_admin)]):
            ...

    An empty role set is a programming error and fails at import time.
    """
    allowed = frozenset(roles)
    if not allowed:
        raise ValueError("require_org_role needs at least one allowed role")

    async def _guard(
        context: Annotated[OrganizationContext, Depends(require_organization)],
    ) -> OrganizationContext:
        return role_gate.enforce(context, allowed)

    return _guard


require_admin = require_org_role(role_gate.REQUIRE_ADMIN)
require_owner = require_org_role(role_gate.REQUIRE_OWNER)
