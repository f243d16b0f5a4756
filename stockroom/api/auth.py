"""Account endpoints (/auth/*).

Register and login return ``{ accessToken, user }`` for API clients and
also set the HttpOnly ``session`` cookie for browsers.  Logout revokes
whichever of the two the caller presents.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from stockroom.api.dependencies import (
    SESSION_COOKIE,
    oauth2_scheme,
    optional_user,
    require_user,
)
from stockroom.core.config import SETTINGS
from stockroom.core.errors import InvalidCredentials
from stockroom.models.principal import Identity
from stockroom.models.user import User
from stockroom.repos.store import Store, get_store
from stockroom.services import auth_service, token_service
from stockroom.services.session_revocation import session_revocation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# --- Request / Response schemas -------------------------------------------


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterIn(BaseModel):
    name: str
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    email: str
    name: str


class AuthResponse(BaseModel):
    accessToken: str
    user: UserOut


class SessionOut(BaseModel):
    authenticated: bool
    user: UserOut | None = None


def _issue(user: User, response: Response) -> AuthResponse:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token_service.create_session_token(sub=str(user.id)),
        httponly=True,
        samesite="lax",
        secure=SETTINGS.is_prod,
        path="/",
        max_age=token_service.SESSION_TTL_MIN * 60,
    )
    return AuthResponse(
        accessToken=token_service.create_access_token(sub=str(user.id)),
        user=UserOut(id=str(user.id), email=user.email, name=user.name),
    )


def _unprocessable(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": message},
    )


# --- POST /auth/register --------------------------------------------------


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"description": "Invalid registration data"}},
)
async def register(
    payload: RegisterIn,
    response: Response,
    store: Annotated[Store, Depends(get_store)],
) -> AuthResponse | JSONResponse:
    email = payload.email.lower().strip()
    name = payload.name.strip()

    if not _EMAIL_RE.match(email):
        return _unprocessable("Invalid email address")
    if not name:
        return _unprocessable("Name is required")
    if len(payload.password) < 8:
        return _unprocessable("Password must be at least 8 characters")

    user = await auth_service.register_user(store, email, payload.password, name)
    return _issue(user, response)


# --- POST /auth/login -----------------------------------------------------


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginIn,
    response: Response,
    store: Annotated[Store, Depends(get_store)],
) -> AuthResponse:
    user = await auth_service.authenticate_user(store, payload.email, payload.password)
    if user is None:
        logger.warning("Login failed")
        raise InvalidCredentials()
    logger.info("Login succeeded  user_id=%s", user.id)
    return _issue(user, response)


# --- POST /auth/logout ----------------------------------------------------


async def _revoke(raw: str, decode) -> None:
    try:
        claims = decode(raw)
    except jwt.InvalidTokenError:
        # Already unusable, nothing to revoke
        return
    await session_revocation.revoke(claims["jti"], float(claims["exp"]))
    logger.info("Token revoked  jti=%s user=%s", claims["jti"], claims["sub"])


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    bearer: Annotated[str | None, Depends(oauth2_scheme)],
) -> Response:
    """Revoke the presented access token and session cookie.  Idempotent."""
    if bearer:
        await _revoke(bearer, token_service.decode_access_token)
    cookie = request.cookies.get(SESSION_COOKIE)
    if cookie:
        await _revoke(cookie, token_service.decode_session_token)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response


# --- GET /auth/me, /auth/session ------------------------------------------


@router.get("/me", response_model=UserOut)
async def me(identity: Annotated[Identity, Depends(require_user)]) -> UserOut:
    return UserOut(id=str(identity.user_id), email=identity.email, name=identity.name)


@router.get("/session", response_model=SessionOut)
async def session(
    identity: Annotated[Identity | None, Depends(optional_user)],
) -> SessionOut:
    """Public probe: is there a signed-in user?  Never 401s."""
    if identity is None:
        return SessionOut(authenticated=False)
    return SessionOut(
        authenticated=True,
        user=UserOut(id=str(identity.user_id), email=identity.email, name=identity.name),
    )
