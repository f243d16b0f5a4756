from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from stockroom.core.errors import EmailTaken
from stockroom.models.user import User
from stockroom.repos.store import Store

logger = logging.getLogger(__name__)

_ph = PasswordHasher()


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    # Argon2 encodes salt and parameters into the returned string
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


async def register_user(
    store: Store, email: str, password: str, name: str = ""
) -> User:
    """Create an account.  Raises EmailTaken on a duplicate email."""
    user = User.new(email=email, password_hash=hash_password(password), name=name)
    try:
        async with store.transaction() as repos:
            await repos.users.add(user)
    except ValueError:
        raise EmailTaken() from None
    logger.info("User registered  user_id=%s", user.id)
    return user


async def authenticate_user(store: Store, email: str, password: str) -> User | None:
    async with store.transaction() as repos:
        user = await repos.users.get_by_email(email)
    if user is None:
        return None
    if not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user
