from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from stockroom.main import app
from stockroom.models.organization import Member, Organization, Role
from stockroom.models.user import User
from stockroom.repos.store import store
from stockroom.services import auth_service, organization_service, token_service
from stockroom.services.session_revocation import session_revocation
from stockroom.services.task_queue import task_queue

# Ensure repo root is on sys.path so `import stockroom` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_PASSWORD = "correct-horse-battery"

# Hashing is deliberately slow; do it once for every seeded user
_PASSWORD_HASH = auth_service.hash_password(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Fresh in-memory tables (and lock) for every test."""
    if hasattr(store, "reset"):
        store.reset()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_session_revocation() -> None:
    if hasattr(session_revocation, "_revoked"):
        session_revocation._revoked.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Users and tokens
# ---------------------------------------------------------------------------


def create_test_user(email: str = "user@example.com", name: str = "Test User") -> User:
    """Persist a user whose password is TEST_PASSWORD."""
    user = User.new(email=email, password_hash=_PASSWORD_HASH, name=name)

    async def _add() -> None:
        async with store.transaction() as repos:
            await repos.users.add(user)

    asyncio.run(_add())
    return user


def mint_token(user: User) -> str:
    """Create a valid ES256 access token for ``user``."""
    return token_service.create_access_token(sub=str(user.id))


def auth_headers(user: User, org_id: UUID | str | None = None) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {mint_token(user)}"}
    if org_id is not None:
        headers["X-Organization-Id"] = str(org_id)
    return headers


# ---------------------------------------------------------------------------
# Org test helpers
# ---------------------------------------------------------------------------


def create_test_org(owner: User, slug: str = "test-org") -> Organization:
    """Create an org through the lifecycle service; ``owner`` becomes OWNER."""
    name = slug.replace("-", " ").title()
    return asyncio.run(
        organization_service.create_organization(store, owner.id, name, slug)
    )


def add_test_member(org_id: UUID, user: User, role: Role = Role.MEMBER) -> Member:
    member = Member.new(organization_id=org_id, user_id=user.id, role=role)

    async def _add() -> None:
        async with store.transaction() as repos:
            await repos.members.add(member)

    asyncio.run(_add())
    return member


async def owner_count(org_id: UUID) -> int:
    async with store.transaction() as repos:
        return await repos.members.count(org_id, Role.OWNER)
