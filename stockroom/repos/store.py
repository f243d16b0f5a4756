"""Transaction boundary over all repositories.

Services never hold a repo directly.  They open ``store.transaction()``
and receive a ``Repos`` bundle whose members all share one unit of
work: every write inside the block commits together or not at all.

Two implementations, chosen at import time like the other backing
services:

- ``InMemoryStore``: one asyncio.Lock serializes transactions.  On any
  exception (including cancellation) every table is restored from the
  snapshot taken at entry.
- ``PgStore``: one AsyncSession per transaction, ``session.begin()``
  commits on success and rolls back otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, fields
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockroom.db.engine import async_session_factory
from stockroom.repos.invitation_repo import InMemoryInvitationRepo, InvitationRepo
from stockroom.repos.item_repo import InMemoryItemRepo, ItemRepo
from stockroom.repos.member_repo import InMemoryMemberRepo, MemberRepo
from stockroom.repos.org_repo import InMemoryOrgRepo, OrgRepo
from stockroom.repos.pg_invitation_repo import PgInvitationRepo
from stockroom.repos.pg_item_repo import PgItemRepo
from stockroom.repos.pg_member_repo import PgMemberRepo
from stockroom.repos.pg_org_repo import PgOrgRepo
from stockroom.repos.pg_subscription_repo import PgSubscriptionRepo
from stockroom.repos.pg_user_repo import PgUserRepo
from stockroom.repos.subscription_repo import (
    InMemorySubscriptionRepo,
    SubscriptionRepo,
)
from stockroom.repos.user_repo import InMemoryUserRepo, UserRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Repos:
    organizations: OrgRepo
    members: MemberRepo
    invitations: InvitationRepo
    subscriptions: SubscriptionRepo
    users: UserRepo
    items: ItemRepo


class Store(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Repos]: ...


class InMemoryStore:
    """Process-local store for tests and local dev (no DATABASE_URL)."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Drop all data.  Tests call this between cases."""
        self._lock = asyncio.Lock()
        self._repos = Repos(
            organizations=InMemoryOrgRepo(),
            members=InMemoryMemberRepo(),
            invitations=InMemoryInvitationRepo(),
            subscriptions=InMemorySubscriptionRepo(),
            users=InMemoryUserRepo(),
            items=InMemoryItemRepo(),
        )

    def _tables(self) -> list:
        return [getattr(self._repos, f.name) for f in fields(self._repos)]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Repos]:
        async with self._lock:
            tables = self._tables()
            saved = [t.snapshot() for t in tables]
            try:
                yield self._repos
            except BaseException:
                for table, state in zip(tables, saved, strict=True):
                    table.restore(state)
                logger.debug("In-memory transaction rolled back")
                raise


class PgStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Repos]:
        async with self._session_factory() as session:
            async with session.begin():
                yield Repos(
                    organizations=PgOrgRepo(session),
                    members=PgMemberRepo(session),
                    invitations=PgInvitationRepo(session),
                    subscriptions=PgSubscriptionRepo(session),
                    users=PgUserRepo(session),
                    items=PgItemRepo(session),
                )


# ---------------------------------------------------------------------------
# Module-level singleton, conditional on DATABASE_URL
# ---------------------------------------------------------------------------

if async_session_factory is not None:
    store: Store = PgStore(async_session_factory)
else:
    store = InMemoryStore()


def get_store() -> Store:
    """FastAPI dependency; tests may override it."""
    return store
