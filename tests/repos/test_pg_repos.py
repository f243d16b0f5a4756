"""SQL repos and PgStore against a throwaway SQLite database.

SQLite stands in for PostgreSQL here: same tables, same unique
constraints, same conditional UPDATEs.  Row locks (FOR UPDATE) compile
away on SQLite, so lock behavior itself is not covered.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy import func, select

import stockroom.db.tables  # noqa: F401  (registers tables on Base.metadata)
from stockroom.core.errors import AlreadyProcessed, LastOwner, SlugTaken
from stockroom.db.engine import Base, make_engine, make_session_factory
from stockroom.db.tables import SubscriptionRow
from stockroom.models.item import Item
from stockroom.models.organization import (
    Invitation,
    Member,
    InvitationStatus,
    Organization,
    Role,
    SubscriptionStatus,
    utcnow,
)
from stockroom.models.user import User
from stockroom.repos.pg_org_repo import PgOrgRepo
from stockroom.repos.store import PgStore
from stockroom.services import organization_service


def _run(tmp_path: Path, scenario) -> None:
    async def main() -> None:
        engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'stockroom.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        factory = make_session_factory(engine)
        try:
            await scenario(PgStore(factory))
        finally:
            await engine.dispose()

    asyncio.run(main())


async def _user(store: PgStore, email: str) -> User:
    user = User.new(email=email, password_hash="x")
    async with store.transaction() as repos:
        await repos.users.add(user)
    return user


def test_users_round_trip_and_unique_email(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        user = await _user(store, "tee@example.com")
        async with store.transaction() as repos:
            assert (await repos.users.get_by_id(user.id)) == user
            assert (await repos.users.get_by_email("TEE@example.com")) == user
        with pytest.raises(ValueError, match="email"):
            await _user(store, "tee@example.com")

    _run(tmp_path, scenario)


def test_org_slug_unique_at_storage_level(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        async with store.transaction() as repos:
            await repos.organizations.add(Organization.new(name="Acme", slug="acme"))
        with pytest.raises(ValueError, match="slug"):
            async with store.transaction() as repos:
                await repos.organizations.add(Organization.new(name="Other", slug="acme"))

    _run(tmp_path, scenario)


def test_org_update_and_timestamps_are_utc(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        org = Organization.new(name="Acme", slug="acme")
        async with store.transaction() as repos:
            await repos.organizations.add(org)
        async with store.transaction() as repos:
            updated = await repos.organizations.update(org.id, name="Acme Corp")
        assert updated is not None
        assert updated.name == "Acme Corp"
        assert updated.slug == "acme"
        assert updated.created_at.tzinfo is not None
        async with store.transaction() as repos:
            missing = Organization.new(name="x", slug="x")
            assert await repos.organizations.update(missing.id, name="y") is None

    _run(tmp_path, scenario)


def test_failed_transaction_leaves_nothing_behind(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        org = Organization.new(name="Acme", slug="acme")
        with pytest.raises(RuntimeError):
            async with store.transaction() as repos:
                await repos.organizations.add(org)
                raise RuntimeError("boom")
        async with store.transaction() as repos:
            assert await repos.organizations.get_by_id(org.id) is None

    _run(tmp_path, scenario)


def test_invitation_transition_is_conditional(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        org = Organization.new(name="Acme", slug="acme")
        invitation = Invitation.new(organization_id=org.id, email="bob@x.com")
        async with store.transaction() as repos:
            await repos.organizations.add(org)
            await repos.invitations.add(invitation)

        async with store.transaction() as repos:
            first = await repos.invitations.transition(
                invitation.id,
                from_status=InvitationStatus.PENDING,
                to_status=InvitationStatus.ACCEPTED,
            )
            second = await repos.invitations.transition(
                invitation.id,
                from_status=InvitationStatus.PENDING,
                to_status=InvitationStatus.CANCELLED,
            )
        assert first is not None
        assert first.status == InvitationStatus.ACCEPTED
        assert second is None

    _run(tmp_path, scenario)


def test_overdue_listing_only_returns_pending_past_expiry(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        org = Organization.new(name="Acme", slug="acme")
        past = utcnow() - timedelta(hours=1)
        overdue = replace(
            Invitation.new(organization_id=org.id, email="a@x.com"), expires_at=past
        )
        done = replace(
            Invitation.new(organization_id=org.id, email="b@x.com"),
            expires_at=past,
            status=InvitationStatus.ACCEPTED,
        )
        live = Invitation.new(organization_id=org.id, email="c@x.com")
        async with store.transaction() as repos:
            await repos.organizations.add(org)
            for inv in (overdue, done, live):
                await repos.invitations.add(inv)
            found = await repos.invitations.list_overdue(utcnow())
        assert [inv.id for inv in found] == [overdue.id]

    _run(tmp_path, scenario)


def test_item_sku_unique_per_organization(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        a = Organization.new(name="A", slug="a")
        b = Organization.new(name="B", slug="b")
        async with store.transaction() as repos:
            await repos.organizations.add(a)
            await repos.organizations.add(b)
            await repos.items.add(Item.new(organization_id=a.id, name="Bolt", sku="X-1"))
            await repos.items.add(Item.new(organization_id=b.id, name="Bolt", sku="X-1"))
        with pytest.raises(ValueError, match="sku"):
            async with store.transaction() as repos:
                await repos.items.add(Item.new(organization_id=a.id, name="Dup", sku="X-1"))
        async with store.transaction() as repos:
            a_items = await repos.items.list_by_organization(a.id)
            b_items = await repos.items.list_by_organization(b.id)
            assert await repos.items.get(b.id, a_items[0].id) is None
        assert len(a_items) == len(b_items) == 1

    _run(tmp_path, scenario)


def test_lifecycle_through_sql_store(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        u1 = await _user(store, "u1@example.com")
        bob = await _user(store, "bob@x.com")

        org = await organization_service.create_organization(store, u1.id, "Acme", "acme")
        with pytest.raises(SlugTaken):
            await organization_service.create_organization(store, bob.id, "Acme 2", "acme")

        detail = await organization_service.get_organization(store, org.id, u1.id)
        assert detail.role == Role.OWNER
        assert detail.subscription.status == SubscriptionStatus.TRIAL

        invitation = await organization_service.invite_member(store, org.id, "Bob@x.com")
        again = await organization_service.invite_member(
            store, org.id, "bob@x.com", Role.ADMIN
        )
        assert again.id == invitation.id
        assert again.role == Role.ADMIN

        await organization_service.accept_invitation(store, invitation.id, bob.id)
        with pytest.raises(AlreadyProcessed):
            await organization_service.accept_invitation(store, invitation.id, bob.id)

        summaries = await organization_service.get_user_organizations(store, bob.id)
        assert [(s.organization.slug, s.role, s.member_count) for s in summaries] == [
            ("acme", Role.ADMIN, 2)
        ]

        with pytest.raises(LastOwner):
            await organization_service.remove_member(store, org.id, u1.id)
        with pytest.raises(LastOwner):
            await organization_service.update_member_role(store, org.id, u1.id, Role.MEMBER)

        await organization_service.delete_organization(store, org.id)
        async with store.transaction() as repos:
            assert await repos.members.list_by_organization(org.id) == []
            assert await repos.invitations.list_by_organization(org.id) == []
            assert await repos.subscriptions.get(org.id) is None

    _run(tmp_path, scenario)


def test_slug_race_past_lookup_maps_to_slug_taken(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def lookup_misses(self, slug: str) -> None:
        return None

    async def scenario(store: PgStore) -> None:
        u1 = await _user(store, "u1@example.com")
        bob = await _user(store, "bob@x.com")
        await organization_service.create_organization(store, u1.id, "Acme", "acme")

        # The second caller skips the lookup, so only the unique index stops it
        monkeypatch.setattr(PgOrgRepo, "get_by_slug", lookup_misses)
        with pytest.raises(SlugTaken):
            await organization_service.create_organization(store, bob.id, "Acme 2", "acme")

        assert await organization_service.get_user_organizations(store, bob.id) == []
        async with store._session_factory() as session:
            subscriptions = await session.scalar(
                select(func.count()).select_from(SubscriptionRow)
            )
        assert subscriptions == 1

    _run(tmp_path, scenario)


def test_org_logo_cleared_only_when_null_is_sent(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        org = Organization.new(name="Acme", slug="acme", logo="x.png")
        async with store.transaction() as repos:
            await repos.organizations.add(org)
            kept = await repos.organizations.update(org.id, name="Acme Corp")
            cleared = await repos.organizations.update(org.id, logo=None)
        assert kept is not None and kept.logo == "x.png"
        assert cleared is not None and cleared.logo is None
        assert cleared.name == "Acme Corp"

    _run(tmp_path, scenario)


def test_pending_invitations_come_back_oldest_first(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        org = Organization.new(name="Acme", slug="acme")
        older = replace(
            Invitation.new(organization_id=org.id, email="bob@x.com"),
            created_at=utcnow() - timedelta(hours=2),
        )
        newer = Invitation.new(organization_id=org.id, email="bob@x.com")
        async with store.transaction() as repos:
            await repos.organizations.add(org)
            await repos.invitations.add(newer)
            await repos.invitations.add(older)
            pending = await repos.invitations.find_pending(org.id, "bob@x.com")
        assert [inv.id for inv in pending] == [older.id, newer.id]

    _run(tmp_path, scenario)


def test_memberships_with_equal_timestamps_have_stable_order(tmp_path: Path) -> None:
    async def scenario(store: PgStore) -> None:
        user = await _user(store, "u1@example.com")
        orgs = [Organization.new(name=f"Org {n}", slug=f"org-{n}") for n in range(4)]
        joined = utcnow()
        async with store.transaction() as repos:
            for org in orgs:
                await repos.organizations.add(org)
                await repos.members.add(
                    replace(
                        Member.new(organization_id=org.id, user_id=user.id, role=Role.OWNER),
                        created_at=joined,
                    )
                )
        async with store.transaction() as repos:
            listed = await repos.members.list_by_user(user.id)
        assert [m.organization_id for m in listed] == sorted(
            (org.id for org in orgs), key=str
        )

    _run(tmp_path, scenario)
