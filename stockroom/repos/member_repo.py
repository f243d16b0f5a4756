"""Membership store: (organization, user) -> role.

The single source of truth for tenant membership.  Every read and write
is keyed by the (organization_id, user_id) pair.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from stockroom.models.organization import Member, Role, utcnow


class MemberRepo(Protocol):
    async def get(self, organization_id: UUID, user_id: UUID) -> Member | None: ...
    async def count(self, organization_id: UUID, role: Role | None = None) -> int: ...
    async def lock_owners(self, organization_id: UUID) -> list[Member]: ...
    async def add(self, member: Member) -> None: ...
    async def update_role(
        self, organization_id: UUID, user_id: UUID, role: Role
    ) -> Member | None: ...
    async def remove(self, organization_id: UUID, user_id: UUID) -> bool: ...
    async def list_by_organization(self, organization_id: UUID) -> list[Member]: ...
    async def list_by_user(self, user_id: UUID) -> list[Member]: ...
    async def delete_by_organization(self, organization_id: UUID) -> int: ...


class InMemoryMemberRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Member] = {}

    async def get(self, organization_id: UUID, user_id: UUID) -> Member | None:
        return self._store.get((organization_id, user_id))

    async def count(self, organization_id: UUID, role: Role | None = None) -> int:
        return sum(
            1
            for m in self._store.values()
            if m.organization_id == organization_id and (role is None or m.role == role)
        )

    async def lock_owners(self, organization_id: UUID) -> list[Member]:
        # The store-wide transaction lock already serializes writers.
        return [
            m
            for m in self._store.values()
            if m.organization_id == organization_id and m.role == Role.OWNER
        ]

    async def add(self, member: Member) -> None:
        key = (member.organization_id, member.user_id)
        if key in self._store:
            raise ValueError("membership already exists")
        self._store[key] = member

    async def update_role(
        self, organization_id: UUID, user_id: UUID, role: Role
    ) -> Member | None:
        key = (organization_id, user_id)
        existing = self._store.get(key)
        if existing is None:
            return None
        updated = replace(existing, role=role, updated_at=utcnow())
        self._store[key] = updated
        return updated

    async def remove(self, organization_id: UUID, user_id: UUID) -> bool:
        return self._store.pop((organization_id, user_id), None) is not None

    async def list_by_organization(self, organization_id: UUID) -> list[Member]:
        members = [m for m in self._store.values() if m.organization_id == organization_id]
        return sorted(members, key=lambda m: (m.created_at, str(m.user_id)))

    async def list_by_user(self, user_id: UUID) -> list[Member]:
        members = [m for m in self._store.values() if m.user_id == user_id]
        return sorted(members, key=lambda m: (m.created_at, str(m.organization_id)))

    async def delete_by_organization(self, organization_id: UUID) -> int:
        keys = [k for k in self._store if k[0] == organization_id]
        for key in keys:
            del self._store[key]
        return len(keys)

    def snapshot(self) -> dict:
        return dict(self._store)

    def restore(self, state: dict) -> None:
        self._store = state
