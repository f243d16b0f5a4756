from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from stockroom.models.organization import UNSET, Organization, Unset, utcnow


class OrgRepo(Protocol):
    async def get_by_id(self, organization_id: UUID) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...
    async def update(
        self,
        organization_id: UUID,
        *,
        name: str | None = None,
        logo: str | None | Unset = UNSET,
    ) -> Organization | None: ...
    async def remove(self, organization_id: UUID) -> bool: ...


class InMemoryOrgRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Organization] = {}
        self._by_slug: dict[str, Organization] = {}

    async def get_by_id(self, organization_id: UUID) -> Organization | None:
        return self._by_id.get(organization_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return self._by_slug.get(slug)

    async def add(self, org: Organization) -> None:
        # Same guarantee as the unique index on organizations.slug
        if org.slug in self._by_slug:
            raise ValueError("slug already exists")
        self._by_id[org.id] = org
        self._by_slug[org.slug] = org

    async def update(
        self,
        organization_id: UUID,
        *,
        name: str | None = None,
        logo: str | None | Unset = UNSET,
    ) -> Organization | None:
        existing = self._by_id.get(organization_id)
        if existing is None:
            return None
        updated = replace(
            existing,
            name=name if name is not None else existing.name,
            logo=existing.logo if logo is UNSET else logo,
            updated_at=utcnow(),
        )
        self._by_id[organization_id] = updated
        self._by_slug[updated.slug] = updated
        return updated

    async def remove(self, organization_id: UUID) -> bool:
        org = self._by_id.pop(organization_id, None)
        if org is None:
            return False
        self._by_slug.pop(org.slug, None)
        return True

    def snapshot(self) -> tuple:
        return dict(self._by_id), dict(self._by_slug)

    def restore(self, state: tuple) -> None:
        self._by_id, self._by_slug = state
