"""PostgreSQL implementation of OrgRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.db.tables import OrganizationRow, as_utc
from stockroom.models.organization import UNSET, Organization, Unset, utcnow


class PgOrgRepo:
    """Satisfies the OrgRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, organization_id: UUID) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.id == organization_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_org(row)

    async def get_by_slug(self, slug: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_org(row)

    async def add(self, org: Organization) -> None:
        row = OrganizationRow(
            id=org.id,
            name=org.name,
            slug=org.slug,
            logo=org.logo,
            metadata_json=org.metadata,
            created_at=org.created_at,
            updated_at=org.updated_at,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError:
            # The unique index on slug is the authoritative guard
            raise ValueError("slug already exists") from None

    async def update(
        self,
        organization_id: UUID,
        *,
        name: str | None = None,
        logo: str | None | Unset = UNSET,
    ) -> Organization | None:
        values: dict[str, object] = {"updated_at": utcnow()}
        if name is not None:
            values["name"] = name
        if logo is not UNSET:
            values["logo"] = logo
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == organization_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get_by_id(organization_id)

    async def remove(self, organization_id: UUID) -> bool:
        stmt = delete(OrganizationRow).where(OrganizationRow.id == organization_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        slug=row.slug,
        logo=row.logo,
        metadata=row.metadata_json,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
