"""PostgreSQL implementation of MemberRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.db.tables import MemberRow, as_utc
from stockroom.models.organization import Member, Role, utcnow


class PgMemberRepo:
    """Satisfies the MemberRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, organization_id: UUID, user_id: UUID) -> Member | None:
        stmt = select(MemberRow).where(
            MemberRow.organization_id == organization_id,
            MemberRow.user_id == user_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_member(row)

    async def count(self, organization_id: UUID, role: Role | None = None) -> int:
        stmt = select(func.count()).select_from(MemberRow).where(
            MemberRow.organization_id == organization_id
        )
        if role is not None:
            stmt = stmt.where(MemberRow.role == role.value)
        return int((await self._session.execute(stmt)).scalar_one())

    async def lock_owners(self, organization_id: UUID) -> list[Member]:
        """SELECT ... FOR UPDATE on the org's OWNER rows.

        A second transaction demoting or removing an owner of the same
        org blocks here until the first commits, then sees the
        post-commit owner set.
        """
        stmt = (
            select(MemberRow)
            .where(
                MemberRow.organization_id == organization_id,
                MemberRow.role == Role.OWNER.value,
            )
            .with_for_update()
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_member(r) for r in rows]

    async def add(self, member: Member) -> None:
        row = MemberRow(
            organization_id=member.organization_id,
            user_id=member.user_id,
            role=member.role.value,
            created_at=member.created_at,
            updated_at=member.updated_at,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError:
            raise ValueError("membership already exists") from None

    async def update_role(
        self, organization_id: UUID, user_id: UUID, role: Role
    ) -> Member | None:
        stmt = (
            update(MemberRow)
            .where(
                MemberRow.organization_id == organization_id,
                MemberRow.user_id == user_id,
            )
            .values(role=role.value, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(organization_id, user_id)

    async def remove(self, organization_id: UUID, user_id: UUID) -> bool:
        stmt = delete(MemberRow).where(
            MemberRow.organization_id == organization_id,
            MemberRow.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_by_organization(self, organization_id: UUID) -> list[Member]:
        stmt = (
            select(MemberRow)
            .where(MemberRow.organization_id == organization_id)
            .order_by(MemberRow.created_at.asc(), MemberRow.user_id.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_member(r) for r in rows]

    async def list_by_user(self, user_id: UUID) -> list[Member]:
        stmt = (
            select(MemberRow)
            .where(MemberRow.user_id == user_id)
            .order_by(MemberRow.created_at.asc(), MemberRow.organization_id.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_member(r) for r in rows]

    async def delete_by_organization(self, organization_id: UUID) -> int:
        stmt = delete(MemberRow).where(MemberRow.organization_id == organization_id)
        result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_member(row: MemberRow) -> Member:
    return Member(
        organization_id=row.organization_id,
        user_id=row.user_id,
        role=Role(row.role),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
