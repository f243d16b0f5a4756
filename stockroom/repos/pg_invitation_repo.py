"""PostgreSQL implementation of InvitationRepo."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.db.tables import InvitationRow, as_utc
from stockroom.models.organization import Invitation, InvitationStatus, Role, utcnow


class PgInvitationRepo:
    """Satisfies the InvitationRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, invitation_id: UUID) -> Invitation | None:
        stmt = select(InvitationRow).where(InvitationRow.id == invitation_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_invitation(row)

    async def get_for_update(self, invitation_id: UUID) -> Invitation | None:
        stmt = (
            select(InvitationRow)
            .where(InvitationRow.id == invitation_id)
            .with_for_update()
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_invitation(row)

    async def add(self, invitation: Invitation) -> None:
        row = InvitationRow(
            id=invitation.id,
            organization_id=invitation.organization_id,
            email=invitation.email,
            role=invitation.role.value,
            status=invitation.status.value,
            expires_at=invitation.expires_at,
            created_at=invitation.created_at,
            updated_at=invitation.updated_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def find_pending(self, organization_id: UUID, email: str) -> list[Invitation]:
        stmt = select(InvitationRow).where(
            InvitationRow.organization_id == organization_id,
            InvitationRow.email == email,
            InvitationRow.status == InvitationStatus.PENDING.value,
        ).order_by(InvitationRow.created_at.asc(), InvitationRow.id.asc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_invitation(r) for r in rows]

    async def update_role(self, invitation_id: UUID, role: Role) -> Invitation | None:
        stmt = (
            update(InvitationRow)
            .where(InvitationRow.id == invitation_id)
            .values(role=role.value, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(invitation_id)

    async def transition(
        self,
        invitation_id: UUID,
        *,
        from_status: InvitationStatus,
        to_status: InvitationStatus,
    ) -> Invitation | None:
        """Conditional status update.  Returns None if the row was not in
        ``from_status`` (a concurrent transaction won the race)."""
        stmt = (
            update(InvitationRow)
            .where(InvitationRow.id == invitation_id)
            .where(InvitationRow.status == from_status.value)
            .values(status=to_status.value, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(invitation_id)

    async def list_by_organization(self, organization_id: UUID) -> list[Invitation]:
        stmt = (
            select(InvitationRow)
            .where(InvitationRow.organization_id == organization_id)
            .order_by(InvitationRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_invitation(r) for r in rows]

    async def list_overdue(self, now: datetime) -> list[Invitation]:
        stmt = select(InvitationRow).where(
            InvitationRow.status == InvitationStatus.PENDING.value,
            InvitationRow.expires_at < now,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_invitation(r) for r in rows]

    async def delete_by_organization(self, organization_id: UUID) -> int:
        stmt = delete(InvitationRow).where(
            InvitationRow.organization_id == organization_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_invitation(row: InvitationRow) -> Invitation:
    return Invitation(
        id=row.id,
        organization_id=row.organization_id,
        email=row.email,
        role=Role(row.role),
        status=InvitationStatus(row.status),
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
