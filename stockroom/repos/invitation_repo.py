from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from stockroom.models.organization import Invitation, InvitationStatus, Role, utcnow


class InvitationRepo(Protocol):
    async def get(self, invitation_id: UUID) -> Invitation | None: ...
    async def get_for_update(self, invitation_id: UUID) -> Invitation | None: ...
    async def add(self, invitation: Invitation) -> None: ...
    async def find_pending(self, organization_id: UUID, email: str) -> list[Invitation]: ...
    async def update_role(self, invitation_id: UUID, role: Role) -> Invitation | None: ...
    async def transition(
        self,
        invitation_id: UUID,
        *,
        from_status: InvitationStatus,
        to_status: InvitationStatus,
    ) -> Invitation | None: ...
    async def list_by_organization(self, organization_id: UUID) -> list[Invitation]: ...
    async def list_overdue(self, now: datetime) -> list[Invitation]: ...
    async def delete_by_organization(self, organization_id: UUID) -> int: ...


class InMemoryInvitationRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Invitation] = {}

    async def get(self, invitation_id: UUID) -> Invitation | None:
        return self._by_id.get(invitation_id)

    async def get_for_update(self, invitation_id: UUID) -> Invitation | None:
        return self._by_id.get(invitation_id)

    async def add(self, invitation: Invitation) -> None:
        if invitation.id in self._by_id:
            raise ValueError("invitation already exists")
        self._by_id[invitation.id] = invitation

    async def find_pending(self, organization_id: UUID, email: str) -> list[Invitation]:
        pending = [
            inv
            for inv in self._by_id.values()
            if inv.organization_id == organization_id
            and inv.email == email
            and inv.status == InvitationStatus.PENDING
        ]
        return sorted(pending, key=lambda inv: (inv.created_at, str(inv.id)))

    async def update_role(self, invitation_id: UUID, role: Role) -> Invitation | None:
        existing = self._by_id.get(invitation_id)
        if existing is None:
            return None
        updated = replace(existing, role=role, updated_at=utcnow())
        self._by_id[invitation_id] = updated
        return updated

    async def transition(
        self,
        invitation_id: UUID,
        *,
        from_status: InvitationStatus,
        to_status: InvitationStatus,
    ) -> Invitation | None:
        """Compare-and-set on status.  Returns None if the current status
        is not ``from_status`` (someone else already moved it)."""
        existing = self._by_id.get(invitation_id)
        if existing is None or existing.status != from_status:
            return None
        updated = replace(existing, status=to_status, updated_at=utcnow())
        self._by_id[invitation_id] = updated
        return updated

    async def list_by_organization(self, organization_id: UUID) -> list[Invitation]:
        invitations = [
            inv for inv in self._by_id.values() if inv.organization_id == organization_id
        ]
        return sorted(invitations, key=lambda inv: inv.created_at, reverse=True)

    async def list_overdue(self, now: datetime) -> list[Invitation]:
        return [
            inv
            for inv in self._by_id.values()
            if inv.status == InvitationStatus.PENDING and inv.expires_at < now
        ]

    async def delete_by_organization(self, organization_id: UUID) -> int:
        ids = [i for i, inv in self._by_id.items() if inv.organization_id == organization_id]
        for invitation_id in ids:
            del self._by_id[invitation_id]
        return len(ids)

    def snapshot(self) -> dict:
        return dict(self._by_id)

    def restore(self, state: dict) -> None:
        self._by_id = state
