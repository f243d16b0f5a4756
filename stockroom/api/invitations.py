"""Invitation endpoints.

Admins manage invitations of the header-selected organization.
Accepting needs only an identity: the invitee is not a member yet, so
there is no organization context to resolve.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator

from stockroom.api.dependencies import require_admin, require_user
from stockroom.api.organizations import OrgOut, org_out
from stockroom.models.organization import Invitation, InvitationStatus, Role
from stockroom.models.principal import Identity, OrganizationContext
from stockroom.repos.store import Store, get_store
from stockroom.services import organization_service

router = APIRouter(tags=["invitations"])

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class InviteIn(BaseModel):
    email: str
    role: Role = Role.MEMBER

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("role")
    @classmethod
    def _not_owner(cls, value: Role) -> Role:
        # Ownership is transferred through a role change, never an invite
        if value == Role.OWNER:
            raise ValueError("Invitations may grant MEMBER or ADMIN only")
        return value


class InvitationOut(BaseModel):
    id: str
    organization_id: str
    email: str
    role: Role
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime


def _invitation_out(invitation: Invitation) -> InvitationOut:
    return InvitationOut(
        id=str(invitation.id),
        organization_id=str(invitation.organization_id),
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        expires_at=invitation.expires_at,
        created_at=invitation.created_at,
    )


@router.post(
    "/v1/organization/invitations",
    response_model=InvitationOut,
    status_code=status.HTTP_201_CREATED,
)
async def invite_member(
    body: InviteIn,
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> InvitationOut:
    invitation = await organization_service.invite_member(
        store, context.organization_id, body.email, body.role
    )
    return _invitation_out(invitation)


@router.get("/v1/organization/invitations", response_model=list[InvitationOut])
async def list_invitations(
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> list[InvitationOut]:
    invitations = await organization_service.list_invitations(
        store, context.organization_id
    )
    return [_invitation_out(i) for i in invitations]


@router.delete(
    "/v1/organization/invitations/{invitation_id}",
    response_model=InvitationOut,
)
async def cancel_invitation(
    invitation_id: UUID,
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> InvitationOut:
    invitation = await organization_service.cancel_invitation(
        store, context.organization_id, invitation_id
    )
    return _invitation_out(invitation)


@router.post("/v1/invitations/{invitation_id}/accept", response_model=OrgOut)
async def accept_invitation(
    invitation_id: UUID,
    identity: Annotated[Identity, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> OrgOut:
    org = await organization_service.accept_invitation(
        store, invitation_id, identity.user_id
    )
    return org_out(org)
