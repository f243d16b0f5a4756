"""Organization and membership endpoints.

Two surfaces:

- ``/v1/organizations``: the caller's organizations, addressed by id.
  Only needs an identity; membership is checked by the service.
- ``/v1/organization``: the organization selected by the
  X-Organization-Id header, behind require_organization and the role
  gate.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from stockroom.api.dependencies import (
    require_admin,
    require_organization,
    require_owner,
    require_user,
)
from stockroom.models.organization import (
    UNSET,
    Member,
    Organization,
    OrganizationSummary,
    Role,
    Subscription,
)
from stockroom.models.principal import Identity, OrganizationContext
from stockroom.repos.store import Store, get_store
from stockroom.services import organization_service, role_gate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/organizations", tags=["organizations"])
current_router = APIRouter(prefix="/v1/organization", tags=["organizations"])


# --- Pydantic schemas ---


class OrgCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=2, max_length=50, pattern=r"^[a-z0-9-]+$")


class OrgUpdateIn(BaseModel):
    # Slug is immutable after creation
    name: str | None = Field(default=None, min_length=1, max_length=100)
    logo: str | None = None


class OrgOut(BaseModel):
    id: str
    name: str
    slug: str
    logo: str | None
    created_at: datetime
    updated_at: datetime


class OrgSummaryOut(OrgOut):
    role: Role
    member_count: int


class SubscriptionOut(BaseModel):
    plan: str
    status: str
    trial_ends_at: datetime | None


class MemberOut(BaseModel):
    user_id: str
    role: Role
    created_at: datetime


class OrgDetailOut(OrgOut):
    role: Role
    subscription: SubscriptionOut | None
    members: list[MemberOut]


class CurrentOrgOut(BaseModel):
    id: str
    name: str
    slug: str
    role: Role


class UpdateRoleIn(BaseModel):
    role: Role


def org_out(org: Organization) -> OrgOut:
    return OrgOut(
        id=str(org.id),
        name=org.name,
        slug=org.slug,
        logo=org.logo,
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


def _summary_out(summary: OrganizationSummary) -> OrgSummaryOut:
    org = summary.organization
    return OrgSummaryOut(
        **org_out(org).model_dump(),
        role=summary.role,
        member_count=summary.member_count,
    )


def _subscription_out(sub: Subscription | None) -> SubscriptionOut | None:
    if sub is None:
        return None
    return SubscriptionOut(
        plan=sub.plan.value, status=sub.status.value, trial_ends_at=sub.trial_ends_at
    )


def _member_out(member: Member) -> MemberOut:
    return MemberOut(
        user_id=str(member.user_id), role=member.role, created_at=member.created_at
    )


# --- /v1/organizations ---


@router.post("", response_model=OrgOut, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: OrgCreateIn,
    identity: Annotated[Identity, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> OrgOut:
    """Create an organization.  The caller becomes its OWNER."""
    org = await organization_service.create_organization(
        store, identity.user_id, body.name.strip(), body.slug
    )
    return org_out(org)


@router.get("", response_model=list[OrgSummaryOut])
async def list_my_organizations(
    identity: Annotated[Identity, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> list[OrgSummaryOut]:
    summaries = await organization_service.get_user_organizations(
        store, identity.user_id
    )
    return [_summary_out(s) for s in summaries]


@router.get("/{org_id}", response_model=OrgDetailOut)
async def get_organization(
    org_id: UUID,
    identity: Annotated[Identity, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> OrgDetailOut:
    """Detail view.  404 for both foreign and nonexistent ids."""
    detail = await organization_service.get_organization(
        store, org_id, identity.user_id
    )
    return OrgDetailOut(
        **org_out(detail.organization).model_dump(),
        role=detail.role,
        subscription=_subscription_out(detail.subscription),
        members=[_member_out(m) for m in detail.members],
    )


# --- /v1/organization (header-selected) ---


@current_router.get("", response_model=CurrentOrgOut)
async def get_current_organization(
    context: Annotated[OrganizationContext, Depends(require_organization)],
) -> CurrentOrgOut:
    return CurrentOrgOut(
        id=str(context.organization_id),
        name=context.name,
        slug=context.slug,
        role=context.role,
    )


@current_router.patch("", response_model=OrgOut)
async def update_current_organization(
    body: OrgUpdateIn,
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> OrgOut:
    # An explicit "logo": null clears it; an omitted logo is left alone
    logo = body.logo if "logo" in body.model_fields_set else UNSET
    org = await organization_service.update_organization(
        store, context.organization_id, name=body.name, logo=logo
    )
    return org_out(org)


@current_router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_current_organization(
    context: Annotated[OrganizationContext, Depends(require_owner)],
    store: Annotated[Store, Depends(get_store)],
) -> None:
    await organization_service.delete_organization(store, context.organization_id)
    logger.info(
        "Organization deleted by user=%s org=%s",
        context.user_id,
        context.organization_id,
    )


@current_router.get("/members", response_model=list[MemberOut])
async def list_members(
    context: Annotated[OrganizationContext, Depends(require_organization)],
    store: Annotated[Store, Depends(get_store)],
) -> list[MemberOut]:
    """Any member may list the members of their organization."""
    members = await organization_service.list_members(store, context.organization_id)
    return [_member_out(m) for m in members]


@current_router.patch("/members/{user_id}", response_model=MemberOut)
async def update_member_role(
    user_id: UUID,
    body: UpdateRoleIn,
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> MemberOut:
    """Change a member's role.  Touching OWNER (granting it, or changing
    an existing owner) takes an OWNER."""
    target = await organization_service.get_member(
        store, context.organization_id, user_id
    )
    if Role.OWNER in (target.role, body.role):
        role_gate.enforce(context, role_gate.REQUIRE_OWNER)
    member = await organization_service.update_member_role(
        store, context.organization_id, user_id, body.role
    )
    return _member_out(member)


@current_router.delete("/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    user_id: UUID,
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> None:
    target = await organization_service.get_member(
        store, context.organization_id, user_id
    )
    if target.role == Role.OWNER:
        role_gate.enforce(context, role_gate.REQUIRE_OWNER)
    await organization_service.remove_member(store, context.organization_id, user_id)
