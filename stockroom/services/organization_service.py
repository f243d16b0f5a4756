"""Organization lifecycle: creation, membership, invitations.

Every function takes the ``Store`` first and opens its own transaction,
so each call is all-or-nothing.  None of them authorize the caller;
route handlers gate with the role gate before calling in.

Invariant kept here: every organization has at least one OWNER.  The
last-owner check locks the OWNER rows before counting, so two
concurrent removals or demotions cannot both pass it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from stockroom.core.errors import (
    AlreadyMember,
    AlreadyProcessed,
    Expired,
    LastOwner,
    NotFound,
    SlugTaken,
)
from stockroom.core.metrics import INVITATION_EVENTS
from stockroom.models.organization import (
    UNSET,
    Invitation,
    InvitationStatus,
    Member,
    Organization,
    OrganizationDetail,
    OrganizationSummary,
    Role,
    Subscription,
    Unset,
    utcnow,
)
from stockroom.repos.store import Store
from stockroom.services.notifications import notify_invitation_created

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


async def create_organization(
    store: Store, user_id: UUID, name: str, slug: str
) -> Organization:
    """Create an organization with the caller as OWNER and a trial plan.

    The slug lookup is only a fast path; the unique constraint on
    ``organizations.slug`` decides races and surfaces as the same
    SlugTaken.
    """
    org = Organization.new(name=name, slug=slug)
    async with store.transaction() as repos:
        if await repos.organizations.get_by_slug(slug) is not None:
            raise SlugTaken()
        try:
            await repos.organizations.add(org)
        except ValueError:
            raise SlugTaken() from None
        await repos.members.add(
            Member.new(organization_id=org.id, user_id=user_id, role=Role.OWNER)
        )
        await repos.subscriptions.add(Subscription.trial(organization_id=org.id))

    logger.info("Organization created  org=%s slug=%s owner=%s", org.id, slug, user_id)
    return org


async def get_user_organizations(
    store: Store, user_id: UUID
) -> list[OrganizationSummary]:
    """Every organization of the user, oldest membership first."""
    summaries: list[OrganizationSummary] = []
    async with store.transaction() as repos:
        for membership in await repos.members.list_by_user(user_id):
            org = await repos.organizations.get_by_id(membership.organization_id)
            if org is None:
                continue
            summaries.append(
                OrganizationSummary(
                    organization=org,
                    role=membership.role,
                    member_count=await repos.members.count(org.id),
                )
            )
    return summaries


async def get_organization(
    store: Store, organization_id: UUID, user_id: UUID
) -> OrganizationDetail:
    """Full detail for a member.  Non-members get the same NotFound as a
    missing organization."""
    async with store.transaction() as repos:
        membership = await repos.members.get(organization_id, user_id)
        org = None
        if membership is not None:
            org = await repos.organizations.get_by_id(organization_id)
        if membership is None or org is None:
            raise NotFound("Organization not found")
        subscription = await repos.subscriptions.get(organization_id)
        members = await repos.members.list_by_organization(organization_id)
    return OrganizationDetail(
        organization=org,
        subscription=subscription,
        members=tuple(members),
        role=membership.role,
    )


async def update_organization(
    store: Store,
    organization_id: UUID,
    name: str | None = None,
    logo: str | None | Unset = UNSET,
) -> Organization:
    """Rename and/or change the logo.  ``name=None`` keeps the name;
    ``logo=None`` clears the logo, while leaving it UNSET keeps it."""
    async with store.transaction() as repos:
        org = await repos.organizations.update(organization_id, name=name, logo=logo)
    if org is None:
        raise NotFound("Organization not found")
    logger.info("Organization updated  org=%s", organization_id)
    return org


async def delete_organization(store: Store, organization_id: UUID) -> None:
    """Delete the organization and everything scoped to it."""
    async with store.transaction() as repos:
        if await repos.organizations.get_by_id(organization_id) is None:
            raise NotFound("Organization not found")
        items = await repos.items.delete_by_organization(organization_id)
        invitations = await repos.invitations.delete_by_organization(organization_id)
        members = await repos.members.delete_by_organization(organization_id)
        await repos.subscriptions.remove(organization_id)
        await repos.organizations.remove(organization_id)
    logger.info(
        "Organization deleted  org=%s members=%d invitations=%d items=%d",
        organization_id,
        members,
        invitations,
        items,
    )


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


async def list_members(store: Store, organization_id: UUID) -> list[Member]:
    async with store.transaction() as repos:
        return await repos.members.list_by_organization(organization_id)


async def get_member(store: Store, organization_id: UUID, user_id: UUID) -> Member:
    async with store.transaction() as repos:
        member = await repos.members.get(organization_id, user_id)
    if member is None:
        raise NotFound("Member not found")
    return member


async def remove_member(store: Store, organization_id: UUID, user_id: UUID) -> None:
    async with store.transaction() as repos:
        owners = await repos.members.lock_owners(organization_id)
        target = await repos.members.get(organization_id, user_id)
        if target is None:
            raise NotFound("Member not found")
        if target.role == Role.OWNER and len(owners) <= 1:
            logger.warning(
                "Refused to remove last owner  org=%s user=%s", organization_id, user_id
            )
            raise LastOwner()
        await repos.members.remove(organization_id, user_id)
    logger.info("Member removed  org=%s user=%s", organization_id, user_id)


async def update_member_role(
    store: Store, organization_id: UUID, user_id: UUID, role: Role
) -> Member:
    """Change a member's role.  Demoting the sole OWNER raises LastOwner,
    the same as removing them would."""
    async with store.transaction() as repos:
        owners = await repos.members.lock_owners(organization_id)
        target = await repos.members.get(organization_id, user_id)
        if target is None:
            raise NotFound("Member not found")
        if target.role == Role.OWNER and role != Role.OWNER and len(owners) <= 1:
            logger.warning(
                "Refused to demote last owner  org=%s user=%s", organization_id, user_id
            )
            raise LastOwner("Cannot demote the last owner. Transfer ownership first.")
        updated = await repos.members.update_role(organization_id, user_id, role)
    if updated is None:
        raise NotFound("Member not found")
    logger.info(
        "Member role changed  org=%s user=%s %s->%s",
        organization_id,
        user_id,
        target.role,
        role,
    )
    return updated


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


async def invite_member(
    store: Store,
    organization_id: UUID,
    email: str,
    role: Role = Role.MEMBER,
) -> Invitation:
    """Invite an email address.  No user lookup happens here.

    An unexpired PENDING invitation for the same address is reused (its
    role updated if it differs) instead of creating a second one.
    """
    email = email.strip().lower()
    now = utcnow()
    async with store.transaction() as repos:
        org = await repos.organizations.get_by_id(organization_id)
        if org is None:
            raise NotFound("Organization not found")
        live = [
            inv
            for inv in await repos.invitations.find_pending(organization_id, email)
            if not inv.is_expired(now)
        ]
        if live:
            invitation = live[0]
            if invitation.role != role:
                invitation = await repos.invitations.update_role(invitation.id, role)
            event = "reused"
        else:
            invitation = Invitation.new(
                organization_id=organization_id, email=email, role=role
            )
            await repos.invitations.add(invitation)
            event = "created"

    INVITATION_EVENTS.labels(event=event).inc()
    logger.info(
        "Invitation %s  invitation=%s org=%s role=%s",
        event,
        invitation.id,
        organization_id,
        invitation.role,
    )
    await notify_invitation_created(invitation, org)
    return invitation


async def accept_invitation(
    store: Store, invitation_id: UUID, user_id: UUID
) -> Organization:
    """Join the inviting organization.

    The member insert and the PENDING -> ACCEPTED flip share one
    transaction.  The flip is conditional on the row still being
    PENDING, so of two concurrent accepts exactly one commits.
    """
    now = utcnow()
    async with store.transaction() as repos:
        invitation = await repos.invitations.get_for_update(invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found")
        if invitation.status != InvitationStatus.PENDING:
            raise AlreadyProcessed()
        if invitation.is_expired(now):
            raise Expired()
        org = await repos.organizations.get_by_id(invitation.organization_id)
        if org is None:
            raise NotFound("Invitation not found")
        if await repos.members.get(org.id, user_id) is not None:
            raise AlreadyMember()

        accepted = await repos.invitations.transition(
            invitation_id,
            from_status=InvitationStatus.PENDING,
            to_status=InvitationStatus.ACCEPTED,
        )
        if accepted is None:
            raise AlreadyProcessed()
        try:
            await repos.members.add(
                Member.new(organization_id=org.id, user_id=user_id, role=invitation.role)
            )
        except ValueError:
            raise AlreadyMember() from None

    INVITATION_EVENTS.labels(event="accepted").inc()
    logger.info(
        "Invitation accepted  invitation=%s org=%s user=%s role=%s",
        invitation_id,
        org.id,
        user_id,
        invitation.role,
    )
    return org


async def list_invitations(store: Store, organization_id: UUID) -> list[Invitation]:
    async with store.transaction() as repos:
        return await repos.invitations.list_by_organization(organization_id)


async def cancel_invitation(
    store: Store, organization_id: UUID, invitation_id: UUID
) -> Invitation:
    async with store.transaction() as repos:
        invitation = await repos.invitations.get_for_update(invitation_id)
        # Another tenant's invitation id is indistinguishable from a missing one
        if invitation is None or invitation.organization_id != organization_id:
            raise NotFound("Invitation not found")
        if invitation.status != InvitationStatus.PENDING:
            raise AlreadyProcessed()
        cancelled = await repos.invitations.transition(
            invitation_id,
            from_status=InvitationStatus.PENDING,
            to_status=InvitationStatus.CANCELLED,
        )
        if cancelled is None:
            raise AlreadyProcessed()

    INVITATION_EVENTS.labels(event="cancelled").inc()
    logger.info("Invitation cancelled  invitation=%s org=%s", invitation_id, organization_id)
    return cancelled


async def expire_stale_invitations(store: Store, now: datetime | None = None) -> int:
    """Flip overdue PENDING invitations to EXPIRED.  Returns how many."""
    now = now or utcnow()
    expired = 0
    async with store.transaction() as repos:
        for invitation in await repos.invitations.list_overdue(now):
            flipped = await repos.invitations.transition(
                invitation.id,
                from_status=InvitationStatus.PENDING,
                to_status=InvitationStatus.EXPIRED,
            )
            if flipped is not None:
                expired += 1
    if expired:
        INVITATION_EVENTS.labels(event="expired").inc(expired)
        logger.info("Expired %d stale invitation(s)", expired)
    return expired
