"""Organization context resolution.

Turns a verified identity plus an untrusted tenant claim into an
``OrganizationContext``.  The claim is always cross-checked against the
membership table; it is never accepted at face value.

Failure order matters: no identity is 401, no claim is 400, and a claim
that does not match a membership is 403 whether or not the organization
exists.
"""

from __future__ import annotations

import logging
from uuid import UUID

from stockroom.core.errors import AccessDenied, OrganizationContextRequired, Unauthenticated
from stockroom.core.metrics import ORG_CONTEXT_RESOLUTIONS
from stockroom.models.principal import Identity, OrganizationContext
from stockroom.repos.store import Store

logger = logging.getLogger(__name__)


def _parse_claim(claimed_org_id: str | UUID) -> UUID | None:
    if isinstance(claimed_org_id, UUID):
        return claimed_org_id
    try:
        return UUID(claimed_org_id.strip())
    except ValueError:
        return None


async def resolve_organization_context(
    store: Store,
    identity: Identity | None,
    claimed_org_id: str | UUID | None,
) -> OrganizationContext:
    if identity is None:
        ORG_CONTEXT_RESOLUTIONS.labels(outcome="unauthenticated").inc()
        raise Unauthenticated()

    if claimed_org_id is None or (
        isinstance(claimed_org_id, str) and not claimed_org_id.strip()
    ):
        ORG_CONTEXT_RESOLUTIONS.labels(outcome="context_required").inc()
        raise OrganizationContextRequired()

    organization_id = _parse_claim(claimed_org_id)
    if organization_id is None:
        ORG_CONTEXT_RESOLUTIONS.labels(outcome="denied").inc()
        logger.warning(
            "Organization access denied  user=%s claim=malformed", identity.user_id
        )
        raise AccessDenied()

    async with store.transaction() as repos:
        member = await repos.members.get(organization_id, identity.user_id)
        org = None
        if member is not None:
            org = await repos.organizations.get_by_id(organization_id)

    if member is None or org is None:
        ORG_CONTEXT_RESOLUTIONS.labels(outcome="denied").inc()
        logger.warning(
            "Organization access denied  user=%s org=%s",
            identity.user_id,
            organization_id,
        )
        raise AccessDenied()

    ORG_CONTEXT_RESOLUTIONS.labels(outcome="granted").inc()
    return OrganizationContext(
        organization_id=org.id,
        name=org.name,
        slug=org.slug,
        role=member.role,
        user_id=identity.user_id,
    )
