"""Fire-and-forget notifications for organization events.

Delivery happens in the worker.  A failure to enqueue never fails the
operation that triggered it; the invitation is already committed.
"""

from __future__ import annotations

import logging

from stockroom.models.organization import Invitation, Organization
from stockroom.services.task_queue import task_queue

logger = logging.getLogger(__name__)

INVITATION_EMAIL_QUEUE = "invitation_email"


async def notify_invitation_created(
    invitation: Invitation, organization: Organization
) -> None:
    payload = {
        "invitation_id": str(invitation.id),
        "organization_id": str(organization.id),
        "organization_name": organization.name,
        "email": invitation.email,
        "role": invitation.role.value,
        "expires_at": invitation.expires_at.isoformat(),
    }
    try:
        task = await task_queue.enqueue(INVITATION_EMAIL_QUEUE, payload)
    except Exception:
        logger.exception(
            "Failed to enqueue invitation email  invitation=%s org=%s",
            invitation.id,
            organization.id,
        )
        return
    logger.info(
        "Invitation email queued  task=%s invitation=%s org=%s",
        task.id,
        invitation.id,
        organization.id,
    )
