"""Role gate: the one place a role is compared against a requirement.

``check`` is pure.  Callers declare the allowed role set explicitly;
an empty or missing set denies, so forgetting to declare one never
opens an operation up.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from stockroom.core.errors import AccessDenied
from stockroom.core.metrics import ROLE_GATE_DECISIONS
from stockroom.models.organization import Role
from stockroom.models.principal import OrganizationContext

logger = logging.getLogger(__name__)

REQUIRE_OWNER: frozenset[Role] = frozenset({Role.OWNER})
REQUIRE_ADMIN: frozenset[Role] = frozenset({Role.OWNER, Role.ADMIN})
REQUIRE_MEMBER: frozenset[Role] = frozenset({Role.OWNER, Role.ADMIN, Role.MEMBER})

# Fixed display order so the message is stable regardless of set iteration
_ROLE_ORDER = (Role.OWNER, Role.ADMIN, Role.MEMBER)


@dataclass(frozen=True, slots=True)
class GateDecision:
    allowed: bool
    reason: str | None = None


def describe(allowed_roles: Iterable[Role]) -> str:
    roles = set(allowed_roles)
    names = [r.value for r in _ROLE_ORDER if r in roles]
    if not names:
        return "Insufficient permissions"
    return "Insufficient permissions. Required role: " + " or ".join(names)


def check(
    context: OrganizationContext,
    allowed_roles: Iterable[Role] | None,
) -> GateDecision:
    roles = frozenset(allowed_roles or ())
    if roles and context.role in roles:
        ROLE_GATE_DECISIONS.labels(outcome="allow").inc()
        return GateDecision(allowed=True)
    ROLE_GATE_DECISIONS.labels(outcome="deny").inc()
    return GateDecision(allowed=False, reason=describe(roles))


def enforce(
    context: OrganizationContext,
    allowed_roles: Iterable[Role] | None,
) -> OrganizationContext:
    """``check`` that raises AccessDenied on deny.  Returns the context."""
    decision = check(context, allowed_roles)
    if not decision.allowed:
        logger.warning(
            "Role gate denied  user=%s org=%s role=%s",
            context.user_id,
            context.organization_id,
            context.role,
        )
        raise AccessDenied(decision.reason)
    return context
