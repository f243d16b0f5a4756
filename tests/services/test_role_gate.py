from __future__ import annotations

from uuid import uuid4

import pytest

from stockroom.api.dependencies import require_org_role
from stockroom.core.errors import AccessDenied
from stockroom.models.organization import Role
from stockroom.models.principal import OrganizationContext
from stockroom.services import role_gate


def _context(role: Role) -> OrganizationContext:
    return OrganizationContext(
        organization_id=uuid4(), name="Acme", slug="acme", role=role, user_id=uuid4()
    )


# (role, allowed set, expected allow)
_GATE_CASES = [
    (Role.OWNER, role_gate.REQUIRE_OWNER, True),
    (Role.ADMIN, role_gate.REQUIRE_OWNER, False),
    (Role.MEMBER, role_gate.REQUIRE_OWNER, False),
    (Role.OWNER, role_gate.REQUIRE_ADMIN, True),
    (Role.ADMIN, role_gate.REQUIRE_ADMIN, True),
    (Role.MEMBER, role_gate.REQUIRE_ADMIN, False),
    (Role.OWNER, role_gate.REQUIRE_MEMBER, True),
    (Role.ADMIN, role_gate.REQUIRE_MEMBER, True),
    (Role.MEMBER, role_gate.REQUIRE_MEMBER, True),
]


@pytest.mark.parametrize(
    "role,allowed,expected",
    _GATE_CASES,
    ids=[f"{r}-in-{'|'.join(sorted(a))}" for r, a, _ in _GATE_CASES],
)
def test_check_table(role: Role, allowed: frozenset[Role], expected: bool) -> None:
    decision = role_gate.check(_context(role), allowed)
    assert decision.allowed is expected
    assert (decision.reason is None) is expected


@pytest.mark.parametrize("allowed", [frozenset(), set(), None])
def test_missing_declaration_denies_everyone(allowed) -> None:
    for role in Role:
        assert role_gate.check(_context(role), allowed).allowed is False


def test_denial_reason_names_required_roles_only() -> None:
    decision = role_gate.check(_context(Role.MEMBER), role_gate.REQUIRE_ADMIN)
    assert decision.reason == "Insufficient permissions. Required role: OWNER or ADMIN"

    decision = role_gate.check(_context(Role.ADMIN), role_gate.REQUIRE_OWNER)
    assert decision.reason == "Insufficient permissions. Required role: OWNER"


def test_denial_reason_order_is_stable() -> None:
    allowed = {Role.ADMIN, Role.OWNER}
    assert role_gate.describe(allowed) == role_gate.describe(
        frozenset([Role.OWNER, Role.ADMIN])
    )


def test_enforce_raises_access_denied_with_reason() -> None:
    with pytest.raises(AccessDenied) as exc_info:
        role_gate.enforce(_context(Role.MEMBER), role_gate.REQUIRE_ADMIN)
    assert exc_info.value.status_code == 403
    assert exc_info.value.public_message.endswith("Required role: OWNER or ADMIN")


def test_enforce_returns_context_on_allow() -> None:
    ctx = _context(Role.ADMIN)
    assert role_gate.enforce(ctx, role_gate.REQUIRE_ADMIN) is ctx


def test_require_org_role_refuses_empty_declaration() -> None:
    with pytest.raises(ValueError, match="at least one"):
        require_org_role(set())
