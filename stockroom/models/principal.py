from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from stockroom.models.organization import Role


@dataclass(frozen=True, slots=True)
class Identity:
    """Verified caller identity produced by the identity resolver.

    Built from the subject of a verified session or access token and
    the matching user row.  Never built from a client-supplied user id.
    """

    user_id: UUID
    email: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class OrganizationContext:
    """Verified tenant + role bundle for a single request.

    Resolved from the X-Organization-Id claim and the live membership
    row.  Lives for one request only; a role change takes effect on the
    caller's next request.
    """

    organization_id: UUID
    name: str
    slug: str
    role: Role
    user_id: UUID
