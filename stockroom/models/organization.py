from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum, StrEnum
from uuid import UUID, uuid4

INVITATION_TTL_DAYS = 7
TRIAL_PERIOD_DAYS = 14


class Role(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class InvitationStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class SubscriptionPlan(StrEnum):
    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(StrEnum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


def utcnow() -> datetime:
    return datetime.now(UTC)


class Unset(Enum):
    """Marks an optional field the caller did not send, as opposed to null."""

    TOKEN = "UNSET"


UNSET = Unset.TOKEN


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime
    logo: str | None = None
    metadata: dict | None = field(default=None, compare=False)

    @staticmethod
    def new(*, name: str, slug: str, logo: str | None = None) -> Organization:
        now = utcnow()
        return Organization(
            id=uuid4(),
            name=name,
            slug=slug,
            logo=logo,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True, slots=True)
class Member:
    organization_id: UUID
    user_id: UUID
    role: Role
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def new(*, organization_id: UUID, user_id: UUID, role: Role) -> Member:
        now = utcnow()
        return Member(
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True, slots=True)
class Invitation:
    id: UUID
    organization_id: UUID
    email: str
    role: Role
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def new(*, organization_id: UUID, email: str, role: Role = Role.MEMBER) -> Invitation:
        now = utcnow()
        return Invitation(
            id=uuid4(),
            organization_id=organization_id,
            email=email,
            role=role,
            status=InvitationStatus.PENDING,
            expires_at=now + timedelta(days=INVITATION_TTL_DAYS),
            created_at=now,
            updated_at=now,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or utcnow())


@dataclass(frozen=True, slots=True)
class Subscription:
    organization_id: UUID
    plan: SubscriptionPlan
    status: SubscriptionStatus
    trial_ends_at: datetime | None

    @staticmethod
    def trial(*, organization_id: UUID) -> Subscription:
        return Subscription(
            organization_id=organization_id,
            plan=SubscriptionPlan.FREE,
            status=SubscriptionStatus.TRIAL,
            trial_ends_at=utcnow() + timedelta(days=TRIAL_PERIOD_DAYS),
        )


# --- Read models returned by the lifecycle service ---


@dataclass(frozen=True, slots=True)
class OrganizationSummary:
    organization: Organization
    role: Role
    member_count: int


@dataclass(frozen=True, slots=True)
class OrganizationDetail:
    organization: Organization
    subscription: Subscription | None
    members: tuple[Member, ...]
    role: Role
