"""PostgreSQL implementation of SubscriptionRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.db.tables import SubscriptionRow, as_utc
from stockroom.models.organization import (
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
)


class PgSubscriptionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, organization_id: UUID) -> Subscription | None:
        stmt = select(SubscriptionRow).where(
            SubscriptionRow.organization_id == organization_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Subscription(
            organization_id=row.organization_id,
            plan=SubscriptionPlan(row.plan),
            status=SubscriptionStatus(row.status),
            trial_ends_at=as_utc(row.trial_ends_at),
        )

    async def add(self, subscription: Subscription) -> None:
        row = SubscriptionRow(
            organization_id=subscription.organization_id,
            plan=subscription.plan.value,
            status=subscription.status.value,
            trial_ends_at=subscription.trial_ends_at,
        )
        self._session.add(row)
        await self._session.flush()

    async def remove(self, organization_id: UUID) -> bool:
        stmt = delete(SubscriptionRow).where(
            SubscriptionRow.organization_id == organization_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0
