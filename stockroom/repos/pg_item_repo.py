"""PostgreSQL implementation of ItemRepo.

Every statement filters on organization_id, including lookups by
primary key.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.db.tables import ItemRow, as_utc
from stockroom.models.item import Item


class PgItemRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_by_organization(self, organization_id: UUID) -> list[Item]:
        stmt = (
            select(ItemRow)
            .where(ItemRow.organization_id == organization_id)
            .order_by(ItemRow.created_at.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_item(r) for r in rows]

    async def get(self, organization_id: UUID, item_id: UUID) -> Item | None:
        stmt = select(ItemRow).where(
            ItemRow.organization_id == organization_id,
            ItemRow.id == item_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_item(row)

    async def add(self, item: Item) -> None:
        row = ItemRow(
            id=item.id,
            organization_id=item.organization_id,
            name=item.name,
            sku=item.sku,
            quantity=item.quantity,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError:
            raise ValueError("sku already exists in organization") from None

    async def remove(self, organization_id: UUID, item_id: UUID) -> bool:
        stmt = delete(ItemRow).where(
            ItemRow.organization_id == organization_id,
            ItemRow.id == item_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete_by_organization(self, organization_id: UUID) -> int:
        stmt = delete(ItemRow).where(ItemRow.organization_id == organization_id)
        result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_item(row: ItemRow) -> Item:
    return Item(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        sku=row.sku,
        quantity=row.quantity,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
