from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from stockroom.models.organization import utcnow


@dataclass(frozen=True, slots=True)
class Item:
    """An inventory item.  Always owned by exactly one organization."""

    id: UUID
    organization_id: UUID
    name: str
    sku: str
    quantity: int
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def new(*, organization_id: UUID, name: str, sku: str, quantity: int = 0) -> Item:
        now = utcnow()
        return Item(
            id=uuid4(),
            organization_id=organization_id,
            name=name,
            sku=sku,
            quantity=quantity,
            created_at=now,
            updated_at=now,
        )
