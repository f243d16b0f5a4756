"""Tenant-scoped item storage.

Every method takes ``organization_id``; there is no way to read or
delete an item without naming its tenant.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from stockroom.models.item import Item


class ItemRepo(Protocol):
    async def list_by_organization(self, organization_id: UUID) -> list[Item]: ...
    async def get(self, organization_id: UUID, item_id: UUID) -> Item | None: ...
    async def add(self, item: Item) -> None: ...
    async def remove(self, organization_id: UUID, item_id: UUID) -> bool: ...
    async def delete_by_organization(self, organization_id: UUID) -> int: ...


class InMemoryItemRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Item] = {}

    async def list_by_organization(self, organization_id: UUID) -> list[Item]:
        items = [i for i in self._by_id.values() if i.organization_id == organization_id]
        return sorted(items, key=lambda i: i.created_at)

    async def get(self, organization_id: UUID, item_id: UUID) -> Item | None:
        item = self._by_id.get(item_id)
        if item is None or item.organization_id != organization_id:
            return None
        return item

    async def add(self, item: Item) -> None:
        for existing in self._by_id.values():
            if existing.organization_id == item.organization_id and existing.sku == item.sku:
                raise ValueError("sku already exists in organization")
        self._by_id[item.id] = item

    async def remove(self, organization_id: UUID, item_id: UUID) -> bool:
        item = self._by_id.get(item_id)
        if item is None or item.organization_id != organization_id:
            return False
        del self._by_id[item_id]
        return True

    async def delete_by_organization(self, organization_id: UUID) -> int:
        ids = [i for i, item in self._by_id.items() if item.organization_id == organization_id]
        for item_id in ids:
            del self._by_id[item_id]
        return len(ids)

    def snapshot(self) -> dict:
        return dict(self._by_id)

    def restore(self, state: dict) -> None:
        self._by_id = state
