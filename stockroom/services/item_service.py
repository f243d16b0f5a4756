"""Inventory items, scoped to the resolved organization.

The tenant filter always comes from ``context.organization_id``.  No
function here accepts an organization id from the caller.
"""

from __future__ import annotations

import logging
from uuid import UUID

from stockroom.core.errors import DuplicateSku, NotFound
from stockroom.models.item import Item
from stockroom.models.principal import OrganizationContext
from stockroom.repos.store import Store

logger = logging.getLogger(__name__)


async def list_items(store: Store, context: OrganizationContext) -> list[Item]:
    async with store.transaction() as repos:
        return await repos.items.list_by_organization(context.organization_id)


async def get_item(store: Store, context: OrganizationContext, item_id: UUID) -> Item:
    async with store.transaction() as repos:
        item = await repos.items.get(context.organization_id, item_id)
    if item is None:
        raise NotFound("Item not found")
    return item


async def create_item(
    store: Store,
    context: OrganizationContext,
    name: str,
    sku: str,
    quantity: int = 0,
) -> Item:
    item = Item.new(
        organization_id=context.organization_id, name=name, sku=sku, quantity=quantity
    )
    try:
        async with store.transaction() as repos:
            await repos.items.add(item)
    except ValueError:
        raise DuplicateSku() from None
    logger.info("Item created  item=%s org=%s sku=%s", item.id, item.organization_id, sku)
    return item


async def delete_item(store: Store, context: OrganizationContext, item_id: UUID) -> None:
    async with store.transaction() as repos:
        removed = await repos.items.remove(context.organization_id, item_id)
    if not removed:
        raise NotFound("Item not found")
    logger.info("Item deleted  item=%s org=%s", item_id, context.organization_id)
