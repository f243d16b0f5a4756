"""Inventory item endpoints, scoped to the header-selected organization."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from stockroom.api.dependencies import require_admin, require_organization
from stockroom.models.item import Item
from stockroom.models.principal import OrganizationContext
from stockroom.repos.store import Store, get_store
from stockroom.services import item_service

router = APIRouter(prefix="/v1/items", tags=["items"])


class ItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    sku: str = Field(min_length=1, max_length=64)
    quantity: int = Field(default=0, ge=0)


class ItemOut(BaseModel):
    id: str
    name: str
    sku: str
    quantity: int
    created_at: datetime


def _item_out(item: Item) -> ItemOut:
    return ItemOut(
        id=str(item.id),
        name=item.name,
        sku=item.sku,
        quantity=item.quantity,
        created_at=item.created_at,
    )


@router.get("", response_model=list[ItemOut])
async def list_items(
    context: Annotated[OrganizationContext, Depends(require_organization)],
    store: Annotated[Store, Depends(get_store)],
) -> list[ItemOut]:
    return [_item_out(i) for i in await item_service.list_items(store, context)]


@router.post("", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    body: ItemIn,
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> ItemOut:
    item = await item_service.create_item(
        store, context, body.name, body.sku, body.quantity
    )
    return _item_out(item)


@router.get("/{item_id}", response_model=ItemOut)
async def get_item(
    item_id: UUID,
    context: Annotated[OrganizationContext, Depends(require_organization)],
    store: Annotated[Store, Depends(get_store)],
) -> ItemOut:
    return _item_out(await item_service.get_item(store, context, item_id))


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: UUID,
    context: Annotated[OrganizationContext, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> None:
    await item_service.delete_item(store, context, item_id)
