from __future__ import annotations

from typing import Protocol
from uuid import UUID

from stockroom.models.organization import Subscription


class SubscriptionRepo(Protocol):
    async def get(self, organization_id: UUID) -> Subscription | None: ...
    async def add(self, subscription: Subscription) -> None: ...
    async def remove(self, organization_id: UUID) -> bool: ...


class InMemorySubscriptionRepo:
    def __init__(self) -> None:
        self._by_org: dict[UUID, Subscription] = {}

    async def get(self, organization_id: UUID) -> Subscription | None:
        return self._by_org.get(organization_id)

    async def add(self, subscription: Subscription) -> None:
        if subscription.organization_id in self._by_org:
            raise ValueError("subscription already exists")
        self._by_org[subscription.organization_id] = subscription

    async def remove(self, organization_id: UUID) -> bool:
        return self._by_org.pop(organization_id, None) is not None

    def snapshot(self) -> dict:
        return dict(self._by_org)

    def restore(self, state: dict) -> None:
        self._by_org = state
