from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    password_hash: str
    name: str = ""
    is_active: bool = True

    @staticmethod
    def new(*, email: str, password_hash: str, name: str = "") -> User:
        # Keep creation centralized so email normalization stays in one place
        return User(
            id=uuid4(),
            email=email.strip().lower(),
            password_hash=password_hash,
            name=name,
            is_active=True,
        )
