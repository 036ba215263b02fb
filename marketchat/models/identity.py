from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet


class Role(str, Enum):
    BUYER = "Buyer"
    SELLER = "Seller"
    ADMIN = "Admin"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller passed into every chat operation."""

    user_id: str
    roles: FrozenSet[Role] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles
