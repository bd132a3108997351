"""Actors that can drive bookings and ledger movements."""

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    RECEPTIONIST = "receptionist"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Whoever is asking for the change."""

    actor_id: str
    role: ActorRole

    @classmethod
    def system(cls) -> "Actor":
        return cls(actor_id="system", role=ActorRole.SYSTEM)
