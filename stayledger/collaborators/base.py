"""Interfaces for the services the booking engine consumes.

Adapters only talk to the outside world. Pricing, inventory and
notification rules live elsewhere; the engine treats their answers as opaque.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from stayledger.domain.events import DomainEvent
    from stayledger.models.loyalty import LoyaltyAccount


@dataclass(frozen=True)
class RoomSelection:
    """One requested room line."""

    room_type: str
    quantity: int = 1


@dataclass(frozen=True)
class DateRange:
    check_in: date
    check_out: date

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days


@dataclass
class PriceQuote:
    """Result of a pricing request. Amounts in cents."""

    final_price: int
    base_price: int
    currency: str = "USD"
    line_prices: dict[str, int] = field(default_factory=dict)  # room_type -> unit price per night
    raw_response: dict | None = None


@dataclass
class EligibilityResult:
    eligible: bool
    reason: str | None = None


@dataclass
class ReservationResult:
    success: bool
    reservation_id: str | None = None
    error_message: str | None = None


class PricingService(ABC):
    """Opaque dynamic-pricing collaborator."""

    @abstractmethod
    async def quote(
        self,
        hotel_id: UUID,
        rooms: list[RoomSelection],
        dates: DateRange,
    ) -> PriceQuote:
        """Price a room selection for a date range.

        Raises:
            CollaboratorUnavailable: If no quote can be obtained
        """
        pass

    async def demand_hint(self, hotel_id: UUID, dates: DateRange) -> str:
        """Optional demand level for display; callers must tolerate failure."""
        return "normal"

    async def close(self) -> None:
        return None


class InventoryService(ABC):
    """Room inventory collaborator, used outside the atomic scope."""

    @abstractmethod
    async def reserve(self, hotel_id: UUID, rooms: list[RoomSelection], dates: DateRange) -> ReservationResult:
        pass

    @abstractmethod
    async def release(self, hotel_id: UUID, rooms: list[RoomSelection], dates: DateRange) -> ReservationResult:
        pass

    async def close(self) -> None:
        return None


class EligibilityService(ABC):
    """Decides whether a customer may redeem points on a booking."""

    @abstractmethod
    async def check_redemption_eligible(
        self,
        customer_id: UUID,
        points: int,
        quoted_price: int,
        account: "LoyaltyAccount | None" = None,
    ) -> EligibilityResult:
        pass


class NotificationPublisher(ABC):
    """Receives domain events after commit. Delivery is not our concern."""

    @abstractmethod
    async def publish(self, event: "DomainEvent") -> None:
        pass

    async def close(self) -> None:
        return None


def event_envelope(event: "DomainEvent") -> dict[str, Any]:
    return {"type": event.event_type, "payload": event.to_payload()}
