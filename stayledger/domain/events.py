"""Domain events buffered during a transaction and published after commit."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC), kw_only=True)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_payload(self) -> dict[str, Any]:
        payload = {
            key: str(value) if isinstance(value, UUID) else value
            for key, value in asdict(self).items()
        }
        payload["occurred_at"] = self.occurred_at.isoformat()
        payload["event_type"] = self.event_type
        return payload


@dataclass(frozen=True)
class TierChanged(DomainEvent):
    customer_id: UUID
    old_tier: str
    new_tier: str


@dataclass(frozen=True)
class BookingTransitioned(DomainEvent):
    booking_id: UUID
    booking_number: str
    customer_id: UUID
    previous_status: str | None
    new_status: str
    points_delta: int = 0


@dataclass(frozen=True)
class PointsExpired(DomainEvent):
    customer_id: UUID
    points: int
