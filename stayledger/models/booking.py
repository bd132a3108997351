"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stayledger.database import Base, JSONType
from stayledger.domain.loyalty_effect import LoyaltyEffect


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Booking(Base):
    """Hotel reservation aggregate."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # STAY-XXXXXX
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    hotel_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Dates
    check_in: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)

    # Pricing snapshot (in cents)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    base_price: Mapped[int] = mapped_column(Integer, nullable=False)
    quoted_price: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False)  # quoted_price - discount_amount
    extras_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)  # added at checkout
    demand_level: Mapped[str | None] = mapped_column(String(20))

    # Status
    status: Mapped[str] = mapped_column(String(20), default="PENDING", nullable=False, index=True)

    # Loyalty effect (immutable value, replaced wholesale on each transition)
    loyalty_effect: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    # Cancellation
    cancelled_by: Mapped[str | None] = mapped_column(String(20))  # customer, receptionist, admin, system
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    no_show_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    room_lines: Mapped[list["BookingRoomLine"]] = relationship(
        "BookingRoomLine",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BookingRoomLine.position",
    )
    status_history: Mapped[list["BookingStatusChange"]] = relationship(
        "BookingStatusChange",
        back_populates="booking",
        lazy="selectin",
        order_by="BookingStatusChange.sequence",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def effect(self) -> LoyaltyEffect:
        return LoyaltyEffect.model_validate(self.loyalty_effect or {})

    @effect.setter
    def effect(self, value: LoyaltyEffect) -> None:
        self.loyalty_effect = value.model_dump(mode="json")

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days


class BookingRoomLine(Base):
    """Room type, quantity and unit price snapshot for one booking line."""

    __tablename__ = "booking_room_lines"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    room_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)  # per room per night, in cents

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="room_lines")


class BookingStatusChange(Base):
    """Append-only status history step."""

    __tablename__ = "booking_status_changes"
    __table_args__ = (UniqueConstraint("booking_id", "sequence", name="uq_status_change_sequence"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(20))
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="status_history")
