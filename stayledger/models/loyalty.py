"""Loyalty account projection and the append-only points ledger.

Ledger rows are immutable after creation; the account row is derived
from them and only ever changed together with a new ledger row.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stayledger.database import Base

if TYPE_CHECKING:
    from stayledger.models.booking import Booking


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LoyaltyAccount(Base):
    """Per-customer points summary derived from the ledger."""

    __tablename__ = "loyalty_accounts"
    __table_args__ = (
        CheckConstraint("current_points >= 0", name="ck_loyalty_accounts_balance_non_negative"),
        CheckConstraint("lifetime_points >= 0", name="ck_loyalty_accounts_lifetime_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False, index=True)

    # Balances
    current_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lifetime_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Tier
    tier: Mapped[str] = mapped_column(String(20), default="BRONZE", nullable=False)
    points_to_next_tier: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tier_progress_percent: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    tier_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}


class LoyaltyLedgerEntry(Base):
    """Immutable, signed point movement.

    new_balance == previous_balance + points_amount, and each entry's
    previous_balance equals the new_balance of the customer's prior entry.
    """

    __tablename__ = "loyalty_ledger_entries"
    __table_args__ = (
        UniqueConstraint("customer_id", "sequence", name="uq_ledger_customer_sequence"),
        CheckConstraint(
            "new_balance = previous_balance + points_amount", name="ck_ledger_balance_arithmetic"
        ),
        CheckConstraint("new_balance >= 0", name="ck_ledger_new_balance_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("loyalty_accounts.customer_id"), nullable=False, index=True
    )
    booking_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("bookings.id"), index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # Movement
    kind: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    points_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    new_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="COMPLETED", nullable=False)

    # Attribution
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)

    # Expiry (credits only); EXPIRE entries point back at the credit they expired
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    parent_entry_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("loyalty_ledger_entries.id")
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", lazy="noload")
