"""Loyalty reconciliation persistence model."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stayledger.database import Base, JSONType


class LoyaltyHealthRun(Base):
    """Persisted result of one ledger reconciliation run."""

    __tablename__ = "loyalty_health_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Result
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # OK, WARNING, ERROR
    checks: Mapped[list] = mapped_column(JSONType, nullable=False)
    counts: Mapped[dict] = mapped_column(JSONType, nullable=False)

    # Trigger info
    trigger: Mapped[str] = mapped_column(String(30), nullable=False)  # startup, scheduled, manual

    # Timing
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)

    error_message: Mapped[str | None] = mapped_column(Text)
