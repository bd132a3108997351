"""Immutable record of a booking's loyalty side effects."""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from stayledger.core.exceptions import LedgerError


class LoyaltyStage(str, Enum):
    """Ledger-writing stages a booking can pass through, each at most once."""

    REDEMPTION = "redemption"
    EARN = "earn"
    COMPLETION = "completion"
    REFUND = "refund"
    PENALTY = "penalty"


# stage -> (transaction id field, points field)
STAGE_FIELDS: dict[LoyaltyStage, tuple[str, str]] = {
    LoyaltyStage.REDEMPTION: ("redemption_transaction_id", "points_used"),
    LoyaltyStage.EARN: ("earn_transaction_id", "points_earned"),
    LoyaltyStage.COMPLETION: ("completion_transaction_id", "completion_bonus"),
    LoyaltyStage.REFUND: ("refund_transaction_id", "points_refunded"),
    LoyaltyStage.PENALTY: ("penalty_transaction_id", "penalty_points"),
}


class LoyaltyEffect(BaseModel):
    """Points used, earned, refunded and penalised for one booking.

    Never edited in place: every stage produces a new value via ``record``.
    """

    model_config = ConfigDict(frozen=True)

    points_used: int = 0
    discount_amount: int = 0
    redemption_transaction_id: UUID | None = None

    points_earned: int = 0
    earn_transaction_id: UUID | None = None

    completion_bonus: int = 0
    completion_transaction_id: UUID | None = None

    points_refunded: int = 0
    refund_transaction_id: UUID | None = None

    penalty_points: int = 0
    penalty_shortfall: int = 0
    penalty_transaction_id: UUID | None = None

    def transaction_id(self, stage: LoyaltyStage) -> UUID | None:
        return getattr(self, STAGE_FIELDS[stage][0])

    def has_stage(self, stage: LoyaltyStage) -> bool:
        return self.transaction_id(stage) is not None

    def record(
        self,
        stage: LoyaltyStage,
        transaction_id: UUID,
        points: int,
        **extra: int,
    ) -> "LoyaltyEffect":
        """Return a copy with ``stage`` recorded.

        Raises:
            LedgerError: If the stage already has a transaction id
        """
        id_field, points_field = STAGE_FIELDS[stage]
        if getattr(self, id_field) is not None:
            raise LedgerError(f"Loyalty stage '{stage.value}' is already recorded for this booking")
        return self.model_copy(update={id_field: transaction_id, points_field: points, **extra})

    @property
    def net_points(self) -> int:
        """Net balance movement caused by this booking."""
        return (
            self.points_earned
            + self.completion_bonus
            + self.points_refunded
            - self.points_used
            - self.penalty_points
        )
