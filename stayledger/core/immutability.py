"""Immutability enforcement for ledger and history rows using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event

from stayledger.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify an append-only record."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Ledger and history records are append-only."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _forbid(model, operation: str) -> None:
    model_name = model.__name__

    def _reject(mapper, connection, target):
        _log_immutability_violation(model_name, operation, str(target.id))
        raise ImmutabilityViolationError(model_name, operation, str(target.id))

    event.listen(model, f"before_{operation.lower()}", _reject)


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for append-only models.

    Must be called after models are imported but before session use.
    Calling it again is a no-op.
    """
    global _registered
    if _registered:
        return

    from stayledger.models.booking import BookingStatusChange
    from stayledger.models.loyalty import LoyaltyLedgerEntry

    # ============ LoyaltyLedgerEntry: Append-Only ============
    _forbid(LoyaltyLedgerEntry, "UPDATE")
    _forbid(LoyaltyLedgerEntry, "DELETE")

    # ============ BookingStatusChange: Append-Only ============
    _forbid(BookingStatusChange, "UPDATE")
    _forbid(BookingStatusChange, "DELETE")

    _registered = True
    logger.info("Immutability enforcement registered for ledger and status history")
