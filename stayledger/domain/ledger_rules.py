"""Ledger entry kinds and the sign rules each kind must follow."""

from enum import Enum

from stayledger.core.exceptions import LedgerError


class LedgerEntryKind(str, Enum):
    """Kinds of point movement recorded in the ledger."""

    EARN_CONFIRM = "EARN_CONFIRM"
    EARN_COMPLETION = "EARN_COMPLETION"
    REDEEM = "REDEEM"
    REFUND_REJECTION = "REFUND_REJECTION"
    REFUND_CANCELLATION = "REFUND_CANCELLATION"
    PENALTY_CANCELLATION = "PENALTY_CANCELLATION"
    ADJUSTMENT_ADMIN = "ADJUSTMENT_ADMIN"
    EXPIRE = "EXPIRE"


class LedgerEntryStatus(str, Enum):
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


CREDIT_KINDS = frozenset(
    {
        LedgerEntryKind.EARN_CONFIRM,
        LedgerEntryKind.EARN_COMPLETION,
        LedgerEntryKind.REFUND_REJECTION,
        LedgerEntryKind.REFUND_CANCELLATION,
    }
)

DEBIT_KINDS = frozenset(
    {
        LedgerEntryKind.REDEEM,
        LedgerEntryKind.PENALTY_CANCELLATION,
        LedgerEntryKind.EXPIRE,
    }
)

# A zero amount records that the stage ran (free-window cancellation, nothing left to expire)
ZERO_AMOUNT_KINDS = frozenset({LedgerEntryKind.PENALTY_CANCELLATION, LedgerEntryKind.EXPIRE})

# Kinds that move lifetime points (and so the tier)
LIFETIME_KINDS = frozenset(
    {
        LedgerEntryKind.EARN_CONFIRM,
        LedgerEntryKind.EARN_COMPLETION,
        LedgerEntryKind.ADJUSTMENT_ADMIN,
        LedgerEntryKind.PENALTY_CANCELLATION,
    }
)

# Credits that carry an expiry date
EXPIRING_KINDS = frozenset(
    {
        LedgerEntryKind.EARN_CONFIRM,
        LedgerEntryKind.EARN_COMPLETION,
        LedgerEntryKind.ADJUSTMENT_ADMIN,
    }
)


def validate_entry_amount(kind: LedgerEntryKind, points_amount: int) -> None:
    """Reject amounts whose sign does not fit the entry kind.

    Raises:
        LedgerError: If the amount is zero where not allowed or has the wrong sign
    """
    if points_amount == 0:
        if kind not in ZERO_AMOUNT_KINDS:
            raise LedgerError(f"{kind.value} entries cannot have a zero amount")
        return
    if kind in CREDIT_KINDS and points_amount < 0:
        raise LedgerError(f"{kind.value} entries must be positive")
    if kind in DEBIT_KINDS and points_amount > 0:
        raise LedgerError(f"{kind.value} entries must be negative")


def affects_lifetime(kind: LedgerEntryKind) -> bool:
    return kind in LIFETIME_KINDS
