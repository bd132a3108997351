"""Pydantic schemas for API validation."""

from stayledger.schemas.booking import (
    BookingCreate,
    BookingDraft,
    BookingResponse,
    RedemptionRequest,
    RoomLineIn,
    TransitionRequest,
)
from stayledger.schemas.loyalty import (
    AccountResponse,
    AccountSummaryResponse,
    AdjustmentRequest,
    ExpiringPointsResponse,
    LedgerEntryResponse,
    LedgerResponse,
)

__all__ = [
    # Booking
    "BookingCreate",
    "BookingDraft",
    "BookingResponse",
    "RedemptionRequest",
    "RoomLineIn",
    "TransitionRequest",
    # Loyalty
    "AccountResponse",
    "AccountSummaryResponse",
    "AdjustmentRequest",
    "ExpiringPointsResponse",
    "LedgerEntryResponse",
    "LedgerResponse",
]
