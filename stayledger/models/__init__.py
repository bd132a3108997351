"""Database models."""

from stayledger.models.booking import Booking, BookingRoomLine, BookingStatusChange
from stayledger.models.health import LoyaltyHealthRun
from stayledger.models.loyalty import LoyaltyAccount, LoyaltyLedgerEntry

__all__ = [
    # Booking
    "Booking",
    "BookingRoomLine",
    "BookingStatusChange",
    # Loyalty
    "LoyaltyAccount",
    "LoyaltyLedgerEntry",
    # Health
    "LoyaltyHealthRun",
]
