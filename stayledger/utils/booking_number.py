"""Booking reference numbers."""

import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stayledger.core.exceptions import AppException

# No 0/O or 1/I, references get read out over the phone
_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_PREFIX = "STAY"
_MAX_ATTEMPTS = 10


def new_booking_number(length: int = 6) -> str:
    return f"{_PREFIX}-{''.join(secrets.choice(_ALPHABET) for _ in range(length))}"


async def generate_booking_number(db: AsyncSession) -> str:
    """Pick a booking number that no stored booking uses yet.

    Returns:
        str: Reference like 'STAY-K7QM3R'
    """
    from stayledger.models.booking import Booking

    for _ in range(_MAX_ATTEMPTS):
        candidate = new_booking_number()
        taken = await db.scalar(select(Booking.id).where(Booking.booking_number == candidate))
        if taken is None:
            return candidate

    raise AppException(detail="Could not allocate a booking number, please retry")
