"""Points earning and redemption arithmetic.

All money values are in the smallest currency unit (cents). Points are
computed on whole currency units and always rounded down.
"""

from decimal import ROUND_FLOOR, Decimal

from stayledger.config import settings


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def confirmation_points(total_price: int, multiplier: Decimal | float) -> int:
    """Points awarded when a booking is confirmed.

    Args:
        total_price: Final booking price in cents (after any points discount)
        multiplier: Earn multiplier of the customer's tier

    Returns:
        int: floor(whole currency units x multiplier)
    """
    major_units = max(0, total_price) // 100
    return _floor(Decimal(major_units) * Decimal(str(multiplier)))


def completion_bonus(
    nights: int,
    spend: int,
    points_per_night: int | None = None,
    spend_rate: float | None = None,
    cap: int | None = None,
) -> int:
    """Bonus awarded at checkout.

    Args:
        nights: Nights stayed
        spend: Total spend in cents, checkout extras included
        points_per_night: Override for the per-night component
        spend_rate: Override for the spend component rate
        cap: Override for the maximum bonus

    Returns:
        int: nights x per-night + floor(spend units x rate), capped
    """
    points_per_night = settings.completion_points_per_night if points_per_night is None else points_per_night
    spend_rate = settings.completion_spend_rate if spend_rate is None else spend_rate
    cap = settings.completion_bonus_cap if cap is None else cap

    major_units = max(0, spend) // 100
    bonus = max(0, nights) * points_per_night + _floor(Decimal(major_units) * Decimal(str(spend_rate)))
    return min(bonus, cap)


def redemption_discount(points: int, points_per_unit: int | None = None) -> int:
    """Discount in cents bought by ``points`` (100 points = 1 currency unit by default)."""
    points_per_unit = settings.points_per_currency_unit if points_per_unit is None else points_per_unit
    return points * 100 // points_per_unit
