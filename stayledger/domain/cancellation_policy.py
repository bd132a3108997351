"""Cancellation penalty policy for confirmation points.

Earned points are clawed back depending on notice given:
- 24h+ before check-in: no penalty
- 12-24h before: 50% of the points earned at confirmation
- <12h: 100%
"""

from datetime import UTC, date, datetime, time

from stayledger.config import settings


def check_in_moment(check_in: date, check_in_hour: int | None = None) -> datetime:
    """Check-in date at the hotel's standard check-in hour, in UTC."""
    hour = settings.hotel_check_in_hour if check_in_hour is None else check_in_hour
    return datetime.combine(check_in, time(hour=hour), tzinfo=UTC)


def hours_until_check_in(check_in: date, now: datetime, check_in_hour: int | None = None) -> float:
    """Hours of notice before check-in (negative once check-in has passed)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    delta = check_in_moment(check_in, check_in_hour) - now
    return delta.total_seconds() / 3600


def penalty_percentage(hours_before: float) -> int:
    """Share of confirmation points forfeited for the given notice."""
    if hours_before >= settings.free_cancellation_hours:
        return 0
    if hours_before >= settings.late_cancellation_hours:
        return settings.late_cancellation_penalty_percent
    return 100


def calculate_penalty_points(points_earned: int, hours_before: float) -> int:
    """Points to claw back before any balance cap is applied.

    Args:
        points_earned: Points credited at confirmation
        hours_before: Notice given, in hours

    Returns:
        int: Penalty as a positive number of points
    """
    return points_earned * penalty_percentage(hours_before) // 100


def get_policy_description() -> str:
    """Human-readable policy description."""
    return (
        f"Free cancellation up to {settings.free_cancellation_hours} hours before check-in. "
        f"{settings.late_cancellation_penalty_percent}% of confirmation points are forfeited "
        f"if cancelled {settings.late_cancellation_hours}-{settings.free_cancellation_hours} hours before, "
        f"and all of them if cancelled later."
    )
