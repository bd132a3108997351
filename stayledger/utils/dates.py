"""Calendar helpers."""

import calendar
from datetime import datetime


def add_months(moment: datetime, months: int) -> datetime:
    """Shift ``moment`` by whole months, clamping to the last day of the month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
