"""
Monthly cost projection.

Extrapolates a period's spend to a full calendar month.
"""

import calendar
from datetime import datetime
from typing import Optional

from ai_usage_meter.storage.models import UsageStats

PERIODS = ("today", "month", "all")


def days_in_month(moment: datetime) -> int:
    """Number of days in the calendar month containing `moment`."""
    return calendar.monthrange(moment.year, moment.month)[1]


def projected_monthly_cost(
    stats: UsageStats,
    period: str,
    now: Optional[datetime] = None,
) -> Optional[float]:
    """Project a month's cost from the statistics of a period.

    Args:
        stats: Statistics for the period
        period: One of "today", "month" or "all"
        now: Reference time (defaults to the current local time)

    Returns:
        Projected monthly cost in USD, or None when the period cannot be
        projected ("all" spans an unknown number of days)

    Raises:
        ValueError: If period is unknown
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")

    now = now or datetime.now()
    if stats.call_count == 0:
        return 0.0

    if period == "today":
        return stats.total_cost * days_in_month(now)
    if period == "month":
        daily_average = stats.total_cost / now.day
        return daily_average * days_in_month(now)
    return None
