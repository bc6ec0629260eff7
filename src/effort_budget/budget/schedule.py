"""
Schedule helpers - turn estimated days into wording and dates

Proposals speak in days, weeks or months: a week is five working days
and a month twenty, so "12 days" reads as "3 weeks".
"""

import math
from datetime import date, timedelta

from effort_budget.kernel.config import EstimationPolicy

_UNITS = {
    "day": ("day", "days"),
    "week": ("week", "weeks"),
    "month": ("month", "months"),
}


def _plural(count: int, unit: str) -> str:
    singular, plural = _UNITS[unit]
    return f"{count} {singular if count == 1 else plural}"


def describe_duration(days: int, policy: EstimationPolicy | None = None) -> str:
    """
    Human wording for a number of working days

    Examples:
        >>> describe_duration(1)
        '1 day'
        >>> describe_duration(7)
        '2 weeks'
        >>> describe_duration(45)
        '3 months'
    """
    policy = policy or EstimationPolicy()
    if days < policy.business_days_per_week:
        return _plural(days, "day")
    if days < policy.business_days_per_month:
        return _plural(math.ceil(days / policy.business_days_per_week), "week")
    return _plural(math.ceil(days / policy.business_days_per_month), "month")


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def estimate_delivery_date(estimated_days: int, start: date) -> date:
    """
    Date on which the last working day falls

    Counts business days (Monday to Friday) starting with `start` itself
    when it is a business day.

    Args:
        estimated_days: Working days needed
        start: First calendar day available for work

    Returns:
        Calendar date of the final working day (start when 0 days)
    """
    if estimated_days <= 0:
        return start

    current = start
    counted = 0
    while True:
        if is_business_day(current):
            counted += 1
            if counted == estimated_days:
                return current
        current += timedelta(days=1)
