"""
Calendar-day helpers.

DESIGN DECISION: "Today" is a calendar date in one explicitly configured
timezone (UTC unless configured otherwise), never the host's implicit
local time. Every engine operation receives it through a provider so
tests can move the clock.
"""

from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

TodayProvider = Callable[[], date]


def budget_today(timezone_name: str = "UTC") -> date:
    """Current calendar date in the given IANA timezone."""
    if timezone_name.upper() == "UTC":
        return datetime.now(timezone.utc).date()
    return datetime.now(ZoneInfo(timezone_name)).date()


def make_today_provider(timezone_name: str = "UTC") -> TodayProvider:
    """
    Build a provider bound to one timezone.

    Raises:
        zoneinfo.ZoneInfoNotFoundError: If the timezone name is unknown
    """
    if timezone_name.upper() != "UTC":
        ZoneInfo(timezone_name)
    return lambda: budget_today(timezone_name)


def spendable_days(start_date: date, end_date: date) -> int:
    """Whole days from period start to payday, floored at 1."""
    return max((end_date - start_date).days, 1)


def days_remaining(today: date, end_date: date) -> int:
    """Days left until payday as seen from today, never negative."""
    return max((end_date - today).days, 0)
