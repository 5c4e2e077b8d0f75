"""
Date helpers.

Every component takes a ``today`` provider instead of calling
``date.today()`` directly, so tests can pin the calendar.
"""

from datetime import date, timedelta
from typing import Callable

TodayProvider = Callable[[], date]


def today() -> date:
    """Today's date in the local timezone."""
    return date.today()


def is_future(day: date, reference: date) -> bool:
    """Check if ``day`` falls after ``reference``."""
    return day > reference


def date_range(start: date, end: date) -> list[date]:
    """Dates from start to end, both inclusive. Empty when end < start."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days
