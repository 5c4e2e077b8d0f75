"""Pure helpers: money rounding, dates, display formatting."""

from piggybank.utils.dates import TodayProvider, date_range, is_future, today
from piggybank.utils.formatters import (
    StreakTier,
    UrgencyLevel,
    format_currency,
    format_streak,
    format_streak_with_emoji,
    streak_tier,
    urgency_level,
)
from piggybank.utils.money import CENT, ZERO, round_money, to_decimal

__all__ = [
    "CENT",
    "ZERO",
    "StreakTier",
    "TodayProvider",
    "UrgencyLevel",
    "date_range",
    "format_currency",
    "format_streak",
    "format_streak_with_emoji",
    "is_future",
    "round_money",
    "streak_tier",
    "to_decimal",
    "today",
    "urgency_level",
]
