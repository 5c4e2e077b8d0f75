"""
Display helpers shared by every read surface (home screen, widget,
reminders, audit descriptions).

Nothing in here touches storage; these are pure functions of values the
engine already computed.
"""

from decimal import Decimal
from enum import Enum
from typing import Union

from piggybank.utils.money import round_money


class StreakTier(str, Enum):
    """Escalating display intensity for a streak."""
    NONE = "none"            # 0 days
    SPARK = "spark"          # 1-2 days
    FIRE = "fire"            # 3-6 days
    BLAZE = "blaze"          # 7-13 days
    INFERNO = "inferno"      # 14-29 days
    LEGENDARY = "legendary"  # 30+ days


class UrgencyLevel(str, Enum):
    """How hard to nag, based on time of day and whether today is logged."""
    CALM = "calm"
    NUDGE = "nudge"
    WARN = "warn"
    CRITICAL = "critical"


STREAK_EMOJI = {
    StreakTier.NONE: "",
    StreakTier.SPARK: "\U0001F525",
    StreakTier.FIRE: "\U0001F525\U0001F525",
    StreakTier.BLAZE: "\U0001F525\U0001F525\U0001F525",
    StreakTier.INFERNO: "\U0001F4A5\U0001F525\U0001F4A5",
    StreakTier.LEGENDARY: "\U0001F451\U0001F525\U0001F451",
}


def streak_tier(streak: int) -> StreakTier:
    if streak <= 0:
        return StreakTier.NONE
    if streak <= 2:
        return StreakTier.SPARK
    if streak <= 6:
        return StreakTier.FIRE
    if streak <= 13:
        return StreakTier.BLAZE
    if streak <= 29:
        return StreakTier.INFERNO
    return StreakTier.LEGENDARY


def urgency_level(hour: int, is_logged: bool) -> UrgencyLevel:
    """
    Urgency for an unlogged day.

    Calm once logged or before noon, then nudge (12-17),
    warn (17-21) and critical from 21:00.
    """
    if is_logged or hour < 12:
        return UrgencyLevel.CALM
    if hour < 17:
        return UrgencyLevel.NUDGE
    if hour < 21:
        return UrgencyLevel.WARN
    return UrgencyLevel.CRITICAL


def format_currency(amount: Union[Decimal, int, float, str]) -> str:
    """Format a balance as currency, e.g. 42.5 -> "$42.50"."""
    value = round_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_streak(days: int) -> str:
    if days <= 0:
        return "No streak"
    if days == 1:
        return "1 day"
    return f"{days} days"


def format_streak_with_emoji(days: int) -> str:
    if days <= 0:
        return "No streak"
    emoji = STREAK_EMOJI[streak_tier(days)]
    return f"{emoji} {format_streak(days)}"
