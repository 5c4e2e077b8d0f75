"""Streak package."""

from piggybank.streaks.calculator import StreakCalculator

__all__ = ["StreakCalculator"]
