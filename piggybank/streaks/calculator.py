"""
Streak Calculator

DESIGN DECISION: The streak is never stored. It is recomputed from the
ledger by walking backward from today, so editing any past outcome is
reflected immediately.

Walking backward, one day at a time:
- today with no entry: skipped (the user just hasn't logged yet)
- a frozen date, missing or missed: skipped, streak unchanged
- an exercised date: streak + 1
- anything else: the walk stops

There is no lookback cap. The ledger is finite, so the walk always
reaches a date with no entry eventually.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from piggybank.models.ledger import LedgerEntry
from piggybank.services.storage import LedgerStorageInterface
from piggybank.utils.dates import TodayProvider, date_range, today as system_today


class StreakCalculator:
    """Derives the current streak and the most recent repairable day."""

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        today_provider: TodayProvider = system_today,
        freeze_lookback_days: int = 7,
    ):
        self._ledger = ledger_storage
        self._today = today_provider
        self._lookback_days = freeze_lookback_days

    async def _entries_by_date(self, until: date) -> dict[date, LedgerEntry]:
        # One range read so the walk sees a single view of the ledger
        entries = await self._ledger.list_entries(date_to=until)
        return {e.date: e for e in entries}

    async def calculate_streak(self, frozen_dates: Iterable[date] = ()) -> int:
        frozen = set(frozen_dates)
        current_day = self._today()
        entries = await self._entries_by_date(current_day)

        streak = 0
        cursor = current_day

        while True:
            entry = entries.get(cursor)

            if entry is None:
                if cursor == current_day or cursor in frozen:
                    cursor -= timedelta(days=1)
                    continue
                break

            if not entry.exercised:
                if cursor in frozen:
                    cursor -= timedelta(days=1)
                    continue
                break

            streak += 1
            cursor -= timedelta(days=1)

        return streak

    async def find_missed_day_for_freeze(
        self,
        frozen_dates: Iterable[date] = (),
    ) -> Optional[date]:
        """
        The most recent day a freeze could repair.

        Looks back from yesterday over the lookback window. Frozen dates
        are passed over but still use up a day of the window.

        Returns:
            The first missing or missed date found, None if every day in
            the window was exercised or frozen
        """
        frozen = set(frozen_dates)
        yesterday = self._today() - timedelta(days=1)
        entries = await self._entries_by_date(yesterday)

        window = date_range(yesterday - timedelta(days=self._lookback_days - 1), yesterday)
        for day in reversed(window):
            if day in frozen:
                continue
            entry = entries.get(day)
            if entry is None or not entry.exercised:
                return day

        return None
