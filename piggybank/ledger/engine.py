"""
Balance Recalculation Engine

DESIGN DECISION: The ledger is a chain. Each entry's balance_after is
derived from the nearest earlier entry's balance_after:

    exercised: previous + reward_rate
    missed:    previous / 2

Editing a past date therefore invalidates every later balance, so every
write is followed by a cascade that walks the later entries in date
order and rewrites the ones whose balance changed.

Things this engine never does:
- Fabricate entries for gaps (a missing date is not a miss)
- Touch cash-outs or freeze spending (those are subtracted at read time)
- Trust storage ordering blindly (an impossible ordering raises
  LedgerConsistencyError and the caller falls back to rebuild())
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from piggybank.errors import LedgerConsistencyError, ValidationError
from piggybank.models.ledger import LedgerEntry, LedgerWriteResult
from piggybank.services.storage import LedgerStorageInterface, SettingsStorageInterface
from piggybank.utils.dates import TodayProvider, today as system_today
from piggybank.utils.money import ZERO, MoneyLike, round_money, to_decimal
from piggybank.validation import InputValidator


def calculate_new_balance(
    previous: MoneyLike,
    exercised: bool,
    rate: MoneyLike,
) -> Decimal:
    """
    Apply one day's outcome to a balance.

    >>> calculate_new_balance(Decimal("10.00"), True, Decimal("5.00"))
    Decimal('15.00')
    >>> calculate_new_balance(Decimal("1.25"), False, Decimal("5.00"))
    Decimal('0.63')
    """
    previous = to_decimal(previous)
    if exercised:
        return round_money(previous + to_decimal(rate))
    return round_money(previous / 2)


class BalanceRecalculationEngine:
    """
    Owns every write to the ledger store.

    The engine is not safe to call concurrently with itself; the
    orchestrator serializes all writes behind a single lock.
    """

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        settings_storage: SettingsStorageInterface,
        validator: Optional[InputValidator] = None,
        today_provider: TodayProvider = system_today,
    ):
        self._ledger = ledger_storage
        self._settings = settings_storage
        self._validator = validator or InputValidator()
        self._today = today_provider

    async def _reward_rate(self) -> Decimal:
        settings = await self._settings.load_settings()
        return settings.reward_rate

    async def _balance_before(self, day: date) -> Decimal:
        """Balance of the nearest entry strictly before ``day``, or 0."""
        previous = await self._ledger.get_entry_before(day)
        if previous is None:
            return ZERO
        if previous.date >= day:
            raise LedgerConsistencyError(
                f"Entry before {day.isoformat()} is dated {previous.date.isoformat()}"
            )
        return previous.balance_after

    async def _walk(
        self,
        entries: list[LedgerEntry],
        running: Decimal,
        rate: Decimal,
        after: Optional[date] = None,
    ) -> int:
        """
        Recompute ``entries`` in order starting from ``running``.

        Only entries whose balance actually changes are written back.

        Returns:
            Number of entries rewritten
        """
        rewritten = 0
        last_seen = after

        for entry in entries:
            if last_seen is not None and entry.date <= last_seen:
                raise LedgerConsistencyError(
                    f"Ledger scan returned {entry.date.isoformat()} after {last_seen.isoformat()}"
                )
            last_seen = entry.date

            new_balance = calculate_new_balance(running, entry.exercised, rate)
            if new_balance != entry.balance_after:
                await self._ledger.upsert_entry(LedgerEntry(
                    date=entry.date,
                    exercised=entry.exercised,
                    balance_after=new_balance,
                ))
                rewritten += 1
            running = new_balance

        return rewritten

    async def _cascade_after(
        self,
        day: date,
        balance: Decimal,
        rate: Decimal,
    ) -> int:
        later = await self._ledger.list_entries(date_from=day + timedelta(days=1))
        return await self._walk(later, balance, rate, after=day)

    async def _recompute_from(self, start: date, rate: Decimal) -> int:
        """Recompute every entry on or after ``start``."""
        running = await self._balance_before(start)
        entries = await self._ledger.list_entries(date_from=start)
        return await self._walk(entries, running, rate, after=start - timedelta(days=1))

    async def record_outcome(self, day: date, exercised: bool) -> LedgerWriteResult:
        """
        Record whether the user exercised on ``day``.

        Re-recording the outcome a date already has is a no-op.

        Raises:
            ValidationError: If ``day`` is in the future
            LedgerConsistencyError: If storage returns an impossible ordering
        """
        result = self._validator.validate_outcome_date(day, self._today())
        if result.has_errors:
            raise ValidationError.from_result(result)

        existing = await self._ledger.get_entry(day)
        if existing is not None and existing.exercised == exercised:
            return LedgerWriteResult(entries=[existing], changed=False)

        rate = await self._reward_rate()
        previous = await self._balance_before(day)
        entry = LedgerEntry(
            date=day,
            exercised=exercised,
            balance_after=calculate_new_balance(previous, exercised, rate),
        )
        await self._ledger.upsert_entry(entry)

        rewritten = await self._cascade_after(day, entry.balance_after, rate)
        return LedgerWriteResult(entries=[entry], rewritten=rewritten)

    async def bulk_record_outcomes(
        self,
        days: Iterable[date],
        exercised: bool,
    ) -> LedgerWriteResult:
        """
        Record the same outcome for a set of dates.

        All dates are validated before anything is written. Each date is
        upserted, then a single recompute pass runs from the earliest one.
        """
        unique = sorted(set(days))
        if not unique:
            return LedgerWriteResult(changed=False)

        result = self._validator.validate_outcome_dates(unique, self._today())
        if result.has_errors:
            raise ValidationError.from_result(result)

        for day in unique:
            # Placeholder balance, corrected by the recompute pass below
            await self._ledger.upsert_entry(LedgerEntry(
                date=day,
                exercised=exercised,
                balance_after=ZERO,
            ))

        rate = await self._reward_rate()
        rewritten = await self._recompute_from(unique[0], rate)

        written = set(unique)
        entries = [
            e for e in await self._ledger.list_entries(date_from=unique[0], date_to=unique[-1])
            if e.date in written
        ]
        return LedgerWriteResult(entries=entries, rewritten=rewritten)

    async def remove_outcome(self, day: date) -> LedgerWriteResult:
        """
        Delete the entry for ``day`` and recompute everything after it.

        Removing a date with no entry is a no-op.
        """
        existing = await self._ledger.get_entry(day)
        if existing is None:
            return LedgerWriteResult(changed=False)

        await self._ledger.delete_entry(day)
        rate = await self._reward_rate()
        rewritten = await self._recompute_from(day, rate)
        return LedgerWriteResult(entries=[existing], rewritten=rewritten)

    async def preview_outcome(self, exercised: bool) -> Decimal:
        """The ledger balance the next outcome would produce. Nothing is written."""
        latest = await self._ledger.get_latest_entry()
        previous = latest.balance_after if latest else ZERO
        return calculate_new_balance(previous, exercised, await self._reward_rate())

    async def rebuild(self) -> int:
        """
        Recompute the whole chain from zero.

        This is the recovery path after a LedgerConsistencyError, so it
        does not rely on storage ordering: entries are sorted here and
        later duplicates of a date win.

        Returns:
            Number of entries rewritten
        """
        by_date: dict[date, LedgerEntry] = {}
        for entry in await self._ledger.list_entries():
            by_date[entry.date] = entry

        ordered = [by_date[d] for d in sorted(by_date)]
        return await self._walk(ordered, ZERO, await self._reward_rate())

    async def current_ledger_balance(self) -> Decimal:
        latest = await self._ledger.get_latest_entry()
        return latest.balance_after if latest else ZERO

    async def total_workouts(self) -> int:
        return await self._ledger.count_exercised()

    async def get_entry(self, day: date) -> Optional[LedgerEntry]:
        return await self._ledger.get_entry(day)

    async def history(self, descending: bool = True) -> list[LedgerEntry]:
        return await self._ledger.list_entries(descending=descending)
