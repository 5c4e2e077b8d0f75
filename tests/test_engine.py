"""
Tests for the Balance Recalculation Engine

Test strategy:
1. The balance formula on its own (pure function)
2. Single writes and the cascade they trigger
3. Order-independence and rebuild equivalence
4. Storage that misbehaves (consistency errors)

Everything runs against the in-memory store with a pinned calendar.
"""

import asyncio
import itertools
from datetime import date, timedelta
from decimal import Decimal

import pytest

from piggybank.errors import LedgerConsistencyError, ValidationError
from piggybank.ledger.engine import BalanceRecalculationEngine, calculate_new_balance
from piggybank.models.ledger import LedgerEntry, UserSettings
from piggybank.services.storage import InMemoryLedgerStorage, InMemorySettingsStorage


TODAY = date(2024, 3, 15)
DAY1 = date(2024, 3, 10)
DAY2 = date(2024, 3, 11)
DAY3 = date(2024, 3, 12)


class CountingLedgerStorage(InMemoryLedgerStorage):
    """Counts writes so tests can see what the cascade touched."""

    def __init__(self):
        super().__init__()
        self.upserts: list[date] = []

    async def upsert_entry(self, entry):
        self.upserts.append(entry.date)
        return await super().upsert_entry(entry)


class MisorderedBeforeStorage(InMemoryLedgerStorage):
    """get_entry_before answers with the latest entry, whatever its date."""

    async def get_entry_before(self, day):
        return await self.get_latest_entry()


class ReversedScanStorage(InMemoryLedgerStorage):
    """Range scans come back newest first even when ascending was asked for."""

    async def list_entries(self, date_from=None, date_to=None, descending=False):
        entries = await super().list_entries(date_from, date_to, descending)
        return list(reversed(entries))


def make_engine(ledger=None, rate="5.00"):
    ledger = ledger if ledger is not None else InMemoryLedgerStorage()
    settings = InMemorySettingsStorage(UserSettings(reward_rate=Decimal(rate)))
    engine = BalanceRecalculationEngine(ledger, settings, today_provider=lambda: TODAY)
    return engine, ledger, settings


async def balances(ledger) -> dict:
    return {e.date: e.balance_after for e in await ledger.list_entries()}


class TestCalculateNewBalance:
    """Tests for the per-day balance formula."""

    def test_exercise_adds_rate(self):
        """An exercised day adds the reward rate."""
        assert calculate_new_balance(Decimal("10.00"), True, Decimal("5.00")) == Decimal("15.00")

    def test_miss_halves(self):
        """A missed day halves the balance."""
        assert calculate_new_balance(Decimal("10.00"), False, Decimal("5.00")) == Decimal("5.00")

    def test_miss_on_zero_stays_zero(self):
        """Halving nothing is still nothing."""
        assert calculate_new_balance(Decimal("0"), False, Decimal("5.00")) == Decimal("0.00")

    def test_halving_rounds_half_away_from_zero(self):
        """5.00 -> 2.50 -> 1.25 -> 0.63, never 0.62."""
        balance = Decimal("5.00")
        seen = []
        for _ in range(3):
            balance = calculate_new_balance(balance, False, Decimal("5.00"))
            seen.append(balance)
        assert seen == [Decimal("2.50"), Decimal("1.25"), Decimal("0.63")]

    def test_accepts_plain_numbers(self):
        """Ints and strings are converted to Decimal."""
        assert calculate_new_balance(3, True, "2.5") == Decimal("5.50")


class TestRecordOutcome:
    """Tests for single-date writes and the cascade."""

    def test_consecutive_outcomes(self):
        """Exercise, exercise, miss -> 5.00, 10.00, 5.00."""
        engine, ledger, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY2, True)
            await engine.record_outcome(DAY3, False)
            return await balances(ledger)

        assert asyncio.run(scenario()) == {
            DAY1: Decimal("5.00"),
            DAY2: Decimal("10.00"),
            DAY3: Decimal("5.00"),
        }

    def test_editing_history_cascades(self):
        """Changing day 1 to a miss recomputes day 2 and day 3."""
        engine, ledger, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY2, True)
            await engine.record_outcome(DAY3, False)
            write = await engine.record_outcome(DAY1, False)
            return write, await balances(ledger)

        write, result = asyncio.run(scenario())
        assert result == {
            DAY1: Decimal("0.00"),
            DAY2: Decimal("5.00"),
            DAY3: Decimal("2.50"),
        }
        assert write.changed is True
        assert write.rewritten == 2

    def test_future_date_rejected(self):
        """Tomorrow can't be recorded and nothing is written."""
        engine, ledger, _ = make_engine()

        async def scenario():
            with pytest.raises(ValidationError) as exc_info:
                await engine.record_outcome(TODAY + timedelta(days=1), True)
            return exc_info.value, await ledger.list_entries()

        error, entries = asyncio.run(scenario())
        assert error.code == "future_date"
        assert entries == []

    def test_today_is_allowed(self):
        """Today itself is not in the future."""
        engine, ledger, _ = make_engine()
        write = asyncio.run(engine.record_outcome(TODAY, True))
        assert write.entry.balance_after == Decimal("5.00")

    def test_same_outcome_is_noop(self):
        """Re-recording the same outcome changes nothing."""
        ledger = CountingLedgerStorage()
        engine, _, _ = make_engine(ledger)

        async def scenario():
            await engine.record_outcome(DAY1, True)
            return await engine.record_outcome(DAY1, True)

        write = asyncio.run(scenario())
        assert write.changed is False
        assert write.entry.balance_after == Decimal("5.00")
        assert ledger.upserts == [DAY1]

    def test_gaps_are_not_filled(self):
        """A missing date is not a miss and gets no entry."""
        engine, ledger, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY3, True)
            return await balances(ledger)

        assert asyncio.run(scenario()) == {
            DAY1: Decimal("5.00"),
            DAY3: Decimal("10.00"),
        }

    def test_cascade_rewrites_changed_entries(self):
        """A later entry whose balance moves is written back."""
        ledger = CountingLedgerStorage()
        engine, _, _ = make_engine(ledger)

        async def scenario():
            await engine.record_outcome(DAY1, False)
            await engine.record_outcome(DAY2, False)
            ledger.upserts.clear()
            return await engine.record_outcome(DAY1, True)

        write = asyncio.run(scenario())
        # DAY2 goes from 0.00 to 2.50
        assert ledger.upserts == [DAY1, DAY2]
        assert write.rewritten == 1

    def test_cascade_stops_rewriting_when_balances_match(self):
        """Editing the last entry rewrites nothing after it."""
        ledger = CountingLedgerStorage()
        engine, _, _ = make_engine(ledger)

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY2, True)
            ledger.upserts.clear()
            return await engine.record_outcome(DAY2, False)

        write = asyncio.run(scenario())
        assert ledger.upserts == [DAY2]
        assert write.rewritten == 0

    def test_cascade_uses_current_rate(self):
        """A cascade after a rate change applies the new rate downstream."""
        engine, ledger, settings = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY2, True)
            stored = await settings.load_settings()
            stored.reward_rate = Decimal("10.00")
            await settings.save_settings(stored)
            await engine.record_outcome(DAY1, False)
            return await balances(ledger)

        assert asyncio.run(scenario()) == {
            DAY1: Decimal("0.00"),
            DAY2: Decimal("10.00"),
        }

    def test_determinism_regardless_of_order(self):
        """The same final mapping gives the same balances in any call order."""
        outcomes = [(DAY1, True), (DAY2, False), (DAY3, True)]
        results = []

        for order in itertools.permutations(outcomes):
            engine, ledger, _ = make_engine()

            async def scenario():
                for day, exercised in order:
                    await engine.record_outcome(day, exercised)
                return await balances(ledger)

            results.append(asyncio.run(scenario()))

        assert all(r == results[0] for r in results)
        assert results[0] == {
            DAY1: Decimal("5.00"),
            DAY2: Decimal("2.50"),
            DAY3: Decimal("7.50"),
        }

    def test_incremental_cascade_matches_rebuild(self):
        """Rebuilding after an edit rewrites nothing."""
        engine, ledger, _ = make_engine()

        async def scenario():
            for offset in range(6):
                await engine.record_outcome(DAY1 + timedelta(days=offset), offset % 3 != 0)
            await engine.record_outcome(DAY2, False)
            before = await balances(ledger)
            rewritten = await engine.rebuild()
            return before, rewritten, await balances(ledger)

        before, rewritten, after = asyncio.run(scenario())
        assert rewritten == 0
        assert before == after


class TestBulkRecordOutcomes:
    """Tests for recording one outcome on several dates."""

    def test_empty_batch_is_noop(self):
        """No dates, no writes."""
        engine, ledger, _ = make_engine()
        write = asyncio.run(engine.bulk_record_outcomes([], True))
        assert write.changed is False
        assert asyncio.run(ledger.list_entries()) == []

    def test_any_future_date_rejects_batch(self):
        """One bad date means nothing in the batch is written."""
        engine, ledger, _ = make_engine()

        async def scenario():
            with pytest.raises(ValidationError) as exc_info:
                await engine.bulk_record_outcomes([DAY1, TODAY + timedelta(days=2)], True)
            return exc_info.value, await ledger.list_entries()

        error, entries = asyncio.run(scenario())
        assert error.code == "future_date"
        assert entries == []

    def test_batch_recomputes_from_earliest(self):
        """Filling in a gap recomputes the batch and everything after it."""
        day4 = date(2024, 3, 13)
        engine, ledger, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(day4, True)
            write = await engine.bulk_record_outcomes([DAY3, DAY2, DAY2], True)
            return write, await balances(ledger)

        write, result = asyncio.run(scenario())
        assert result == {
            DAY1: Decimal("5.00"),
            DAY2: Decimal("10.00"),
            DAY3: Decimal("15.00"),
            day4: Decimal("20.00"),
        }
        assert [e.date for e in write.entries] == [DAY2, DAY3]

    def test_batch_overwrites_existing_outcomes(self):
        """Dates already logged take the batch outcome."""
        engine, ledger, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY2, True)
            await engine.bulk_record_outcomes([DAY1, DAY2], False)
            return await balances(ledger)

        assert asyncio.run(scenario()) == {
            DAY1: Decimal("0.00"),
            DAY2: Decimal("0.00"),
        }


class TestRemoveOutcome:
    """Tests for deleting an entry."""

    def test_remove_recomputes_later_entries(self):
        """Later entries chain from the new predecessor."""
        engine, ledger, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY2, True)
            await engine.record_outcome(DAY3, False)
            write = await engine.remove_outcome(DAY2)
            return write, await balances(ledger)

        write, result = asyncio.run(scenario())
        assert write.changed is True
        assert result == {DAY1: Decimal("5.00"), DAY3: Decimal("2.50")}

    def test_remove_unknown_date_is_noop(self):
        """Removing a date with no entry reports no change."""
        engine, _, _ = make_engine()
        write = asyncio.run(engine.remove_outcome(DAY1))
        assert write.changed is False
        assert write.entry is None


class TestPreviewAndReads:
    """Tests for the read-only engine surface."""

    def test_preview_on_empty_ledger(self):
        """With no entries the previews start from zero."""
        engine, _, _ = make_engine()
        assert asyncio.run(engine.preview_outcome(True)) == Decimal("5.00")
        assert asyncio.run(engine.preview_outcome(False)) == Decimal("0.00")

    def test_preview_does_not_write(self):
        """Previews come from the latest entry and persist nothing."""
        engine, ledger, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            exercise = await engine.preview_outcome(True)
            miss = await engine.preview_outcome(False)
            return exercise, miss, await ledger.list_entries()

        exercise, miss, entries = asyncio.run(scenario())
        assert exercise == Decimal("10.00")
        assert miss == Decimal("2.50")
        assert len(entries) == 1

    def test_absence_defaults(self):
        """An empty ledger reads as zero, not an error."""
        engine, _, _ = make_engine()
        assert asyncio.run(engine.current_ledger_balance()) == Decimal("0.00")
        assert asyncio.run(engine.total_workouts()) == 0
        assert asyncio.run(engine.history()) == []

    def test_history_and_workout_count(self):
        """History is newest first by default."""
        engine, _, _ = make_engine()

        async def scenario():
            await engine.record_outcome(DAY1, True)
            await engine.record_outcome(DAY2, False)
            await engine.record_outcome(DAY3, True)
            return await engine.history(), await engine.total_workouts()

        history, workouts = asyncio.run(scenario())
        assert [e.date for e in history] == [DAY3, DAY2, DAY1]
        assert workouts == 2


class TestConsistency:
    """Tests for impossible storage answers and the rebuild fallback."""

    def test_nearest_before_after_target_raises(self):
        """A 'before' entry dated on or after the target is corruption."""
        engine, _, _ = make_engine(MisorderedBeforeStorage())

        async def scenario():
            await engine.record_outcome(DAY3, True)
            await engine.record_outcome(DAY1, True)

        with pytest.raises(LedgerConsistencyError):
            asyncio.run(scenario())

    def test_out_of_order_scan_raises(self):
        """A descending answer to an ascending scan is corruption."""
        engine, _, _ = make_engine(ReversedScanStorage())

        async def scenario():
            await engine.record_outcome(DAY2, True)
            await engine.record_outcome(DAY3, True)
            await engine.record_outcome(DAY1, True)

        with pytest.raises(LedgerConsistencyError):
            asyncio.run(scenario())

    def test_rebuild_repairs_corrupted_balances(self):
        """rebuild() recomputes the whole chain from zero."""
        ledger = InMemoryLedgerStorage([
            LedgerEntry(date=DAY1, exercised=True, balance_after=Decimal("99.00")),
            LedgerEntry(date=DAY2, exercised=False, balance_after=Decimal("1.00")),
            LedgerEntry(date=DAY3, exercised=True, balance_after=Decimal("7.50")),
        ])
        engine, _, _ = make_engine(ledger)

        rewritten = asyncio.run(engine.rebuild())

        assert rewritten == 2
        assert asyncio.run(balances(ledger)) == {
            DAY1: Decimal("5.00"),
            DAY2: Decimal("2.50"),
            DAY3: Decimal("7.50"),
        }

    def test_rebuild_ignores_scan_order(self):
        """rebuild() sorts for itself, so a misordered store can be repaired."""
        ledger = ReversedScanStorage([
            LedgerEntry(date=DAY1, exercised=True, balance_after=Decimal("0.00")),
            LedgerEntry(date=DAY2, exercised=True, balance_after=Decimal("0.00")),
        ])
        engine, _, _ = make_engine(ledger)

        asyncio.run(engine.rebuild())

        entries = asyncio.run(InMemoryLedgerStorage.list_entries(ledger))
        assert [e.balance_after for e in entries] == [Decimal("5.00"), Decimal("10.00")]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
