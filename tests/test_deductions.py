"""
Tests for the Deduction Tracker

Cash-outs are checked against the spendable balance and must never
touch the ledger.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from piggybank.deductions import DeductionTracker
from piggybank.errors import DeductionNotFoundError, ValidationError
from piggybank.ledger import BalanceProjection
from piggybank.models.ledger import DeductionRecord, LedgerEntry, UserSettings
from piggybank.services.storage import (
    InMemoryDeductionStorage,
    InMemoryLedgerStorage,
    InMemorySettingsStorage,
)


DAY1 = date(2024, 3, 10)


def build(ledger_balance: str = "5.00", rate: str = "5.00"):
    ledger = InMemoryLedgerStorage([
        LedgerEntry(date=DAY1, exercised=True, balance_after=Decimal(ledger_balance)),
    ])
    deductions = InMemoryDeductionStorage()
    settings = InMemorySettingsStorage(UserSettings(reward_rate=Decimal(rate)))
    projection = BalanceProjection(ledger, deductions, settings)
    tracker = DeductionTracker(deductions, settings, projection)
    return tracker, projection, ledger, settings


class TestCreateDeduction:
    """Tests for cashing out."""

    def test_create_and_delete_restores_balance(self):
        """2.00 out of 5.00 leaves 3.00; deleting it gives 5.00 back."""
        tracker, projection, _, _ = build()

        async def scenario():
            record = await tracker.create_deduction("Coffee", "2.00")
            after_create = await projection.actual_balance()
            await tracker.delete_deduction(record.id)
            after_delete = await projection.actual_balance()
            return after_create, after_delete

        assert asyncio.run(scenario()) == (Decimal("3.00"), Decimal("5.00"))

    def test_snapshots_recorded(self):
        """The record keeps the balance around it and the rate at the time."""
        tracker, _, _, _ = build(ledger_balance="20.00", rate="4.00")
        record = asyncio.run(tracker.create_deduction("  Book  ", Decimal("12.5")))

        assert record.label == "Book"
        assert record.amount == Decimal("12.50")
        assert record.balance_before_snapshot == Decimal("20.00")
        assert record.balance_after_snapshot == Decimal("7.50")
        assert record.reward_rate_at_creation == Decimal("4.00")
        assert record.emoji == "\U0001F381"

    def test_custom_emoji(self):
        """A supplied emoji replaces the default."""
        tracker, _, _, _ = build()
        record = asyncio.run(tracker.create_deduction("Ice cream", 1, emoji="\U0001F366"))
        assert record.emoji == "\U0001F366"

    def test_exact_balance_allowed(self):
        """Cashing out everything is fine."""
        tracker, projection, _, _ = build()
        asyncio.run(tracker.create_deduction("Everything", "5.00"))
        assert asyncio.run(projection.actual_balance()) == Decimal("0.00")

    @pytest.mark.parametrize("amount,code", [
        ("5.01", "exceeds_balance"),
        ("0", "non_positive_amount"),
        ("-3", "non_positive_amount"),
        ("abc", "invalid_amount"),
        ("NaN", "invalid_amount"),
        ("2.005", "sub_cent_amount"),
    ])
    def test_bad_amounts_rejected(self, amount, code):
        """Each bad amount is reported with its own code."""
        tracker, _, _, _ = build()
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(tracker.create_deduction("Thing", amount))
        assert exc_info.value.code == code

    def test_long_emoji_rejected(self):
        """An overlong decoration is a validation failure, nothing is saved."""
        tracker, _, _, _ = build()
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(tracker.create_deduction("Coffee", "2.00", emoji="x" * 20))
        assert exc_info.value.code == "emoji_too_long"
        assert asyncio.run(tracker.reward_count()) == 0

    def test_blank_label_rejected(self):
        """A reward needs a name."""
        tracker, _, _, _ = build()
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(tracker.create_deduction("   ", "1.00"))
        assert exc_info.value.code == "empty_label"

    def test_ledger_untouched(self):
        """Cash-outs never write to the ledger."""
        tracker, _, ledger, _ = build()

        async def scenario():
            before = await ledger.list_entries()
            await tracker.create_deduction("Coffee", "2.00")
            return before, await ledger.list_entries()

        before, after = asyncio.run(scenario())
        assert before == after


class TestUpdateDeduction:
    """Tests for editing a cash-out."""

    def test_update_allows_own_amount_back(self):
        """The old amount is added back before checking the new one."""
        tracker, projection, _, _ = build()

        async def scenario():
            record = await tracker.create_deduction("Coffee", "3.00")
            updated = await tracker.update_deduction(record.id, "Lunch", "5.00")
            return record, updated, await projection.actual_balance()

        original, updated, balance = asyncio.run(scenario())
        assert updated.label == "Lunch"
        assert updated.amount == Decimal("5.00")
        assert balance == Decimal("0.00")
        # Snapshots are not recomputed on edit
        assert updated.balance_before_snapshot == original.balance_before_snapshot
        assert updated.reward_rate_at_creation == original.reward_rate_at_creation
        assert updated.created_at == original.created_at

    def test_update_over_limit_rejected(self):
        """More than balance plus the old amount is refused."""
        tracker, _, _, _ = build()

        async def scenario():
            record = await tracker.create_deduction("Coffee", "3.00")
            await tracker.update_deduction(record.id, "Coffee", "5.01")

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.code == "exceeds_balance"

    def test_update_long_emoji_rejected(self):
        """Edits check the decoration too; the stored record keeps its emoji."""
        tracker, _, _, _ = build()

        async def scenario():
            record = await tracker.create_deduction("Coffee", "2.00")
            with pytest.raises(ValidationError) as exc_info:
                await tracker.update_deduction(record.id, "Coffee", "2.00", emoji="x" * 20)
            return exc_info.value, await tracker.get_deduction(record.id)

        error, stored = asyncio.run(scenario())
        assert error.code == "emoji_too_long"
        assert stored.emoji == "\U0001F381"

    def test_update_unknown_id(self):
        """A stale id is a not-found, not a validation failure."""
        tracker, _, _, _ = build()
        with pytest.raises(DeductionNotFoundError):
            asyncio.run(tracker.update_deduction(uuid4(), "Coffee", "1.00"))

    def test_delete_unknown_id(self):
        """Deleting twice fails the second time."""
        tracker, _, _, _ = build()

        async def scenario():
            record = await tracker.create_deduction("Coffee", "1.00")
            await tracker.delete_deduction(record.id)
            await tracker.delete_deduction(record.id)

        with pytest.raises(DeductionNotFoundError):
            asyncio.run(scenario())


class TestDeductionStats:
    """Tests for counts and workout conversion."""

    def test_workouts_represented_uses_creation_rate(self):
        """Changing the rate later doesn't change past conversions."""
        tracker, _, _, settings = build(ledger_balance="50.00")

        async def scenario():
            record = await tracker.create_deduction("Shoes", "12.00")
            stored = await settings.load_settings()
            stored.reward_rate = Decimal("1.00")
            await settings.save_settings(stored)
            return record, await tracker.total_workouts_rewarded()

        record, total = asyncio.run(scenario())
        assert DeductionTracker.workouts_represented(record) == 2
        assert total == 2

    def test_counts_and_totals(self):
        """Totals cover live records only."""
        tracker, _, _, _ = build(ledger_balance="50.00")

        async def scenario():
            first = await tracker.create_deduction("A", "10.00")
            await tracker.create_deduction("B", "5.00")
            await tracker.create_deduction("C", "6.00")
            await tracker.delete_deduction(first.id)
            return await tracker.reward_count(), await tracker.total_cashed_out()

        assert asyncio.run(scenario()) == (2, Decimal("11.00"))

    def test_empty_stats(self):
        """No cash-outs reads as zeros."""
        tracker, _, _, _ = build()
        assert asyncio.run(tracker.reward_count()) == 0
        assert asyncio.run(tracker.total_cashed_out()) == Decimal("0")
        assert asyncio.run(tracker.list_deductions()) == []

    def test_list_newest_first(self):
        """Records come back most recent first."""
        storage = InMemoryDeductionStorage()
        base = datetime(2024, 3, 1, tzinfo=timezone.utc)

        async def scenario():
            for offset, label in enumerate(["old", "middle", "new"]):
                await storage.save_deduction(DeductionRecord(
                    label=label,
                    amount=Decimal("1.00"),
                    created_at=base + timedelta(hours=offset),
                ))
            tracker = DeductionTracker(
                storage,
                InMemorySettingsStorage(),
                BalanceProjection(InMemoryLedgerStorage(), storage, InMemorySettingsStorage()),
            )
            return await tracker.list_deductions()

        assert [r.label for r in asyncio.run(scenario())] == ["new", "middle", "old"]

    def test_projection_order_invariance(self):
        """Different edit sequences with the same live set give the same balance."""

        async def path_a():
            tracker, projection, _, _ = build(ledger_balance="30.00")
            await tracker.create_deduction("A", "4.00")
            await tracker.create_deduction("B", "6.00")
            return await projection.actual_balance()

        async def path_b():
            tracker, projection, _, _ = build(ledger_balance="30.00")
            b = await tracker.create_deduction("B", "20.00")
            temp = await tracker.create_deduction("Temp", "1.00")
            await tracker.update_deduction(b.id, "B", "6.00")
            await tracker.delete_deduction(temp.id)
            await tracker.create_deduction("A", "4.00")
            return await projection.actual_balance()

        assert asyncio.run(path_a()) == asyncio.run(path_b()) == Decimal("20.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
