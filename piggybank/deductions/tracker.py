"""
Deduction Tracker

Cash-outs are "spending" from the piggy bank. They live in their own
store and are subtracted from the ledger balance at read time.

DESIGN DECISION: A cash-out never writes to the ledger. If it did,
deleting one would mean finding and reversing its effect on every later
balance. Kept separate, delete is just a delete.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from piggybank.errors import DeductionNotFoundError, ValidationError
from piggybank.ledger.projection import BalanceProjection
from piggybank.models.ledger import DeductionRecord
from piggybank.models.results import ValidationIssue, ValidationResult
from piggybank.services.storage import (
    DeductionStorageInterface,
    NotFoundError,
    SettingsStorageInterface,
)
from piggybank.utils.money import MoneyLike, round_money, to_decimal
from piggybank.validation import InputValidator


def _parse_amount(amount: MoneyLike) -> Decimal:
    try:
        return to_decimal(amount)
    except ValueError as e:
        raise ValidationError.from_result(ValidationResult(issues=[
            ValidationIssue(
                field="amount",
                issue_type="invalid_amount",
                message=str(e),
                severity="error",
            )
        ]))


class DeductionTracker:
    """Create, edit and delete cash-outs against the spendable balance."""

    def __init__(
        self,
        deduction_storage: DeductionStorageInterface,
        settings_storage: SettingsStorageInterface,
        projection: BalanceProjection,
        validator: Optional[InputValidator] = None,
        default_emoji: str = "\U0001F381",
    ):
        self._storage = deduction_storage
        self._settings = settings_storage
        self._projection = projection
        self._validator = validator or InputValidator()
        self._default_emoji = default_emoji

    async def create_deduction(
        self,
        label: str,
        amount: MoneyLike,
        emoji: Optional[str] = None,
    ) -> DeductionRecord:
        """
        Cash out ``amount`` for ``label``.

        Raises:
            ValidationError: Blank label, an amount that is not a positive
                whole-cent value or exceeds the spendable balance, or an
                overlong emoji
        """
        value = _parse_amount(amount)
        available = await self._projection.actual_balance()

        result = self._validator.validate_deduction(label, value, available, emoji)
        if result.has_errors:
            raise ValidationError.from_result(result)
        value = round_money(value)

        settings = await self._settings.load_settings()
        record = DeductionRecord(
            label=label,
            amount=value,
            emoji=emoji or self._default_emoji,
            balance_before_snapshot=available,
            balance_after_snapshot=round_money(available - value),
            reward_rate_at_creation=settings.reward_rate,
        )
        return await self._storage.save_deduction(record)

    async def update_deduction(
        self,
        deduction_id: UUID,
        label: str,
        amount: MoneyLike,
        emoji: Optional[str] = None,
    ) -> DeductionRecord:
        """
        Edit a cash-out's label, amount or emoji.

        Snapshots and the rate at creation are kept as they were.

        Raises:
            DeductionNotFoundError: If the id is unknown
            ValidationError: If the new values are invalid
        """
        existing = await self._storage.get_deduction(deduction_id)
        if existing is None:
            raise DeductionNotFoundError(deduction_id)

        value = _parse_amount(amount)
        available = await self._projection.actual_balance()

        result = self._validator.validate_deduction_update(
            label, value, available, existing.amount, emoji
        )
        if result.has_errors:
            raise ValidationError.from_result(result)
        value = round_money(value)

        updated = existing.model_copy(update={
            "label": label.strip(),
            "amount": value,
            "emoji": emoji or existing.emoji,
        })
        try:
            return await self._storage.update_deduction(updated)
        except NotFoundError:
            raise DeductionNotFoundError(deduction_id)

    async def delete_deduction(self, deduction_id: UUID) -> DeductionRecord:
        """
        Remove a cash-out; its amount returns to the spendable balance.

        Returns:
            The deleted record

        Raises:
            DeductionNotFoundError: If the id is unknown
        """
        existing = await self._storage.get_deduction(deduction_id)
        if existing is None or not await self._storage.delete_deduction(deduction_id):
            raise DeductionNotFoundError(deduction_id)
        return existing

    @staticmethod
    def workouts_represented(record: DeductionRecord) -> int:
        return record.workouts_represented

    async def get_deduction(self, deduction_id: UUID) -> Optional[DeductionRecord]:
        return await self._storage.get_deduction(deduction_id)

    async def list_deductions(self) -> list[DeductionRecord]:
        """All cash-outs, newest first."""
        return await self._storage.list_deductions()

    async def total_cashed_out(self) -> Decimal:
        return await self._storage.get_total_amount()

    async def total_workouts_rewarded(self) -> int:
        """Workouts "spent" across all cash-outs, each at its own creation rate."""
        return sum(r.workouts_represented for r in await self._storage.list_deductions())

    async def reward_count(self) -> int:
        return await self._storage.count_deductions()
