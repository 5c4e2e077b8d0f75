"""
Balance Projection

The balance a user sees is never stored. It is derived on every read:

    actual = max(0, ledger_balance - cashed_out - freeze_spending)

DESIGN DECISION: No cached balance. Deleting a cash-out or editing a past
outcome changes the displayed number on the very next read, with nothing
to invalidate.
"""

from decimal import Decimal

from piggybank.models.ledger import BalanceBreakdown
from piggybank.services.storage import (
    DeductionStorageInterface,
    LedgerStorageInterface,
    SettingsStorageInterface,
)
from piggybank.utils.money import ZERO, MoneyLike, round_money, to_decimal


def calculate_actual_balance(
    ledger_balance: MoneyLike,
    cashed_out: MoneyLike,
    freeze_spending: MoneyLike,
) -> Decimal:
    """Spendable balance, floored at zero."""
    raw = round_money(
        to_decimal(ledger_balance) - to_decimal(cashed_out) - to_decimal(freeze_spending)
    )
    return max(ZERO, raw)


class BalanceProjection:
    """Reads the three stores fresh on every call."""

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        deduction_storage: DeductionStorageInterface,
        settings_storage: SettingsStorageInterface,
    ):
        self._ledger = ledger_storage
        self._deductions = deduction_storage
        self._settings = settings_storage

    async def breakdown(self) -> BalanceBreakdown:
        latest = await self._ledger.get_latest_entry()
        ledger_balance = latest.balance_after if latest else ZERO
        cashed_out = await self._deductions.get_total_amount()
        freeze_spending = (await self._settings.load_settings()).total_freeze_spending

        return BalanceBreakdown(
            ledger_balance=ledger_balance,
            total_cashed_out=cashed_out,
            total_freeze_spending=freeze_spending,
            actual_balance=calculate_actual_balance(ledger_balance, cashed_out, freeze_spending),
        )

    async def actual_balance(self) -> Decimal:
        return (await self.breakdown()).actual_balance

    async def balance_after_deduction(self, extra: MoneyLike) -> Decimal:
        """What the balance would be after cashing out ``extra`` more."""
        current = await self.breakdown()
        return calculate_actual_balance(
            current.ledger_balance,
            current.total_cashed_out + to_decimal(extra),
            current.total_freeze_spending,
        )

    async def net_preview(self, raw_balance: MoneyLike) -> Decimal:
        """
        Translate a raw ledger preview into the balance the user would see.

        Used for the "if you exercise today" / "if you skip today" numbers.
        """
        current = await self.breakdown()
        return calculate_actual_balance(
            raw_balance,
            current.total_cashed_out,
            current.total_freeze_spending,
        )
