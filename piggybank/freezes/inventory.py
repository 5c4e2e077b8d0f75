"""
Freeze Inventory

A streak freeze protects one missed (or unlogged) day: the streak walk
passes over a frozen date instead of stopping there.

DESIGN DECISION: Acquiring a freeze is free; using one costs
freeze_cost_multiplier x the reward rate at the moment of use. That cost
is accumulated in total_freeze_spending and subtracted at read time like
a cash-out. It is never written into the ledger, so toggling an outcome
later cannot lose track of money spent on freezes.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from piggybank.errors import ValidationError
from piggybank.ledger.projection import BalanceProjection
from piggybank.models.ledger import UserSettings
from piggybank.services.storage import SettingsStorageInterface
from piggybank.utils.money import round_money
from piggybank.validation import InputValidator


class FreezeInventory:
    """Owns the freeze fields of the settings record."""

    def __init__(
        self,
        settings_storage: SettingsStorageInterface,
        projection: Optional[BalanceProjection] = None,
        validator: Optional[InputValidator] = None,
        max_freezes: int = 2,
        cost_multiplier: Decimal = Decimal("2"),
        requires_balance: bool = False,
    ):
        """
        Args:
            settings_storage: Where the inventory is persisted
            projection: Needed only when requires_balance is on
            max_freezes: Most freezes a user can hold at once
            cost_multiplier: Freeze cost in multiples of the reward rate
            requires_balance: Refuse to use a freeze the balance can't cover
        """
        if requires_balance and projection is None:
            raise ValueError("requires_balance needs a BalanceProjection")

        self._settings = settings_storage
        self._projection = projection
        self._validator = validator or InputValidator()
        self._max_freezes = max_freezes
        self._cost_multiplier = cost_multiplier
        self._requires_balance = requires_balance

    @property
    def max_freezes(self) -> int:
        return self._max_freezes

    def cost_for_rate(self, rate: Decimal) -> Decimal:
        return round_money(self._cost_multiplier * rate)

    async def freeze_cost(self) -> Decimal:
        """What using a freeze would cost right now."""
        settings = await self._settings.load_settings()
        return self.cost_for_rate(settings.reward_rate)

    async def acquire_freeze(self) -> UserSettings:
        """
        Add one freeze to the inventory.

        Raises:
            ValidationError: Already holding max_freezes
        """
        settings = await self._settings.load_settings()

        result = self._validator.validate_freeze_acquisition(
            settings.available_freezes, self._max_freezes
        )
        if result.has_errors:
            raise ValidationError.from_result(result)

        settings.available_freezes += 1
        return await self._settings.save_settings(settings)

    async def use_freeze(self, day: date) -> tuple[Decimal, UserSettings]:
        """
        Spend a freeze on ``day``.

        Returns:
            (cost charged, updated settings)

        Raises:
            ValidationError: No freeze available, or (when required) the
                balance can't cover the cost
        """
        settings = await self._settings.load_settings()
        cost = self.cost_for_rate(settings.reward_rate)
        balance = None
        if self._requires_balance:
            balance = await self._projection.actual_balance()

        result = self._validator.validate_freeze_use(
            available=settings.available_freezes,
            cost=cost,
            balance=balance,
        )
        if result.has_errors:
            raise ValidationError.from_result(result)

        settings.available_freezes -= 1
        settings.frozen_dates.add(day)
        settings.total_freeze_spending = round_money(settings.total_freeze_spending + cost)
        return cost, await self._settings.save_settings(settings)

    async def set_available_freezes(self, count: int) -> tuple[int, UserSettings]:
        """
        Admin override of the freeze count, clamped to [0, max_freezes].

        Returns:
            (previous count, updated settings)
        """
        settings = await self._settings.load_settings()
        previous = settings.available_freezes
        settings.available_freezes = max(0, min(count, self._max_freezes))
        return previous, await self._settings.save_settings(settings)

    async def available_freezes(self) -> int:
        return (await self._settings.load_settings()).available_freezes

    async def frozen_dates(self) -> set[date]:
        return set((await self._settings.load_settings()).frozen_dates)

    async def total_freeze_spending(self) -> Decimal:
        return (await self._settings.load_settings()).total_freeze_spending

    async def is_date_frozen(self, day: date) -> bool:
        return day in await self.frozen_dates()
