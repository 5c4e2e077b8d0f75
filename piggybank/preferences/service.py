"""
Preferences Service

The user-editable part of the settings record: reward rate and reminder
schedule. Freeze fields on the same record belong to FreezeInventory.

A new reward rate applies to outcomes recorded from then on (and to
any cascade those trigger). Existing balances are not rewritten.
"""

from decimal import Decimal
from typing import Optional

from piggybank.errors import ValidationError
from piggybank.models.ledger import UserSettings
from piggybank.models.results import ValidationIssue, ValidationResult
from piggybank.services.storage import SettingsStorageInterface
from piggybank.utils.money import MoneyLike, round_money, to_decimal
from piggybank.validation import InputValidator


class PreferencesService:

    def __init__(
        self,
        settings_storage: SettingsStorageInterface,
        validator: Optional[InputValidator] = None,
    ):
        self._settings = settings_storage
        self._validator = validator or InputValidator()

    async def get_settings(self) -> UserSettings:
        return await self._settings.load_settings()

    async def get_reward_rate(self) -> Decimal:
        return (await self._settings.load_settings()).reward_rate

    async def set_reward_rate(self, rate: MoneyLike) -> tuple[Decimal, UserSettings]:
        """
        Change the amount earned per exercised day.

        Returns:
            (previous rate, updated settings)

        Raises:
            ValidationError: If the rate is not a positive whole-cent amount
        """
        try:
            value = to_decimal(rate)
        except ValueError as e:
            raise ValidationError.from_result(ValidationResult(issues=[
                ValidationIssue(
                    field="reward_rate",
                    issue_type="invalid_amount",
                    message=str(e),
                    severity="error",
                )
            ]))

        result = self._validator.validate_reward_rate(value)
        if result.has_errors:
            raise ValidationError.from_result(result)
        value = round_money(value)

        settings = await self._settings.load_settings()
        previous = settings.reward_rate
        settings.reward_rate = value
        return previous, await self._settings.save_settings(settings)

    async def update_reminders(
        self,
        enabled: bool,
        hour: Optional[int] = None,
        minute: Optional[int] = None,
    ) -> UserSettings:
        """Turn reminders on or off; hour and minute default to the stored time."""
        settings = await self._settings.load_settings()
        hour = settings.reminder_hour if hour is None else hour
        minute = settings.reminder_minute if minute is None else minute

        result = self._validator.validate_reminder_time(hour, minute)
        if result.has_errors:
            raise ValidationError.from_result(result)

        settings.reminders_enabled = enabled
        settings.reminder_hour = hour
        settings.reminder_minute = minute
        return await self._settings.save_settings(settings)
