"""
Input Validation

DESIGN DECISION: Every rule a mutating operation enforces lives here, and
each one is reported as a ValidationIssue rather than raised on the spot.
Components call a validate_* method, and if the result has errors they
raise ValidationError built from the first one. That gives:
1. One place to read all the business rules
2. Machine-readable codes the UI can switch on
3. Rules that are testable without any storage

IMPORTANT: Validation NEVER silently fixes issues. A zero amount is
rejected, not bumped to one cent; 2.005 is rejected, not rounded to 2.01;
a future date is rejected, not clamped to today.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from piggybank.models.results import ValidationIssue, ValidationResult
from piggybank.utils.dates import is_future
from piggybank.utils.formatters import format_currency
from piggybank.utils.money import CENT

MAX_LABEL_LENGTH = 200
MAX_EMOJI_LENGTH = 16


def _has_sub_cents(amount: Decimal) -> bool:
    return amount != amount.quantize(CENT)


class InputValidator:
    """Stateless checks for the inputs of every mutating operation."""

    def validate_outcome_date(
        self,
        day: date,
        today: date,
    ) -> ValidationResult:
        """Outcomes can be recorded for today or any past date."""
        issues = []

        if is_future(day, today):
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Cannot record an outcome for {day.isoformat()}, which is in the future",
                severity="error",
                suggested_fix="Pick today or an earlier date",
            ))

        return ValidationResult(issues=issues)

    def validate_outcome_dates(
        self,
        days: list[date],
        today: date,
    ) -> ValidationResult:
        """A batch is rejected as a whole if any single date is invalid."""
        issues = []
        for day in sorted(set(days)):
            issues.extend(self.validate_outcome_date(day, today).issues)
        return ValidationResult(issues=issues)

    def _validate_label_and_amount(
        self,
        label: str,
        amount: Decimal,
        emoji: Optional[str] = None,
    ) -> list[ValidationIssue]:
        issues = []

        if not label or not label.strip():
            issues.append(ValidationIssue(
                field="label",
                issue_type="empty_label",
                message="Give the reward a name",
                severity="error",
            ))
        elif len(label.strip()) > MAX_LABEL_LENGTH:
            issues.append(ValidationIssue(
                field="label",
                issue_type="label_too_long",
                message="Reward names are limited to 200 characters",
                severity="error",
            ))

        if amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="non_positive_amount",
                message="Amount must be greater than zero",
                severity="error",
            ))
        elif _has_sub_cents(amount):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="sub_cent_amount",
                message=f"Amounts are in whole cents, got {amount}",
                severity="error",
            ))

        if emoji is not None and len(emoji) > MAX_EMOJI_LENGTH:
            issues.append(ValidationIssue(
                field="emoji",
                issue_type="emoji_too_long",
                message=f"Decorations are limited to {MAX_EMOJI_LENGTH} characters",
                severity="error",
            ))

        return issues

    def validate_deduction(
        self,
        label: str,
        amount: Decimal,
        available: Decimal,
        emoji: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate a new cash-out.

        Args:
            label: What the money is for
            amount: Amount to cash out
            available: Current spendable balance
            emoji: Decoration, when the caller gave one
        """
        issues = self._validate_label_and_amount(label, amount, emoji)

        if amount > 0 and amount > available:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="exceeds_balance",
                message=f"Cannot cash out {format_currency(amount)}, only {format_currency(available)} available",
                severity="error",
                suggested_fix=f"Enter {format_currency(available)} or less",
            ))

        return ValidationResult(issues=issues)

    def validate_deduction_update(
        self,
        label: str,
        amount: Decimal,
        available: Decimal,
        old_amount: Decimal,
        emoji: Optional[str] = None,
    ) -> ValidationResult:
        """
        Validate an edit to an existing cash-out.

        The record's own old amount is added back before comparing, so
        editing a cash-out to the same amount is always allowed.
        """
        issues = self._validate_label_and_amount(label, amount, emoji)

        ceiling = available + old_amount
        if amount > 0 and amount > ceiling:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="exceeds_balance",
                message=f"Cannot change this cash-out to {format_currency(amount)}, at most {format_currency(ceiling)} is available",
                severity="error",
                suggested_fix=f"Enter {format_currency(ceiling)} or less",
            ))

        return ValidationResult(issues=issues)

    def validate_reward_rate(self, rate: Decimal) -> ValidationResult:
        issues = []
        if rate <= 0:
            issues.append(ValidationIssue(
                field="reward_rate",
                issue_type="non_positive_rate",
                message="Reward rate must be greater than zero",
                severity="error",
            ))
        elif _has_sub_cents(rate):
            issues.append(ValidationIssue(
                field="reward_rate",
                issue_type="sub_cent_amount",
                message=f"Reward rate is in whole cents, got {rate}",
                severity="error",
            ))
        return ValidationResult(issues=issues)

    def validate_reminder_time(
        self,
        hour: int,
        minute: int,
    ) -> ValidationResult:
        issues = []
        if not 0 <= hour <= 23:
            issues.append(ValidationIssue(
                field="reminder_hour",
                issue_type="invalid_hour",
                message=f"Hour must be between 0 and 23, got {hour}",
                severity="error",
            ))
        if not 0 <= minute <= 59:
            issues.append(ValidationIssue(
                field="reminder_minute",
                issue_type="invalid_minute",
                message=f"Minute must be between 0 and 59, got {minute}",
                severity="error",
            ))
        return ValidationResult(issues=issues)

    def validate_freeze_acquisition(
        self,
        available: int,
        max_freezes: int,
    ) -> ValidationResult:
        issues = []
        if available >= max_freezes:
            issues.append(ValidationIssue(
                field="available_freezes",
                issue_type="max_freezes",
                message=f"You already hold the maximum of {max_freezes} freezes",
                severity="error",
            ))
        return ValidationResult(issues=issues)

    def validate_freeze_use(
        self,
        available: int,
        cost: Decimal,
        balance: Optional[Decimal] = None,
    ) -> ValidationResult:
        """
        Validate spending a freeze.

        Args:
            available: Freezes currently held
            cost: What this freeze will cost
            balance: Spendable balance; only checked when given
        """
        issues = []
        if available <= 0:
            issues.append(ValidationIssue(
                field="available_freezes",
                issue_type="no_freezes",
                message="No streak freezes available",
                severity="error",
                suggested_fix="Acquire a freeze first",
            ))
        elif balance is not None and balance < cost:
            issues.append(ValidationIssue(
                field="balance",
                issue_type="insufficient_balance",
                message=f"A freeze costs {format_currency(cost)}, only {format_currency(balance)} available",
                severity="error",
            ))
        return ValidationResult(issues=issues)
