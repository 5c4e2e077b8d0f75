"""
Tests for Piggy Bank models

Test strategy:
1. Unit tests for individual models (ledger, results, audit)
2. Validation rules enforced by the schemas themselves
3. No storage involved
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from piggybank.errors import DeductionNotFoundError, ValidationError
from piggybank.models.ledger import (
    BalanceBreakdown,
    DeductionRecord,
    LedgerEntry,
    LedgerWriteResult,
    TodayStatus,
    UserSettings,
)
from piggybank.models.results import (
    OperationResult,
    Rejection,
    RejectionKind,
    ValidationIssue,
    ValidationResult,
)
from piggybank.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for ledger-related Pydantic models."""

    def test_ledger_entry_creation(self):
        """Test LedgerEntry model creation."""
        entry = LedgerEntry(date=date(2024, 3, 10), exercised=True, balance_after="5.00")
        assert entry.balance_after == Decimal("5.00")
        assert entry.date == date(2024, 3, 10)

    def test_ledger_entry_float_via_str(self):
        """Floats are converted through their string form."""
        entry = LedgerEntry(date=date(2024, 3, 10), exercised=True, balance_after=0.1)
        assert entry.balance_after == Decimal("0.1")

    def test_ledger_entry_is_frozen(self):
        """Entries are replaced, never mutated."""
        entry = LedgerEntry(date=date(2024, 3, 10), exercised=True, balance_after="5.00")
        with pytest.raises(ValueError):
            entry.exercised = False

    def test_ledger_entry_rejects_negative_balance(self):
        """The ledger balance can't go below zero."""
        with pytest.raises(ValueError):
            LedgerEntry(date=date(2024, 3, 10), exercised=False, balance_after="-0.01")

    def test_deduction_strips_whitespace(self):
        """Test that whitespace is stripped from labels."""
        record = DeductionRecord(label="  Coffee  ", amount="3")
        assert record.label == "Coffee"

    def test_deduction_rejects_zero_amount(self):
        """Cash-outs must be positive."""
        with pytest.raises(ValueError):
            DeductionRecord(label="Coffee", amount="0")

    def test_deduction_workouts_represented(self):
        """Amount divided by the creation rate, rounded down."""
        record = DeductionRecord(
            label="Shoes",
            amount="24.99",
            reward_rate_at_creation="5.00",
        )
        assert record.workouts_represented == 4

    def test_deduction_workouts_with_zero_rate(self):
        """A zero creation rate represents no workouts."""
        record = DeductionRecord(label="Gift", amount="10", reward_rate_at_creation="0")
        assert record.workouts_represented == 0

    def test_breakdown_total_deductions(self):
        """Cash-outs and freeze spending add up."""
        breakdown = BalanceBreakdown(total_cashed_out="3.00", total_freeze_spending="10.00")
        assert breakdown.total_deductions == Decimal("13.00")

    def test_write_result_entry(self):
        """entry is the first written entry, or None."""
        assert LedgerWriteResult(changed=False).entry is None


class TestUserSettings:
    """Tests for the settings record."""

    def test_defaults(self):
        """Test default values."""
        settings = UserSettings()
        assert settings.reward_rate == Decimal("5.00")
        assert settings.available_freezes == 0
        assert settings.reminder_hour == 20
        assert settings.reminder_minute == 0

    def test_frozen_dates_accept_lists(self):
        """Lists from JSON become sets."""
        settings = UserSettings(frozen_dates=["2024-03-01", date(2024, 3, 1), "2024-03-02"])
        assert settings.frozen_dates == {date(2024, 3, 1), date(2024, 3, 2)}

    def test_rejects_zero_rate(self):
        """The reward rate must be positive."""
        with pytest.raises(ValueError):
            UserSettings(reward_rate="0")

    def test_reminder_bounds(self):
        """Hours and minutes are range checked."""
        with pytest.raises(ValueError):
            UserSettings(reminder_hour=24)
        with pytest.raises(ValueError):
            UserSettings(reminder_minute=-1)


class TestTodayStatus:
    """Tests for the reminder scheduler's view of today."""

    def test_needs_reminder(self):
        """Unlogged and rest days need a nudge; workouts don't."""
        today = date(2024, 3, 15)
        assert TodayStatus(day=today, logged=False).needs_reminder is True
        assert TodayStatus(day=today, logged=True, exercised=False).needs_reminder is True
        assert TodayStatus(day=today, logged=True, exercised=True).needs_reminder is False

    def test_unlogged_day_has_no_outcome(self):
        """Test consistency validation."""
        with pytest.raises(ValueError, match="unlogged day cannot carry an outcome"):
            TodayStatus(day=date(2024, 3, 15), logged=False, exercised=True)


class TestResultModels:
    """Tests for validation results, rejections and operation results."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(issues=[
            ValidationIssue(
                field="amount",
                issue_type="non_positive_amount",
                message="Amount must be greater than zero",
                severity="error",
            ),
        ])
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1
        assert result.first_error.field == "amount"

    def test_validation_result_warnings_only(self):
        """Warnings don't make a result invalid."""
        result = ValidationResult(issues=[
            ValidationIssue(
                field="label",
                issue_type="long",
                message="Quite a long label",
                severity="warning",
            ),
        ])
        assert result.has_errors is False
        assert result.first_error is None

    def test_operation_result_helpers(self):
        """ok() and rejected() set success accordingly."""
        ok = OperationResult.ok(5)
        rejected = OperationResult.rejected(Rejection(
            kind=RejectionKind.VALIDATION,
            code="future_date",
            message="Too soon",
        ))
        assert ok.success is True and ok.value == 5
        assert rejected.success is False and rejected.value is None


class TestErrors:
    """Tests for the domain exceptions."""

    def test_validation_error_from_result(self):
        """The first error issue becomes the code and message."""
        result = ValidationResult(issues=[
            ValidationIssue(field="x", issue_type="note", message="fyi", severity="info"),
            ValidationIssue(field="date", issue_type="future_date", message="Too soon"),
        ])
        error = ValidationError.from_result(result)
        rejection = error.to_rejection()

        assert error.code == "future_date"
        assert rejection.kind == RejectionKind.VALIDATION
        assert rejection.message == "Too soon"
        assert len(rejection.issues) == 2

    def test_validation_error_needs_an_error(self):
        """A passing result can't become an exception."""
        with pytest.raises(ValueError):
            ValidationError.from_result(ValidationResult())

    def test_not_found_rejection(self):
        """Not-found has its own rejection kind."""
        rejection = DeductionNotFoundError(uuid4()).to_rejection()
        assert rejection.kind == RejectionKind.NOT_FOUND
        assert rejection.code == "deduction_not_found"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.OUTCOME_RECORDED,
            description="2024-03-10 recorded as exercised",
        )
        assert event.event_type == AuditEventType.OUTCOME_RECORDED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description="Something broke",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "system_error"
        assert log_dict["severity"] == "error"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.FREEZE_ACQUIRED,
            description="Streak freeze acquired",
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "freeze_acquired"
        assert row[5] == ""

    def test_audit_event_builder_outcome_recorded(self):
        """Ledger events are keyed by ISO date."""
        correlation_id = uuid4()
        event = AuditEventBuilder.outcome_recorded(
            date(2024, 3, 10), False, Decimal("2.50"), correlation_id
        )
        assert event.entity_type == "ledger_entry"
        assert event.entity_id == "2024-03-10"
        assert "$2.50" in event.description
        assert event.is_user_action is True

    def test_audit_event_builder_rebuild_is_warning(self):
        """A rebuild is worth noticing."""
        event = AuditEventBuilder.ledger_rebuilt(3, "scan out of order", uuid4())
        assert event.severity == AuditSeverity.WARNING
        assert event.details["entries_rewritten"] == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
