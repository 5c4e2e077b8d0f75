"""
Result Models

Everything a caller gets back from the orchestrator: validation issues,
typed rejections, operation results, and the published dashboard snapshot.

DESIGN DECISION: Expected failures (bad input, stale ids) come back as
data, not exceptions. A UI can render a Rejection; it should not have to
catch anything to show "amount must be greater than zero".
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

from piggybank.models.ledger import BalanceBreakdown, Money, TodayStatus, utc_now
from piggybank.utils.formatters import StreakTier
from piggybank.utils.money import ZERO


T = TypeVar("T")


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Machine-readable code (e.g., 'future_date', 'exceeds_balance')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one operation's inputs."""

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue
        return None


# =============================================================================
# REJECTIONS
# =============================================================================

class RejectionKind(str, Enum):
    """Bad input versus a stale reference."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"


class Rejection(BaseModel):
    """A typed, recoverable refusal to perform an operation."""

    kind: RejectionKind
    code: str = Field(
        ...,
        description="Specific reason, e.g. 'future_date' or 'deduction_not_found'"
    )
    message: str
    issues: list[ValidationIssue] = Field(default_factory=list)


# =============================================================================
# SNAPSHOT
# =============================================================================

class DashboardSnapshot(BaseModel):
    """
    Everything a display surface needs, derived in one pass.

    Published after every mutating operation. Subscribers hold on to the
    latest one; nothing in here is ever written back to storage.
    """

    published_at: datetime = Field(default_factory=utc_now)
    today: date

    # Balance
    actual_balance: Money = ZERO
    breakdown: BalanceBreakdown = Field(default_factory=BalanceBreakdown)
    reward_rate: Money = Decimal("5.00")

    # Previews for today's buttons (raw ledger and net of deductions)
    exercise_preview_raw: Money = ZERO
    miss_preview_raw: Money = ZERO
    exercise_preview: Money = ZERO
    miss_preview: Money = ZERO

    # Streak
    streak: int = Field(default=0, ge=0)
    streak_tier: StreakTier = StreakTier.NONE
    today_status: TodayStatus

    # Freezes
    available_freezes: int = Field(default=0, ge=0)
    max_freezes: int = Field(default=2, ge=0)
    freeze_cost: Money = ZERO
    frozen_dates: set[date] = Field(default_factory=set)
    missed_day_for_freeze: Optional[date] = None

    # Stats
    total_workouts: int = Field(default=0, ge=0)
    total_workouts_rewarded: int = Field(default=0, ge=0)
    reward_count: int = Field(default=0, ge=0)


# =============================================================================
# OPERATION RESULT
# =============================================================================

class OperationResult(BaseModel, Generic[T]):
    """
    Result of one orchestrator mutation.

    success=True carries value (and the snapshot published afterwards);
    success=False carries a rejection and nothing was persisted.
    """

    success: bool
    value: Optional[T] = None
    rejection: Optional[Rejection] = None
    snapshot: Optional[DashboardSnapshot] = None
    correlation_id: Optional[UUID] = None

    @classmethod
    def ok(
        cls,
        value: Optional[T] = None,
        correlation_id: Optional[UUID] = None,
    ) -> "OperationResult[T]":
        return cls(success=True, value=value, correlation_id=correlation_id)

    @classmethod
    def rejected(
        cls,
        rejection: Rejection,
        correlation_id: Optional[UUID] = None,
    ) -> "OperationResult[T]":
        return cls(success=False, rejection=rejection, correlation_id=correlation_id)
