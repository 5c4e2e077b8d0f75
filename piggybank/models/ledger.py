"""
Core Data Models for Piggy Bank

These models define the persisted shapes of the ledger:
1. LedgerEntry - one row per calendar date, owned by the ledger store
2. DeductionRecord - a cash-out, owned by the deduction store
3. BalanceBreakdown - the derived numbers behind the displayed balance

DESIGN DECISION: Money is Decimal everywhere, never float.
Halving a balance over and over in binary floating point drifts by a cent
every few steps; Decimal with one rounding rule does not.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from piggybank.utils.money import ZERO, to_decimal


Money = Annotated[Decimal, BeforeValidator(to_decimal)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# LEDGER
# =============================================================================

class LedgerEntry(BaseModel):
    """
    The outcome of a single calendar date.

    balance_after is a pure function of the nearest earlier entry's
    balance_after (or 0), exercised, and the reward rate in effect when it
    was computed. There is no pointer to the previous entry; adjacency
    comes from date-ordered range queries.
    """
    model_config = ConfigDict(frozen=True)

    date: date
    exercised: bool = Field(
        ...,
        description="True if the user exercised on this date"
    )
    balance_after: Money = Field(
        ...,
        ge=0,
        description="Ledger balance immediately after this date's outcome"
    )


# =============================================================================
# DEDUCTIONS (CASH-OUTS)
# =============================================================================

class DeductionRecord(BaseModel):
    """
    A cash-out from the piggy bank.

    CRITICAL: Recording a cash-out never modifies the ledger.
    The spendable balance is always ledger balance minus live deductions,
    so editing or deleting a record changes the projection automatically.

    The snapshots are informational only. reward_rate_at_creation keeps
    "how many workouts this represents" stable when the rate changes later.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique cash-out ID"
    )
    label: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the user treated themselves to"
    )
    amount: Money = Field(
        ...,
        gt=0,
        description="Amount cashed out"
    )
    emoji: str = Field(
        default="\U0001F381",
        max_length=16,
        description="Decoration shown next to the reward"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the cash-out was made"
    )
    balance_before_snapshot: Money = Field(
        default=ZERO,
        description="Spendable balance right before this cash-out"
    )
    balance_after_snapshot: Money = Field(
        default=ZERO,
        description="Spendable balance right after this cash-out"
    )
    reward_rate_at_creation: Money = Field(
        default=Decimal("5.00"),
        ge=0,
        description="Reward per workout when the cash-out was made"
    )

    @property
    def workouts_represented(self) -> int:
        """How many workouts earned this, at the rate in effect back then."""
        if self.reward_rate_at_creation <= 0:
            return 0
        return int(self.amount // self.reward_rate_at_creation)


# =============================================================================
# PROJECTION
# =============================================================================

class BalanceBreakdown(BaseModel):
    """
    The pieces of the displayed balance.

    actual_balance = max(0, ledger_balance - total_cashed_out - total_freeze_spending)
    """

    ledger_balance: Money = ZERO
    total_cashed_out: Money = ZERO
    total_freeze_spending: Money = ZERO
    actual_balance: Money = ZERO

    @property
    def total_deductions(self) -> Decimal:
        return self.total_cashed_out + self.total_freeze_spending


# =============================================================================
# USER SETTINGS
# =============================================================================

class UserSettings(BaseModel):
    """
    The persisted settings record.

    The freeze fields are owned by the freeze inventory; reward rate and
    reminder fields are owned by the preferences service. Both write the
    same record, always under the orchestrator's writer lock.
    """

    reward_rate: Money = Field(
        default=Decimal("5.00"),
        gt=0,
        description="Amount earned per exercised day"
    )
    available_freezes: int = Field(
        default=0,
        ge=0,
        description="Streak freezes currently held"
    )
    frozen_dates: set[date] = Field(
        default_factory=set,
        description="Dates that neither extend nor break the streak"
    )
    total_freeze_spending: Money = Field(
        default=ZERO,
        ge=0,
        description="Cumulative cost of all freezes used"
    )

    # Reminder preferences (consumed by the notification scheduler)
    reminders_enabled: bool = False
    reminder_hour: int = Field(default=20, ge=0, le=23)
    reminder_minute: int = Field(default=0, ge=0, le=59)

    @field_validator('frozen_dates', mode='before')
    @classmethod
    def coerce_frozen_dates(cls, v):
        """Accept any iterable of dates (lists come back from JSON)."""
        if v is None:
            return set()
        return set(v)


class TodayStatus(BaseModel):
    """Whether today is logged, for the reminder scheduler."""

    day: date
    logged: bool
    exercised: Optional[bool] = None

    @model_validator(mode='after')
    def check_consistency(self) -> 'TodayStatus':
        if not self.logged and self.exercised is not None:
            raise ValueError("An unlogged day cannot carry an outcome")
        return self

    @property
    def needs_reminder(self) -> bool:
        """Nag when nothing is logged yet or today was logged as a rest day."""
        return not self.logged or self.exercised is False


class LedgerWriteResult(BaseModel):
    """
    What a ledger write did.

    changed is False for no-ops (same outcome re-recorded, unknown date
    removed, empty batch). rewritten counts entries whose stored balance
    a recompute pass had to change.
    """

    entries: list[LedgerEntry] = Field(default_factory=list)
    changed: bool = True
    rewritten: int = Field(default=0, ge=0)

    @property
    def entry(self) -> Optional[LedgerEntry]:
        """The single written entry, for one-date operations."""
        return self.entries[0] if self.entries else None
