"""
Main Orchestrator for Piggy Bank

This module ties together all the components and is the only entry
point a UI, widget or reminder scheduler should talk to.

DESIGN DECISION: The orchestrator enforces the boundaries:
- One writer at a time (a single asyncio.Lock around every mutation)
- A mutation that started always finishes, even if the caller goes away
- Expected failures come back as Rejection data, never as exceptions
- Every change is audited under one correlation id

Every mutation runs in two phases:

    phase 1  validate + persist + cascade + audit   (locked, shielded)
    phase 2  derive a DashboardSnapshot and publish  (cancellable)

Cancelling the caller during phase 1 does not abort the write: the
shielded task runs to completion and the caller just stops waiting.
Cancelling during phase 2 only skips the refresh.
"""

import asyncio
import inspect
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar
from uuid import UUID

import structlog

from piggybank.audit import AuditLogger, create_correlation_id
from piggybank.audit.logger import configure_logging
from piggybank.config import LedgerSettings, get_settings
from piggybank.deductions import DeductionTracker
from piggybank.errors import DeductionNotFoundError, LedgerConsistencyError, ValidationError
from piggybank.freezes import FreezeInventory
from piggybank.ledger import BalanceProjection, BalanceRecalculationEngine, calculate_actual_balance
from piggybank.models.audit import AuditEventBuilder
from piggybank.models.ledger import (
    DeductionRecord,
    LedgerEntry,
    LedgerWriteResult,
    TodayStatus,
    UserSettings,
)
from piggybank.models.results import DashboardSnapshot, OperationResult
from piggybank.preferences import PreferencesService
from piggybank.services.storage import (
    DeductionStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDeductionStorage,
    GoogleSheetsLedgerStorage,
    GoogleSheetsSettingsStorage,
    InMemoryAuditStorage,
    InMemoryDeductionStorage,
    InMemoryLedgerStorage,
    InMemorySettingsStorage,
    LedgerStorageInterface,
    SettingsStorageInterface,
)
from piggybank.streaks import StreakCalculator
from piggybank.utils.dates import TodayProvider, today as system_today
from piggybank.utils.formatters import UrgencyLevel, streak_tier, urgency_level
from piggybank.utils.money import MoneyLike
from piggybank.validation import InputValidator


T = TypeVar("T")

Subscriber = Callable[[DashboardSnapshot], Any]

logger = structlog.get_logger("piggybank.orchestrator")


class PiggyBank:
    """
    Facade over the ledger, cash-outs, freezes and preferences.

    Storages are injected; there is no global instance. Use
    create_app_components() to build one from configuration.
    """

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        deduction_storage: DeductionStorageInterface,
        settings_storage: SettingsStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        ledger_settings: Optional[LedgerSettings] = None,
        today_provider: TodayProvider = system_today,
    ):
        config = ledger_settings or get_settings().ledger
        validator = InputValidator()

        self._settings = settings_storage
        self._today = today_provider
        self._audit = audit_logger or AuditLogger()  # Local-only logging

        self._engine = BalanceRecalculationEngine(
            ledger_storage,
            settings_storage,
            validator=validator,
            today_provider=today_provider,
        )
        self._projection = BalanceProjection(
            ledger_storage,
            deduction_storage,
            settings_storage,
        )
        self._streaks = StreakCalculator(
            ledger_storage,
            today_provider=today_provider,
            freeze_lookback_days=config.freeze_lookback_days,
        )
        self._tracker = DeductionTracker(
            deduction_storage,
            settings_storage,
            self._projection,
            validator=validator,
            default_emoji=config.default_emoji,
        )
        self._freezes = FreezeInventory(
            settings_storage,
            projection=self._projection,
            validator=validator,
            max_freezes=config.max_freezes,
            cost_multiplier=config.freeze_cost_multiplier,
            requires_balance=config.freeze_requires_balance,
        )
        self._preferences = PreferencesService(settings_storage, validator=validator)

        self._lock = asyncio.Lock()
        self._subscribers: list[Subscriber] = []
        self._latest: Optional[DashboardSnapshot] = None

    # =========================================================================
    # MUTATION PLUMBING
    # =========================================================================

    async def _with_consistency_retry(
        self,
        action: Callable[[UUID], Awaitable[T]],
        correlation_id: UUID,
    ) -> T:
        try:
            return await action(correlation_id)
        except LedgerConsistencyError as e:
            await self._audit.log_consistency_error(str(e), correlation_id)
            rewritten = await self._engine.rebuild()
            await self._audit.log_rebuild(rewritten, str(e), correlation_id)
            # One retry; a second failure propagates
            return await action(correlation_id)

    async def _run_locked(
        self,
        operation: str,
        action: Callable[[UUID], Awaitable[T]],
        correlation_id: UUID,
    ) -> OperationResult:
        async with self._lock:
            try:
                value = await self._with_consistency_retry(action, correlation_id)
            except (ValidationError, DeductionNotFoundError) as e:
                rejection = e.to_rejection()
                await self._audit.log_rejection(
                    operation, rejection.code, rejection.message, correlation_id
                )
                return OperationResult.rejected(rejection, correlation_id)
            except Exception as e:
                await self._audit.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"operation": operation},
                    correlation_id=correlation_id,
                )
                raise
            return OperationResult.ok(value, correlation_id)

    async def _mutate(
        self,
        operation: str,
        action: Callable[[UUID], Awaitable[T]],
    ) -> OperationResult:
        correlation_id = create_correlation_id()

        # Phase 1: must complete even if the caller is cancelled
        result = await asyncio.shield(
            self._run_locked(operation, action, correlation_id)
        )

        # Phase 2: refresh; fine to cancel
        if result.success:
            result.snapshot = await self._publish()
        return result

    async def _publish(self) -> DashboardSnapshot:
        snapshot = await self.snapshot()
        self._latest = snapshot

        for callback in list(self._subscribers):
            try:
                outcome = callback(snapshot)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(
                    "subscriber_failed",
                    subscriber=getattr(callback, "__name__", repr(callback)),
                    error=str(e),
                )

        return snapshot

    # =========================================================================
    # LEDGER
    # =========================================================================

    async def record_outcome(self, day: date, exercised: bool) -> OperationResult:
        """Record whether the user exercised on ``day``."""

        async def action(correlation_id: UUID) -> LedgerWriteResult:
            write = await self._engine.record_outcome(day, exercised)
            if write.changed:
                await self._audit.log_outcome_recorded(
                    day, exercised, write.entry.balance_after, correlation_id
                )
                await self._audit.log_cascade(day, write.rewritten, correlation_id)
            return write

        return await self._mutate("record_outcome", action)

    async def record_today(self, exercised: bool) -> OperationResult:
        return await self.record_outcome(self._today(), exercised)

    async def bulk_record_outcomes(
        self,
        days: Iterable[date],
        exercised: bool,
    ) -> OperationResult:
        """Record one outcome for several dates, e.g. from a calendar multi-select."""
        days = list(days)

        async def action(correlation_id: UUID) -> LedgerWriteResult:
            write = await self._engine.bulk_record_outcomes(days, exercised)
            if write.changed:
                await self._audit.log(AuditEventBuilder.outcomes_bulk_recorded(
                    days=[e.date for e in write.entries],
                    exercised=exercised,
                    rewritten=write.rewritten,
                    correlation_id=correlation_id,
                ))
            return write

        return await self._mutate("bulk_record_outcomes", action)

    async def remove_outcome(self, day: date) -> OperationResult:

        async def action(correlation_id: UUID) -> LedgerWriteResult:
            write = await self._engine.remove_outcome(day)
            if write.changed:
                await self._audit.log(AuditEventBuilder.outcome_removed(day, correlation_id))
                await self._audit.log_cascade(day, write.rewritten, correlation_id)
            return write

        return await self._mutate("remove_outcome", action)

    async def rebuild_ledger(self) -> OperationResult:
        """Recompute every balance from scratch."""

        async def action(correlation_id: UUID) -> int:
            rewritten = await self._engine.rebuild()
            await self._audit.log_rebuild(rewritten, "requested", correlation_id)
            return rewritten

        return await self._mutate("rebuild_ledger", action)

    # =========================================================================
    # CASH-OUTS
    # =========================================================================

    async def create_deduction(
        self,
        label: str,
        amount: MoneyLike,
        emoji: Optional[str] = None,
    ) -> OperationResult:

        async def action(correlation_id: UUID) -> DeductionRecord:
            record = await self._tracker.create_deduction(label, amount, emoji)
            await self._audit.log(AuditEventBuilder.deduction_created(
                record.id, record.label, record.amount, correlation_id
            ))
            return record

        return await self._mutate("create_deduction", action)

    async def update_deduction(
        self,
        deduction_id: UUID,
        label: str,
        amount: MoneyLike,
        emoji: Optional[str] = None,
    ) -> OperationResult:

        async def action(correlation_id: UUID) -> DeductionRecord:
            before = await self._tracker.get_deduction(deduction_id)
            record = await self._tracker.update_deduction(deduction_id, label, amount, emoji)
            await self._audit.log(AuditEventBuilder.deduction_updated(
                record.id,
                before.amount if before else record.amount,
                record.amount,
                correlation_id,
            ))
            return record

        return await self._mutate("update_deduction", action)

    async def delete_deduction(self, deduction_id: UUID) -> OperationResult:

        async def action(correlation_id: UUID) -> DeductionRecord:
            record = await self._tracker.delete_deduction(deduction_id)
            await self._audit.log(AuditEventBuilder.deduction_deleted(
                record.id, record.amount, correlation_id
            ))
            return record

        return await self._mutate("delete_deduction", action)

    # =========================================================================
    # FREEZES
    # =========================================================================

    async def acquire_freeze(self) -> OperationResult:

        async def action(correlation_id: UUID) -> int:
            settings = await self._freezes.acquire_freeze()
            await self._audit.log(AuditEventBuilder.freeze_acquired(
                settings.available_freezes, correlation_id
            ))
            return settings.available_freezes

        return await self._mutate("acquire_freeze", action)

    async def use_freeze(self, day: date) -> OperationResult:
        """Spend a freeze on ``day``; the value is the cost charged."""

        async def action(correlation_id: UUID) -> Decimal:
            cost, settings = await self._freezes.use_freeze(day)
            await self._audit.log(AuditEventBuilder.freeze_used(
                day, cost, settings.available_freezes, correlation_id
            ))
            return cost

        return await self._mutate("use_freeze", action)

    async def set_available_freezes(self, count: int) -> OperationResult:

        async def action(correlation_id: UUID) -> int:
            previous, settings = await self._freezes.set_available_freezes(count)
            await self._audit.log(AuditEventBuilder.freezes_overridden(
                previous, settings.available_freezes, correlation_id
            ))
            return settings.available_freezes

        return await self._mutate("set_available_freezes", action)

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    async def set_reward_rate(self, rate: MoneyLike) -> OperationResult:

        async def action(correlation_id: UUID) -> Decimal:
            previous, settings = await self._preferences.set_reward_rate(rate)
            await self._audit.log(AuditEventBuilder.reward_rate_changed(
                previous, settings.reward_rate, correlation_id
            ))
            return settings.reward_rate

        return await self._mutate("set_reward_rate", action)

    async def update_reminders(
        self,
        enabled: bool,
        hour: Optional[int] = None,
        minute: Optional[int] = None,
    ) -> OperationResult:

        async def action(correlation_id: UUID) -> UserSettings:
            settings = await self._preferences.update_reminders(enabled, hour, minute)
            await self._audit.log(AuditEventBuilder.reminders_updated(
                settings.reminders_enabled,
                settings.reminder_hour,
                settings.reminder_minute,
                correlation_id,
            ))
            return settings

        return await self._mutate("update_reminders", action)

    # =========================================================================
    # READS
    # =========================================================================

    async def _today_status(self) -> TodayStatus:
        current_day = self._today()
        entry = await self._engine.get_entry(current_day)
        if entry is None:
            return TodayStatus(day=current_day, logged=False)
        return TodayStatus(day=current_day, logged=True, exercised=entry.exercised)

    async def _build_snapshot(self) -> DashboardSnapshot:
        settings = await self._settings.load_settings()
        breakdown = await self._projection.breakdown()
        exercise_raw = await self._engine.preview_outcome(True)
        miss_raw = await self._engine.preview_outcome(False)
        streak = await self._streaks.calculate_streak(settings.frozen_dates)

        return DashboardSnapshot(
            today=self._today(),
            actual_balance=breakdown.actual_balance,
            breakdown=breakdown,
            reward_rate=settings.reward_rate,
            exercise_preview_raw=exercise_raw,
            miss_preview_raw=miss_raw,
            exercise_preview=calculate_actual_balance(
                exercise_raw, breakdown.total_cashed_out, breakdown.total_freeze_spending
            ),
            miss_preview=calculate_actual_balance(
                miss_raw, breakdown.total_cashed_out, breakdown.total_freeze_spending
            ),
            streak=streak,
            streak_tier=streak_tier(streak),
            today_status=await self._today_status(),
            available_freezes=settings.available_freezes,
            max_freezes=self._freezes.max_freezes,
            freeze_cost=self._freezes.cost_for_rate(settings.reward_rate),
            frozen_dates=settings.frozen_dates,
            missed_day_for_freeze=await self._streaks.find_missed_day_for_freeze(
                settings.frozen_dates
            ),
            total_workouts=await self._engine.total_workouts(),
            total_workouts_rewarded=await self._tracker.total_workouts_rewarded(),
            reward_count=await self._tracker.reward_count(),
        )

    async def snapshot(self) -> DashboardSnapshot:
        """Everything the dashboard shows, read under the writer lock."""
        async with self._lock:
            return await self._build_snapshot()

    @property
    def latest_snapshot(self) -> Optional[DashboardSnapshot]:
        """The last published snapshot, None before the first mutation."""
        return self._latest

    async def actual_balance(self) -> Decimal:
        async with self._lock:
            return await self._projection.actual_balance()

    async def current_streak(self) -> int:
        async with self._lock:
            frozen = await self._freezes.frozen_dates()
            return await self._streaks.calculate_streak(frozen)

    async def available_freezes(self) -> int:
        async with self._lock:
            return await self._freezes.available_freezes()

    async def today_status(self) -> TodayStatus:
        async with self._lock:
            return await self._today_status()

    async def should_send_reminder(self) -> bool:
        """
        For the reminder scheduler: nag when today has no outcome yet,
        or was logged as a rest day.
        """
        return (await self.today_status()).needs_reminder

    async def reminder_urgency(self, hour: int) -> UrgencyLevel:
        status = await self.today_status()
        return urgency_level(hour, status.logged)

    async def history(self, descending: bool = True) -> list[LedgerEntry]:
        async with self._lock:
            return await self._engine.history(descending=descending)

    async def list_deductions(self) -> list[DeductionRecord]:
        async with self._lock:
            return await self._tracker.list_deductions()

    async def get_settings(self) -> UserSettings:
        async with self._lock:
            return await self._preferences.get_settings()

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, callback: Subscriber) -> None:
        """
        Receive every published snapshot.

        Callbacks may be plain functions or coroutine functions. A
        callback that raises is logged and skipped.
        """
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)


def create_app_components(
    storage_backend: Optional[str] = None,
    today_provider: TodayProvider = system_today,
) -> PiggyBank:
    """
    Factory function to build a PiggyBank from configuration.

    Args:
        storage_backend: "memory" or "google_sheets"; defaults to the
                         configured backend. If Google Sheets can't be
                         set up, falls back to memory with a warning.
        today_provider: Calendar source, overridable for tests

    Returns:
        A ready-to-use PiggyBank
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    backend = storage_backend or settings.app.storage_backend
    defaults = UserSettings(reward_rate=settings.ledger.default_reward_rate)

    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            return PiggyBank(
                ledger_storage=GoogleSheetsLedgerStorage(sheets_client),
                deduction_storage=GoogleSheetsDeductionStorage(sheets_client),
                settings_storage=GoogleSheetsSettingsStorage(sheets_client, defaults=defaults),
                audit_logger=AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
                ledger_settings=settings.ledger,
                today_provider=today_provider,
            )
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("sheets_storage_unavailable", error=str(e))

    settings_storage = InMemorySettingsStorage()
    settings_storage.set_defaults(defaults)

    return PiggyBank(
        ledger_storage=InMemoryLedgerStorage(),
        deduction_storage=InMemoryDeductionStorage(),
        settings_storage=settings_storage,
        audit_logger=AuditLogger(InMemoryAuditStorage()),
        ledger_settings=settings.ledger,
        today_provider=today_provider,
    )
