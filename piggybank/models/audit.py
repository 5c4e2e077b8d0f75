"""
Audit Models for Piggy Bank

Every change to the ledger, the cash-out records or the freeze inventory
is logged for audit purposes. This provides:
1. A readable history of why a balance is what it is
2. Debugging information when a cascade rewrites many entries
3. Evidence when the ledger had to be rebuilt from scratch

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from piggybank.models.ledger import utc_now
from piggybank.utils.formatters import format_currency


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each mutating operation has its own event type.
    """
    # Ledger
    OUTCOME_RECORDED = "outcome_recorded"
    OUTCOMES_BULK_RECORDED = "outcomes_bulk_recorded"
    OUTCOME_REMOVED = "outcome_removed"
    LEDGER_CASCADED = "ledger_cascaded"
    LEDGER_REBUILT = "ledger_rebuilt"

    # Cash-outs
    DEDUCTION_CREATED = "deduction_created"
    DEDUCTION_UPDATED = "deduction_updated"
    DEDUCTION_DELETED = "deduction_deleted"

    # Freezes
    FREEZE_ACQUIRED = "freeze_acquired"
    FREEZE_USED = "freeze_used"
    FREEZES_OVERRIDDEN = "freezes_overridden"

    # Settings
    REWARD_RATE_CHANGED = "reward_rate_changed"
    REMINDERS_UPDATED = "reminders_updated"

    # Failures
    OPERATION_REJECTED = "operation_rejected"
    CONSISTENCY_ERROR = "consistency_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'ledger_entry', 'deduction', 'freeze')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Key of the entity (an ISO date for ledger entries, a UUID for cash-outs)"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one operation"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_code, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.outcome_recorded(day, True, balance, correlation_id)
        event = AuditEventBuilder.deduction_deleted(deduction_id, amount, correlation_id)
    """

    @staticmethod
    def outcome_recorded(
        day: date,
        exercised: bool,
        balance_after: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        outcome = "exercised" if exercised else "missed"
        return AuditEvent(
            event_type=AuditEventType.OUTCOME_RECORDED,
            entity_type="ledger_entry",
            entity_id=day.isoformat(),
            correlation_id=correlation_id,
            description=f"{day.isoformat()} recorded as {outcome}, balance {format_currency(balance_after)}",
            details={
                "exercised": exercised,
                "balance_after": str(balance_after),
            },
            is_user_action=True,
        )

    @staticmethod
    def outcomes_bulk_recorded(
        days: list[date],
        exercised: bool,
        rewritten: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        ordered = sorted(days)
        return AuditEvent(
            event_type=AuditEventType.OUTCOMES_BULK_RECORDED,
            entity_type="ledger_entry",
            entity_id=ordered[0].isoformat() if ordered else None,
            correlation_id=correlation_id,
            description=f"{len(ordered)} dates recorded as {'exercised' if exercised else 'missed'}",
            details={
                "dates": [d.isoformat() for d in ordered],
                "exercised": exercised,
                "entries_rewritten": rewritten,
            },
            is_user_action=True,
        )

    @staticmethod
    def outcome_removed(
        day: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OUTCOME_REMOVED,
            entity_type="ledger_entry",
            entity_id=day.isoformat(),
            correlation_id=correlation_id,
            description=f"Outcome for {day.isoformat()} removed",
            is_user_action=True,
        )

    @staticmethod
    def ledger_cascaded(
        start: date,
        rewritten: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CASCADED,
            entity_type="ledger_entry",
            entity_id=start.isoformat(),
            correlation_id=correlation_id,
            description=f"Recomputed {rewritten} later entries after {start.isoformat()}",
            details={
                "entries_rewritten": rewritten,
            },
        )

    @staticmethod
    def ledger_rebuilt(
        rewritten: int,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_REBUILT,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger rebuilt from scratch ({rewritten} entries rewritten)",
            details={
                "entries_rewritten": rewritten,
                "reason": reason,
            },
        )

    @staticmethod
    def deduction_created(
        deduction_id: UUID,
        label: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEDUCTION_CREATED,
            entity_type="deduction",
            entity_id=str(deduction_id),
            correlation_id=correlation_id,
            description=f"Cashed out {format_currency(amount)} for {label}",
            details={
                "label": label,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def deduction_updated(
        deduction_id: UUID,
        old_amount: Decimal,
        new_amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEDUCTION_UPDATED,
            entity_type="deduction",
            entity_id=str(deduction_id),
            correlation_id=correlation_id,
            description=f"Cash-out changed from {format_currency(old_amount)} to {format_currency(new_amount)}",
            details={
                "old_amount": str(old_amount),
                "new_amount": str(new_amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def deduction_deleted(
        deduction_id: UUID,
        amount: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEDUCTION_DELETED,
            entity_type="deduction",
            entity_id=str(deduction_id),
            correlation_id=correlation_id,
            description=f"Cash-out of {format_currency(amount)} deleted",
            details={
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def freeze_acquired(
        available: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FREEZE_ACQUIRED,
            entity_type="freeze",
            correlation_id=correlation_id,
            description=f"Streak freeze acquired ({available} available)",
            details={
                "available_freezes": available,
            },
            is_user_action=True,
        )

    @staticmethod
    def freeze_used(
        day: date,
        cost: Decimal,
        available: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FREEZE_USED,
            entity_type="freeze",
            entity_id=day.isoformat(),
            correlation_id=correlation_id,
            description=f"Freeze used on {day.isoformat()} for {format_currency(cost)}",
            details={
                "cost": str(cost),
                "available_freezes": available,
            },
            is_user_action=True,
        )

    @staticmethod
    def freezes_overridden(
        previous: int,
        current: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FREEZES_OVERRIDDEN,
            severity=AuditSeverity.WARNING,
            entity_type="freeze",
            correlation_id=correlation_id,
            description=f"Available freezes set from {previous} to {current}",
            details={
                "previous": previous,
                "current": current,
            },
            is_user_action=True,
        )

    @staticmethod
    def reward_rate_changed(
        old_rate: Decimal,
        new_rate: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REWARD_RATE_CHANGED,
            entity_type="settings",
            correlation_id=correlation_id,
            description=f"Reward rate changed from {format_currency(old_rate)} to {format_currency(new_rate)}",
            details={
                "old_rate": str(old_rate),
                "new_rate": str(new_rate),
            },
            is_user_action=True,
        )

    @staticmethod
    def reminders_updated(
        enabled: bool,
        hour: int,
        minute: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMINDERS_UPDATED,
            entity_type="settings",
            correlation_id=correlation_id,
            description=f"Reminders {'on' if enabled else 'off'} at {hour:02d}:{minute:02d}",
            details={
                "enabled": enabled,
                "hour": hour,
                "minute": minute,
            },
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        code: str,
        message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"{operation} rejected: {message}",
            details={
                "operation": operation,
            },
            error_code=code,
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def consistency_error(
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Ledger consistency check failed",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
