"""
Data Models Package

This package contains all Pydantic models used in the Piggy Bank system.
All data flowing through the system must conform to these schemas.
"""

from piggybank.models.ledger import (
    BalanceBreakdown,
    DeductionRecord,
    LedgerEntry,
    LedgerWriteResult,
    Money,
    TodayStatus,
    UserSettings,
)
from piggybank.models.results import (
    DashboardSnapshot,
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

__all__ = [
    # Ledger models
    "BalanceBreakdown",
    "DeductionRecord",
    "LedgerEntry",
    "LedgerWriteResult",
    "Money",
    "TodayStatus",
    "UserSettings",
    # Result models
    "DashboardSnapshot",
    "OperationResult",
    "Rejection",
    "RejectionKind",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
