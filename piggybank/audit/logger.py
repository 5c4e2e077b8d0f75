"""
Audit Logger

DESIGN DECISION: Every change to the money in the piggy bank is logged.
This provides:
1. Complete traceability of how a balance came to be
2. Debugging capability when a cascade or rebuild rewrites entries
3. User can see history of their interactions

The audit logger:
- Is async so it can sit inside the orchestrator's write path
- Gracefully handles failures (a broken audit sheet never fails a write)
- Supports correlation IDs to trace the events of one operation
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from piggybank.models.audit import AuditEvent, AuditEventBuilder
from piggybank.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("piggybank.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_outcome_recorded(
        self,
        day: date,
        exercised: bool,
        balance_after: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log a single recorded outcome."""
        await self.log(AuditEventBuilder.outcome_recorded(
            day=day,
            exercised=exercised,
            balance_after=balance_after,
            correlation_id=correlation_id,
        ))

    async def log_cascade(
        self,
        start: date,
        rewritten: int,
        correlation_id: UUID,
    ) -> None:
        """Log a cascade, skipped when nothing downstream changed."""
        if rewritten == 0:
            return
        await self.log(AuditEventBuilder.ledger_cascaded(
            start=start,
            rewritten=rewritten,
            correlation_id=correlation_id,
        ))

    async def log_rejection(
        self,
        operation: str,
        code: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        """Log an operation refused before anything was written."""
        await self.log(AuditEventBuilder.operation_rejected(
            operation=operation,
            code=code,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_consistency_error(
        self,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.consistency_error(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_rebuild(
        self,
        rewritten: int,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.ledger_rebuilt(
            rewritten=rewritten,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    The orchestrator creates one per operation and passes it to every
    audit event the operation produces.
    """
    return uuid4()
