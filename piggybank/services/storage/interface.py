"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the engine testable with an in-memory store
2. Swap Google Sheets for a real database later
3. Pass the storage handle in explicitly instead of a global singleton

The interface is intentionally small - point lookups, nearest-before,
date range scans, upsert, delete and two aggregates. That is everything
the balance chain and the projection need.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from piggybank.models.audit import AuditEvent
from piggybank.models.ledger import DeductionRecord, LedgerEntry, UserSettings


class LedgerStorageInterface(ABC):
    """
    Abstract interface for the daily ledger.

    Exactly one entry per date. Implementations must return entries
    ordered by date whenever a list is returned.
    """

    @abstractmethod
    async def get_entry(self, day: date) -> Optional[LedgerEntry]:
        """
        Retrieve the entry for a date.

        Returns:
            The entry if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_entry_before(self, day: date) -> Optional[LedgerEntry]:
        """
        Retrieve the entry with the greatest date strictly before ``day``.

        Returns:
            The entry if any earlier entry exists, None otherwise
        """
        pass

    @abstractmethod
    async def get_latest_entry(self) -> Optional[LedgerEntry]:
        """Retrieve the most recent entry, or None for an empty ledger."""
        pass

    @abstractmethod
    async def list_entries(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        descending: bool = False,
    ) -> list[LedgerEntry]:
        """
        Range scan.

        Args:
            date_from: Include entries on or after this date
            date_to: Include entries on or before this date
            descending: Newest first instead of oldest first

        Returns:
            Matching entries ordered by date
        """
        pass

    @abstractmethod
    async def upsert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Insert the entry, replacing any existing entry for the same date.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_entry(self, day: date) -> bool:
        """
        Delete the entry for a date.

        Returns:
            True if an entry was deleted
        """
        pass

    @abstractmethod
    async def count_exercised(self) -> int:
        """Count entries with exercised == True."""
        pass


class DeductionStorageInterface(ABC):
    """
    Abstract interface for cash-out records.

    Owned exclusively by the deduction tracker.
    """

    @abstractmethod
    async def save_deduction(self, record: DeductionRecord) -> DeductionRecord:
        """
        Save a new cash-out.

        Raises:
            DuplicateError: If a record with the same id exists
        """
        pass

    @abstractmethod
    async def get_deduction(self, deduction_id: UUID) -> Optional[DeductionRecord]:
        """Retrieve a cash-out by id, None if it does not exist."""
        pass

    @abstractmethod
    async def update_deduction(self, record: DeductionRecord) -> DeductionRecord:
        """
        Replace an existing cash-out.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def delete_deduction(self, deduction_id: UUID) -> bool:
        """
        Delete a cash-out.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    async def list_deductions(self) -> list[DeductionRecord]:
        """All cash-outs, most recent first."""
        pass

    @abstractmethod
    async def get_total_amount(self) -> Decimal:
        """Sum of all live cash-out amounts (0 when there are none)."""
        pass

    @abstractmethod
    async def count_deductions(self) -> int:
        """Number of live cash-outs."""
        pass


class SettingsStorageInterface(ABC):
    """Abstract interface for the single user settings record."""

    @abstractmethod
    async def load_settings(self) -> UserSettings:
        """
        Load settings.

        Returns:
            The stored settings, or defaults if nothing was saved yet
        """
        pass

    @abstractmethod
    async def save_settings(self, settings: UserSettings) -> UserSettings:
        """Persist the full settings record."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one orchestrator operation).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
