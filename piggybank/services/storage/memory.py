"""
In-Memory Storage Implementation

The default backend and the one the tests run against. Every model is
copied on the way in and on the way out, so a caller mutating a returned
record can never change what is stored.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from piggybank.models.audit import AuditEvent
from piggybank.models.ledger import DeductionRecord, LedgerEntry, UserSettings
from piggybank.services.storage.interface import (
    AuditStorageInterface,
    DeductionStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    SettingsStorageInterface,
)
from piggybank.utils.money import ZERO


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger entries keyed by date."""

    def __init__(self, entries: Optional[list[LedgerEntry]] = None):
        self._entries: dict[date, LedgerEntry] = {}
        for entry in entries or []:
            self._entries[entry.date] = entry

    def _sorted(self) -> list[LedgerEntry]:
        return [self._entries[d] for d in sorted(self._entries)]

    async def get_entry(self, day: date) -> Optional[LedgerEntry]:
        return self._entries.get(day)

    async def get_entry_before(self, day: date) -> Optional[LedgerEntry]:
        earlier = [d for d in self._entries if d < day]
        if not earlier:
            return None
        return self._entries[max(earlier)]

    async def get_latest_entry(self) -> Optional[LedgerEntry]:
        if not self._entries:
            return None
        return self._entries[max(self._entries)]

    async def list_entries(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        descending: bool = False,
    ) -> list[LedgerEntry]:
        entries = [
            e for e in self._sorted()
            if (date_from is None or e.date >= date_from)
            and (date_to is None or e.date <= date_to)
        ]
        if descending:
            entries.reverse()
        return entries

    async def upsert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        # LedgerEntry is frozen, so storing the instance itself is safe
        self._entries[entry.date] = entry
        return entry

    async def delete_entry(self, day: date) -> bool:
        return self._entries.pop(day, None) is not None

    async def count_exercised(self) -> int:
        return sum(1 for e in self._entries.values() if e.exercised)


class InMemoryDeductionStorage(DeductionStorageInterface):
    """Cash-out records keyed by id."""

    def __init__(self):
        self._records: dict[UUID, DeductionRecord] = {}

    async def save_deduction(self, record: DeductionRecord) -> DeductionRecord:
        if record.id in self._records:
            raise DuplicateError(f"Cash-out already exists: {record.id}")
        self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def get_deduction(self, deduction_id: UUID) -> Optional[DeductionRecord]:
        record = self._records.get(deduction_id)
        return record.model_copy(deep=True) if record else None

    async def update_deduction(self, record: DeductionRecord) -> DeductionRecord:
        if record.id not in self._records:
            raise NotFoundError(f"Cash-out not found: {record.id}")
        self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def delete_deduction(self, deduction_id: UUID) -> bool:
        return self._records.pop(deduction_id, None) is not None

    async def list_deductions(self) -> list[DeductionRecord]:
        records = sorted(
            self._records.values(),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return [r.model_copy(deep=True) for r in records]

    async def get_total_amount(self) -> Decimal:
        return sum((r.amount for r in self._records.values()), ZERO)

    async def count_deductions(self) -> int:
        return len(self._records)


class InMemorySettingsStorage(SettingsStorageInterface):
    """A single settings record; defaults until the first save."""

    def __init__(self, initial: Optional[UserSettings] = None):
        self._settings = initial.model_copy(deep=True) if initial else None
        self._defaults = UserSettings()

    def set_defaults(self, defaults: UserSettings) -> None:
        """Defaults returned before anything has been saved."""
        self._defaults = defaults.model_copy(deep=True)

    async def load_settings(self) -> UserSettings:
        source = self._settings if self._settings is not None else self._defaults
        return source.model_copy(deep=True)

    async def save_settings(self, settings: UserSettings) -> UserSettings:
        self._settings = settings.model_copy(deep=True)
        return settings.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
