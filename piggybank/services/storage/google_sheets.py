"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. Users can look at their ledger directly in a spreadsheet
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (a daily ledger is tiny)
- No transactions (the orchestrator's single writer lock orders writes)
- Limited query capabilities (we filter and sort in Python)

The implementation follows the abstract interfaces, so the engine never
knows which backend it is talking to.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from piggybank.config import get_settings
from piggybank.models.audit import AuditEvent, AuditEventType, AuditSeverity
from piggybank.models.ledger import DeductionRecord, LedgerEntry, UserSettings
from piggybank.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DeductionStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    SettingsStorageInterface,
    StorageError,
)
from piggybank.utils.money import ZERO


# Column mappings for Ledger sheet
LEDGER_COLUMNS = [
    "date",
    "exercised",
    "balance_after",
]

# Column mappings for CashOuts sheet
DEDUCTION_COLUMNS = [
    "id",
    "label",
    "amount",
    "emoji",
    "created_at",
    "balance_before_snapshot",
    "balance_after_snapshot",
    "reward_rate_at_creation",
]

# Settings sheet is key/value
SETTINGS_COLUMNS = [
    "key",
    "value",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Read a cell, treating short rows and blanks as the default."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_ledger_sheet(self) -> gspread.Worksheet:
        """Get or create the Ledger worksheet."""
        return self._get_or_create_sheet(
            self._settings.ledger_sheet_name, LEDGER_COLUMNS, rows=1000
        )

    def get_deductions_sheet(self) -> gspread.Worksheet:
        """Get or create the CashOuts worksheet."""
        return self._get_or_create_sheet(
            self._settings.deductions_sheet_name, DEDUCTION_COLUMNS, rows=500
        )

    def get_settings_sheet(self) -> gspread.Worksheet:
        """Get or create the Settings worksheet."""
        return self._get_or_create_sheet(
            self._settings.settings_sheet_name, SETTINGS_COLUMNS, rows=50
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger.

    One row per date. Rows are kept in whatever order they were appended;
    every read sorts by date in Python.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: LedgerEntry) -> list:
        return [
            entry.date.isoformat(),
            str(entry.exercised),
            str(entry.balance_after),
        ]

    def _row_to_entry(self, row: list) -> LedgerEntry:
        return LedgerEntry(
            date=date.fromisoformat(_safe_get(row, 0)),
            exercised=_safe_get(row, 1).lower() == "true",
            balance_after=Decimal(_safe_get(row, 2, "0")),
        )

    def _read_all(self) -> list[LedgerEntry]:
        try:
            sheet = self._client.get_ledger_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to read ledger: {e}")

        entries = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                entries.append(self._row_to_entry(row))
            except Exception:
                continue  # Skip malformed rows

        entries.sort(key=lambda e: e.date)
        return entries

    async def get_entry(self, day: date) -> Optional[LedgerEntry]:
        for entry in self._read_all():
            if entry.date == day:
                return entry
        return None

    async def get_entry_before(self, day: date) -> Optional[LedgerEntry]:
        earlier = [e for e in self._read_all() if e.date < day]
        return earlier[-1] if earlier else None

    async def get_latest_entry(self) -> Optional[LedgerEntry]:
        entries = self._read_all()
        return entries[-1] if entries else None

    async def list_entries(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        descending: bool = False,
    ) -> list[LedgerEntry]:
        entries = [
            e for e in self._read_all()
            if (date_from is None or e.date >= date_from)
            and (date_to is None or e.date <= date_to)
        ]
        if descending:
            entries.reverse()
        return entries

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """Update the row for this date in place, or append a new one."""
        try:
            sheet = self._client.get_ledger_sheet()
            all_rows = sheet.get_all_values()
            new_row = self._entry_to_row(entry)

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == entry.date.isoformat():
                    for col_idx, value in enumerate(new_row, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return entry

            sheet.append_row(new_row, value_input_option="RAW")
            return entry
        except Exception as e:
            raise StorageError(f"Failed to write ledger entry: {e}")

    async def delete_entry(self, day: date) -> bool:
        try:
            sheet = self._client.get_ledger_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == day.isoformat():
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete ledger entry: {e}")

    async def count_exercised(self) -> int:
        return sum(1 for e in self._read_all() if e.exercised)


class GoogleSheetsDeductionStorage(DeductionStorageInterface):
    """
    Google Sheets implementation of cash-out storage.

    One cash-out per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: DeductionRecord) -> list:
        return [
            str(record.id),
            record.label,
            str(record.amount),
            record.emoji,
            record.created_at.isoformat(),
            str(record.balance_before_snapshot),
            str(record.balance_after_snapshot),
            str(record.reward_rate_at_creation),
        ]

    def _row_to_record(self, row: list) -> DeductionRecord:
        return DeductionRecord(
            id=UUID(_safe_get(row, 0)),
            label=_safe_get(row, 1),
            amount=Decimal(_safe_get(row, 2)),
            emoji=_safe_get(row, 3, "\U0001F381"),
            created_at=datetime.fromisoformat(_safe_get(row, 4)),
            balance_before_snapshot=Decimal(_safe_get(row, 5, "0")),
            balance_after_snapshot=Decimal(_safe_get(row, 6, "0")),
            reward_rate_at_creation=Decimal(_safe_get(row, 7, "0")),
        )

    def _read_all(self) -> list[DeductionRecord]:
        try:
            sheet = self._client.get_deductions_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read cash-outs: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                records.append(self._row_to_record(row))
            except Exception:
                continue
        return records

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_deduction(self, record: DeductionRecord) -> DeductionRecord:
        if any(r.id == record.id for r in self._read_all()):
            raise DuplicateError(f"Cash-out already exists: {record.id}")
        try:
            sheet = self._client.get_deductions_sheet()
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return record
        except Exception as e:
            raise StorageError(f"Failed to save cash-out: {e}")

    async def get_deduction(self, deduction_id: UUID) -> Optional[DeductionRecord]:
        for record in self._read_all():
            if record.id == deduction_id:
                return record
        return None

    async def update_deduction(self, record: DeductionRecord) -> DeductionRecord:
        try:
            sheet = self._client.get_deductions_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(record.id):
                    new_row = self._record_to_row(record)
                    for col_idx, value in enumerate(new_row, start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return record

            raise NotFoundError(f"Cash-out not found: {record.id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update cash-out: {e}")

    async def delete_deduction(self, deduction_id: UUID) -> bool:
        try:
            sheet = self._client.get_deductions_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == str(deduction_id):
                    sheet.delete_rows(idx)
                    return True

            return False
        except Exception as e:
            raise StorageError(f"Failed to delete cash-out: {e}")

    async def list_deductions(self) -> list[DeductionRecord]:
        records = self._read_all()
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    async def get_total_amount(self) -> Decimal:
        return sum((r.amount for r in self._read_all()), ZERO)

    async def count_deductions(self) -> int:
        return len(self._read_all())


class GoogleSheetsSettingsStorage(SettingsStorageInterface):
    """
    Google Sheets implementation of the settings record.

    Stored as key/value rows so a user can read (and fix) them by hand.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        defaults: Optional[UserSettings] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._defaults = defaults or UserSettings()

    def _settings_to_pairs(self, settings: UserSettings) -> list[tuple[str, str]]:
        return [
            ("reward_rate", str(settings.reward_rate)),
            ("available_freezes", str(settings.available_freezes)),
            ("frozen_dates", json.dumps(sorted(d.isoformat() for d in settings.frozen_dates))),
            ("total_freeze_spending", str(settings.total_freeze_spending)),
            ("reminders_enabled", str(settings.reminders_enabled)),
            ("reminder_hour", str(settings.reminder_hour)),
            ("reminder_minute", str(settings.reminder_minute)),
        ]

    async def load_settings(self) -> UserSettings:
        try:
            sheet = self._client.get_settings_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read settings: {e}")

        stored = {row[0]: _safe_get(row, 1) for row in all_rows if row and row[0]}
        if not stored:
            return self._defaults.model_copy(deep=True)

        values = self._defaults.model_dump()
        if "reward_rate" in stored:
            values["reward_rate"] = Decimal(stored["reward_rate"])
        if "available_freezes" in stored:
            values["available_freezes"] = int(stored["available_freezes"])
        if stored.get("frozen_dates"):
            values["frozen_dates"] = {
                date.fromisoformat(d) for d in json.loads(stored["frozen_dates"])
            }
        if "total_freeze_spending" in stored:
            values["total_freeze_spending"] = Decimal(stored["total_freeze_spending"] or "0")
        if "reminders_enabled" in stored:
            values["reminders_enabled"] = stored["reminders_enabled"].lower() == "true"
        if "reminder_hour" in stored:
            values["reminder_hour"] = int(stored["reminder_hour"])
        if "reminder_minute" in stored:
            values["reminder_minute"] = int(stored["reminder_minute"])

        return UserSettings(**values)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_settings(self, settings: UserSettings) -> UserSettings:
        try:
            sheet = self._client.get_settings_sheet()
            all_rows = sheet.get_all_values()
            row_index = {
                row[0]: idx
                for idx, row in enumerate(all_rows[1:], start=2)
                if row and row[0]
            }

            for key, value in self._settings_to_pairs(settings):
                if key in row_index:
                    sheet.update_cell(row_index[key], 2, value)
                else:
                    sheet.append_row([key, value], value_input_option="RAW")

            return settings
        except Exception as e:
            raise StorageError(f"Failed to save settings: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            correlation_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            description=_safe_get(row, 7),
            details=json.loads(_safe_get(row, 8)) if _safe_get(row, 8) else {},
            error_code=_safe_get(row, 9) or None,
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _read_all(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._read_all() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_all()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._read_all()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
