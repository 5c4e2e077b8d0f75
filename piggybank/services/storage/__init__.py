"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend is the default; Google Sheets is the persistent one.
"""

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
from piggybank.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDeductionStorage,
    InMemoryLedgerStorage,
    InMemorySettingsStorage,
)
from piggybank.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDeductionStorage,
    GoogleSheetsLedgerStorage,
    GoogleSheetsSettingsStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DeductionStorageInterface",
    "LedgerStorageInterface",
    "SettingsStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryDeductionStorage",
    "InMemoryLedgerStorage",
    "InMemorySettingsStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDeductionStorage",
    "GoogleSheetsLedgerStorage",
    "GoogleSheetsSettingsStorage",
]
