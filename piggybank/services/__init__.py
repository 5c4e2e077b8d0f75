"""Services package."""

from piggybank.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DeductionStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    SettingsStorageInterface,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DeductionStorageInterface",
    "DuplicateError",
    "LedgerStorageInterface",
    "NotFoundError",
    "SettingsStorageInterface",
    "StorageError",
]
