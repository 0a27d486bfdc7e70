"""Services package."""

from spendsend.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    SettingsStorageInterface,
    SQLiteAuditStorage,
    SQLiteBudgetStorage,
    SQLiteCategoryStorage,
    SQLiteClient,
    SQLiteSettingsStorage,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Storage interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "SettingsStorageInterface",
    # Storage exceptions
    "DuplicateError",
    "StorageConnectionError",
    "StorageError",
    # SQLite implementation
    "SQLiteAuditStorage",
    "SQLiteBudgetStorage",
    "SQLiteCategoryStorage",
    "SQLiteClient",
    "SQLiteSettingsStorage",
]
