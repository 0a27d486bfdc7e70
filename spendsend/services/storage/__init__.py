"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements SQLite as the backend, but designed to be swappable.
"""

from spendsend.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    SettingsStorageInterface,
    StorageConnectionError,
    StorageError,
)
from spendsend.services.storage.sqlite import (
    DEFAULT_CATEGORIES,
    SQLiteAuditStorage,
    SQLiteBudgetStorage,
    SQLiteCategoryStorage,
    SQLiteClient,
    SQLiteSettingsStorage,
    from_cents,
    to_cents,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "CategoryStorageInterface",
    "SettingsStorageInterface",
    # Exceptions
    "DuplicateError",
    "StorageConnectionError",
    "StorageError",
    # SQLite implementation
    "DEFAULT_CATEGORIES",
    "SQLiteAuditStorage",
    "SQLiteBudgetStorage",
    "SQLiteCategoryStorage",
    "SQLiteClient",
    "SQLiteSettingsStorage",
    "from_cents",
    "to_cents",
]
