"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the accounting engine ignorant of SQL
2. Use an in-memory database for testing
3. Move to a server-side database later
4. Keep business logic decoupled from storage implementation

The interface is intentionally narrow - we're not building a full ORM.
Just the operations the per-diem core needs.

CONTRACT: every mutating method is one atomic unit. Either all of its
writes land or none do. Increments are expressed relative to the stored
value (never read-then-write from Python), so two postings against the
same day cannot overwrite each other.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from spendsend.models.audit import AuditEvent
from spendsend.models.budget import (
    Category,
    CategoryTotal,
    CategoryType,
    FixedAllocation,
    PayPeriod,
    PerDiemLedgerEntry,
    Transaction,
)


class BudgetStorageInterface(ABC):
    """
    Abstract interface for pay periods, allocations, the per-diem ledger
    and the transaction log.
    """

    # -------------------------------------------------------------------------
    # Pay periods
    # -------------------------------------------------------------------------

    @abstractmethod
    async def create_pay_period(
        self,
        period: PayPeriod,
        allocations: list[FixedAllocation],
        opening_entry: Optional[PerDiemLedgerEntry] = None,
    ) -> int:
        """
        Persist a new active pay period.

        In one unit: deactivates every active period of the same owner,
        inserts the period, its allocations and (optionally) the first
        ledger entry.

        Returns:
            Number of previously active periods that were deactivated

        Raises:
            StorageError: If the write fails (nothing is persisted)
        """
        pass

    @abstractmethod
    async def get_pay_period(self, pay_period_id: str) -> Optional[PayPeriod]:
        """Retrieve a pay period by ID, active or not."""
        pass

    @abstractmethod
    async def get_active_pay_period(self, owner_id: str) -> Optional[PayPeriod]:
        """Retrieve the owner's single active pay period, if any."""
        pass

    @abstractmethod
    async def list_pay_periods(self, owner_id: str) -> list[PayPeriod]:
        """List all of an owner's pay periods, newest start date first."""
        pass

    # -------------------------------------------------------------------------
    # Fixed allocations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_allocations(self, pay_period_id: str) -> list[FixedAllocation]:
        """List a period's allocations ordered by category."""
        pass

    @abstractmethod
    async def get_allocation(
        self,
        pay_period_id: str,
        category: str,
    ) -> Optional[FixedAllocation]:
        """Find an allocation by category label (case-insensitive)."""
        pass

    @abstractmethod
    async def add_fixed_spending(
        self,
        pay_period_id: str,
        category: str,
        amount: Decimal,
        transaction: Optional[Transaction] = None,
    ) -> bool:
        """
        Atomically add to an allocation's spent amount.

        Args:
            pay_period_id: Owning pay period
            category: Allocation category (case-insensitive)
            amount: Positive amount to add
            transaction: Optional transaction record written in the same unit

        Returns:
            False if no allocation matched (nothing is written)
        """
        pass

    # -------------------------------------------------------------------------
    # Per-diem ledger
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_entry(
        self,
        pay_period_id: str,
        tracking_date: date,
    ) -> Optional[PerDiemLedgerEntry]:
        """Retrieve the ledger entry for one day, if it exists."""
        pass

    @abstractmethod
    async def get_latest_entry_before(
        self,
        pay_period_id: str,
        tracking_date: date,
    ) -> Optional[PerDiemLedgerEntry]:
        """Retrieve the most recent entry strictly before a date."""
        pass

    @abstractmethod
    async def list_entries(self, pay_period_id: str) -> list[PerDiemLedgerEntry]:
        """List a period's ledger entries in date order."""
        pass

    @abstractmethod
    async def upsert_entry(self, entry: PerDiemLedgerEntry) -> PerDiemLedgerEntry:
        """
        Insert an entry, or overwrite the amounts of the existing entry
        for the same (pay_period_id, tracking_date).

        Returns:
            The stored entry
        """
        pass

    @abstractmethod
    async def insert_entries_if_absent(
        self,
        entries: list[PerDiemLedgerEntry],
    ) -> list[PerDiemLedgerEntry]:
        """
        Insert entries whose day does not exist yet; existing days are
        left untouched.

        Returns:
            The stored entry for every requested day, in input order
        """
        pass

    @abstractmethod
    async def add_spending(
        self,
        pay_period_id: str,
        tracking_date: date,
        amount: Decimal,
        transaction: Optional[Transaction] = None,
    ) -> bool:
        """
        Atomically increment spent_today and decrement remaining_amount.

        Args:
            pay_period_id: Owning pay period
            tracking_date: Day being charged
            amount: Positive amount
            transaction: Optional transaction record written in the same unit

        Returns:
            False if the day has no entry (nothing is written)
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def record_transaction(self, transaction: Transaction) -> bool:
        """Append a transaction that does not touch the ledger or allocations."""
        pass

    @abstractmethod
    async def list_transactions(self, pay_period_id: str) -> list[Transaction]:
        """List a period's transactions, newest first."""
        pass

    @abstractmethod
    async def get_recent_transactions(
        self,
        user_id: str,
        limit: int = 20,
    ) -> list[Transaction]:
        """List a user's most recent transactions across periods."""
        pass

    @abstractmethod
    async def get_discretionary_total(self, pay_period_id: str) -> Decimal:
        """Sum of discretionary expense transactions in a period."""
        pass

    @abstractmethod
    async def get_category_totals(self, pay_period_id: str) -> list[CategoryTotal]:
        """Expense totals per category in a period, largest first."""
        pass


class CategoryStorageInterface(ABC):
    """
    Abstract interface for the category store.

    Categories are either shared defaults (no user) or user-owned.
    """

    @abstractmethod
    async def get_category_by_name(
        self,
        name: str,
        user_id: Optional[str] = None,
    ) -> Optional[Category]:
        """
        Case-insensitive exact lookup among active categories visible to
        the user (their own first, then shared defaults).
        """
        pass

    @abstractmethod
    async def create_category(self, category: Category) -> Category:
        """
        Save a new category.

        Raises:
            DuplicateError: If the user already has a category with that name
        """
        pass

    @abstractmethod
    async def list_categories(
        self,
        user_id: Optional[str] = None,
        category_type: Optional[CategoryType] = None,
    ) -> list[Category]:
        """List active categories visible to the user."""
        pass


class SettingsStorageInterface(ABC):
    """Key-value preferences per user. Not consulted by accounting math."""

    @abstractmethod
    async def get_setting(self, user_id: str, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def get_all_settings(self, user_id: str) -> dict[str, str]:
        pass

    @abstractmethod
    async def set_setting(self, user_id: str, key: str, value: str) -> bool:
        pass

    @abstractmethod
    async def delete_setting(self, user_id: str, key: str) -> bool:
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

        Args:
            event: The audit event to log

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
        Get all events for a correlation ID (e.g., one chat message).

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


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not open the storage backend."""
    pass
