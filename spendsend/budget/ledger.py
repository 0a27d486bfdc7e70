"""
Per-Diem Ledger

One row per (pay period, calendar day). Every row satisfies
remaining = per_diem + rollover - spent; the model refuses anything else.

Spending is posted with a single atomic increment in storage, never a
read-modify-write here, so concurrent postings to the same day add up.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import structlog

from spendsend.audit import AuditLogger
from spendsend.budget.errors import BudgetValidationError, NotFoundError
from spendsend.models import PerDiemLedgerEntry, Transaction, to_money
from spendsend.services.storage import BudgetStorageInterface

logger = structlog.get_logger("spendsend.budget.ledger")


def positive_amount(amount) -> Decimal:
    try:
        value = to_money(amount)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise BudgetValidationError(f"Invalid amount: {amount!r}") from e
    if value <= 0:
        raise BudgetValidationError(f"Amount must be positive, got {value}")
    return value


class PerDiemLedger:
    """Daily ledger operations on top of the budget storage."""

    def __init__(
        self,
        storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def get_entry(
        self,
        pay_period_id: str,
        tracking_date: date,
    ) -> Optional[PerDiemLedgerEntry]:
        return await self._storage.get_entry(pay_period_id, tracking_date)

    async def get_latest_entry_before(
        self,
        pay_period_id: str,
        tracking_date: date,
    ) -> Optional[PerDiemLedgerEntry]:
        return await self._storage.get_latest_entry_before(pay_period_id, tracking_date)

    async def list_entries(self, pay_period_id: str) -> list[PerDiemLedgerEntry]:
        """Full day-by-day history of a period, oldest first."""
        return await self._storage.list_entries(pay_period_id)

    async def upsert_entry(
        self,
        pay_period_id: str,
        tracking_date: date,
        per_diem_amount: Decimal,
        spent_today: Decimal,
        rollover_from_previous: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> PerDiemLedgerEntry:
        """
        Write a whole day at once, computing remaining from the inputs.

        Overwrites the amounts of an existing row for the same day.

        Raises:
            BudgetValidationError: If spent_today is negative
        """
        if to_money(spent_today) < 0:
            raise BudgetValidationError(
                f"spent_today cannot be negative, got {spent_today}"
            )

        entry = PerDiemLedgerEntry.open(
            pay_period_id=pay_period_id,
            tracking_date=tracking_date,
            per_diem_amount=per_diem_amount,
            rollover_from_previous=rollover_from_previous,
            spent_today=spent_today,
        )
        stored = await self._storage.upsert_entry(entry)

        await self._audit.log_ledger_entry_upserted(
            pay_period_id=pay_period_id,
            tracking_date=tracking_date,
            remaining=stored.remaining_amount,
            correlation_id=correlation_id,
        )
        return stored

    async def open_entry(
        self,
        pay_period_id: str,
        tracking_date: date,
        per_diem_amount: Decimal,
        rollover_from_previous: Decimal,
    ) -> PerDiemLedgerEntry:
        """
        Create the day's entry unless it already exists.

        Returns the stored row, which is the existing one when another
        caller opened the day first.
        """
        entry = PerDiemLedgerEntry.open(
            pay_period_id=pay_period_id,
            tracking_date=tracking_date,
            per_diem_amount=per_diem_amount,
            rollover_from_previous=rollover_from_previous,
        )
        stored = await self._storage.insert_entries_if_absent([entry])
        return stored[0]

    async def open_entries(
        self,
        entries: list[PerDiemLedgerEntry],
    ) -> list[PerDiemLedgerEntry]:
        """Insert-if-absent for several consecutive days in one unit."""
        if not entries:
            return []
        return await self._storage.insert_entries_if_absent(entries)

    async def add_spending(
        self,
        pay_period_id: str,
        tracking_date: date,
        amount: Decimal,
        transaction: Optional[Transaction] = None,
    ) -> None:
        """
        Charge an amount against one day.

        Args:
            pay_period_id: Owning pay period
            tracking_date: Day being charged
            amount: Positive amount
            transaction: Optional record stored in the same unit of work

        Raises:
            BudgetValidationError: If amount <= 0
            NotFoundError: If the day has no ledger entry
        """
        value = positive_amount(amount)

        updated = await self._storage.add_spending(
            pay_period_id, tracking_date, value, transaction
        )
        if not updated:
            raise NotFoundError(
                f"No ledger entry for {tracking_date.isoformat()} "
                f"in pay period '{pay_period_id}'"
            )

        logger.debug(
            "ledger_spending_added",
            pay_period_id=pay_period_id,
            tracking_date=tracking_date.isoformat(),
            amount=str(value),
        )
