"""
Per-Diem Accounting Engine

Turns the fixed daily rate of a pay period into a running daily balance:

- Each day's entry is created lazily on first use, carrying over the
  previous remaining balance (negative when overspent; never clamped).
- Discretionary spending is charged to today's entry.
- Fixed-cost spending is charged to its category allocation and never
  touches the ledger.

Where the rollover comes from is set by RolloverMode:
- LAST_ENTRY: the most recent existing entry before today. Days with no
  activity are not materialized, so their unspent allowance is not
  carried forward.
- CHAIN: every skipped day is materialized with zero spending, so the
  rollover compounds day by day.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from spendsend.audit import AuditLogger
from spendsend.budget.calendar import TodayProvider, budget_today, days_remaining
from spendsend.budget.errors import (
    BudgetValidationError,
    CategoryNotFoundError,
    NotFoundError,
)
from spendsend.budget.ledger import PerDiemLedger, positive_amount
from spendsend.models import (
    ZERO,
    PayPeriod,
    PerDiemLedgerEntry,
    RolloverMode,
    TodaysStatus,
    Transaction,
    to_money,
)
from spendsend.services.storage import BudgetStorageInterface

logger = structlog.get_logger("spendsend.budget.engine")


class PerDiemEngine:
    """Daily rollover and spend posting for pay periods."""

    def __init__(
        self,
        storage: BudgetStorageInterface,
        ledger: Optional[PerDiemLedger] = None,
        audit_logger: Optional[AuditLogger] = None,
        today_provider: Optional[TodayProvider] = None,
        rollover_mode: RolloverMode = RolloverMode.LAST_ENTRY,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._ledger = ledger or PerDiemLedger(storage, self._audit)
        self._today = today_provider or budget_today
        self._rollover_mode = RolloverMode(rollover_mode)

    @property
    def rollover_mode(self) -> RolloverMode:
        return self._rollover_mode

    def today(self) -> date:
        return self._today()

    # -------------------------------------------------------------------------
    # Daily entries
    # -------------------------------------------------------------------------

    async def ensure_today_entry(
        self,
        pay_period_id: str,
        current_per_diem_rate: Decimal,
        correlation_id: Optional[UUID] = None,
        end_date: Optional[date] = None,
    ) -> PerDiemLedgerEntry:
        """
        Return today's entry, creating it (and, in CHAIN mode, any skipped
        days) when missing.

        Skipped days on or after end_date (payday) are never materialized;
        today itself is always opened.

        Idempotent: calling it again the same day returns the same row and
        changes nothing.
        """
        today = self.today()
        existing = await self._ledger.get_entry(pay_period_id, today)
        if existing is not None:
            return existing

        rate = to_money(current_per_diem_rate)
        previous = await self._ledger.get_latest_entry_before(pay_period_id, today)
        entries = self._entries_to_open(pay_period_id, previous, today, rate, end_date)

        stored = await self._ledger.open_entries(entries)

        source = previous.tracking_date if previous else None
        for proposed, saved in zip(entries, stored):
            if saved.id != proposed.id:
                # Opened concurrently; that caller logged it
                source = saved.tracking_date
                continue
            await self._audit.log_ledger_day_opened(
                entry_id=saved.id,
                pay_period_id=pay_period_id,
                tracking_date=saved.tracking_date,
                per_diem=saved.per_diem_amount,
                rollover=saved.rollover_from_previous,
                rollover_source=source,
                correlation_id=correlation_id,
            )
            source = saved.tracking_date

        return stored[-1]

    def _entries_to_open(
        self,
        pay_period_id: str,
        previous: Optional[PerDiemLedgerEntry],
        today: date,
        rate: Decimal,
        end_date: Optional[date] = None,
    ) -> list[PerDiemLedgerEntry]:
        if previous is None:
            return [PerDiemLedgerEntry.open(pay_period_id, today, rate, ZERO)]

        if self._rollover_mode == RolloverMode.LAST_ENTRY:
            return [
                PerDiemLedgerEntry.open(pay_period_id, today, rate, previous.remaining_amount)
            ]

        entries = []
        carry = previous.remaining_amount
        day = previous.tracking_date + timedelta(days=1)
        while day < today and (end_date is None or day < end_date):
            entry = PerDiemLedgerEntry.open(pay_period_id, day, rate, carry)
            entries.append(entry)
            carry = entry.remaining_amount
            day += timedelta(days=1)
        entries.append(PerDiemLedgerEntry.open(pay_period_id, today, rate, carry))
        return entries

    # -------------------------------------------------------------------------
    # Postings
    # -------------------------------------------------------------------------

    async def _require_active_period(self, pay_period_id: str) -> PayPeriod:
        period = await self._storage.get_pay_period(pay_period_id)
        if period is None:
            raise NotFoundError(f"Pay period '{pay_period_id}' not found")
        if not period.is_active:
            raise NotFoundError(f"Pay period '{pay_period_id}' is no longer active")
        return period

    async def post_discretionary_spend(
        self,
        pay_period_id: str,
        amount: Decimal,
        transaction: Optional[Transaction] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Charge a discretionary amount to today's entry.

        Callers re-query status to see the new balance.

        Raises:
            BudgetValidationError: If amount <= 0
            NotFoundError: If the period is missing or inactive
        """
        value = positive_amount(amount)
        period = await self._require_active_period(pay_period_id)

        entry = await self.ensure_today_entry(
            period.id, period.per_diem, correlation_id, end_date=period.end_date
        )
        await self._ledger.add_spending(period.id, entry.tracking_date, value, transaction)

        await self._audit.log_discretionary_spend(
            pay_period_id=period.id,
            tracking_date=entry.tracking_date,
            amount=value,
            correlation_id=correlation_id,
        )

    async def post_fixed_cost_spend(
        self,
        pay_period_id: str,
        category: str,
        amount: Decimal,
        transaction: Optional[Transaction] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Charge a predictable expense to its category allocation.

        Raises:
            BudgetValidationError: If amount <= 0
            NotFoundError: If the period is missing or inactive
            CategoryNotFoundError: If the period has no allocation for category
        """
        value = positive_amount(amount)
        if not category or not category.strip():
            raise BudgetValidationError("Fixed-cost category is required")
        period = await self._require_active_period(pay_period_id)

        updated = await self._storage.add_fixed_spending(
            period.id, category.strip(), value, transaction
        )
        if not updated:
            raise CategoryNotFoundError(period.id, category.strip())

        await self._audit.log_fixed_cost(
            pay_period_id=period.id,
            category=category.strip(),
            amount=value,
            correlation_id=correlation_id,
        )

    async def handle_classified_transaction(
        self,
        pay_period_id: str,
        amount: Decimal,
        is_fixed_cost: bool,
        category: str,
        transaction: Optional[Transaction] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Route a classified expense to the allocation or the daily ledger."""
        if is_fixed_cost:
            await self.post_fixed_cost_spend(
                pay_period_id, category, amount, transaction, correlation_id
            )
        else:
            await self.post_discretionary_spend(
                pay_period_id, amount, transaction, correlation_id
            )

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    async def get_todays_status(
        self,
        pay_period_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> TodaysStatus:
        """
        Today's position in the period.

        Opens today's entry if needed. A missing or inactive period gives
        a zeroed status rather than an error.
        """
        if pay_period_id is None:
            return TodaysStatus.zeroed()

        period = await self._storage.get_pay_period(pay_period_id)
        if period is None or not period.is_active:
            return TodaysStatus.zeroed()

        entry = await self.ensure_today_entry(
            period.id, period.per_diem, correlation_id, end_date=period.end_date
        )
        days_left = days_remaining(entry.tracking_date, period.end_date)
        projected = to_money(entry.remaining_amount / max(days_left - 1, 1))

        return TodaysStatus(
            pay_period_id=period.id,
            tracking_date=entry.tracking_date,
            per_diem_rate=period.per_diem,
            remaining_today=entry.remaining_amount,
            spent_today=entry.spent_today,
            rollover_from_previous=entry.rollover_from_previous,
            days_until_payday=days_left,
            projected_tomorrow_per_diem=projected,
        )
