"""
Period summary.

Read-only aggregation over a pay period. Discretionary spending is summed
twice, once from the ledger and once from the transaction log; the two
must agree because every discretionary posting writes both in one unit.
"""

from typing import Optional

import structlog

from spendsend.budget.errors import NotFoundError
from spendsend.models import ZERO, AllocationStatus, CategoryType, PeriodSummary
from spendsend.services.storage import BudgetStorageInterface

logger = structlog.get_logger("spendsend.reporting")


class PeriodReporter:
    """Builds PeriodSummary views. Never writes."""

    def __init__(self, storage: BudgetStorageInterface):
        self._storage = storage

    async def get_period_summary(self, pay_period_id: Optional[str]) -> PeriodSummary:
        """
        Summarize a pay period.

        Raises:
            NotFoundError: If the period does not exist
        """
        period = None
        if pay_period_id is not None:
            period = await self._storage.get_pay_period(pay_period_id)
        if period is None:
            raise NotFoundError(f"Pay period '{pay_period_id}' not found")

        allocations = await self._storage.get_allocations(period.id)
        entries = await self._storage.list_entries(period.id)
        from_transactions = await self._storage.get_discretionary_total(period.id)
        category_totals = await self._storage.get_category_totals(period.id)

        from_ledger = sum((e.spent_today for e in entries), ZERO)

        summary = PeriodSummary(
            pay_period_id=period.id,
            income=period.income_amount,
            fixed_cost_total=period.fixed_cost_total,
            fixed_allocated=sum((a.allocated_amount for a in allocations), ZERO),
            fixed_spent=sum((a.spent_amount for a in allocations), ZERO),
            fixed_breakdown=[
                AllocationStatus(
                    category=a.category,
                    allocated=a.allocated_amount,
                    spent=a.spent_amount,
                )
                for a in allocations
            ],
            discretionary_pool=period.discretionary_pool,
            discretionary_spent_ledger=from_ledger,
            discretionary_spent_transactions=from_transactions,
            discretionary_breakdown=[
                total for total in category_totals
                if total.category_type == CategoryType.DISCRETIONARY
            ],
            per_diem_rate=period.per_diem,
            days_tracked=len(entries),
            days_under_per_diem=sum(1 for e in entries if e.spent_today < e.per_diem_amount),
            days_over_per_diem=sum(1 for e in entries if e.spent_today > e.per_diem_amount),
            days_on_target=sum(1 for e in entries if e.spent_today == e.per_diem_amount),
        )

        if not summary.is_reconciled:
            logger.warning(
                "ledger_transaction_mismatch",
                pay_period_id=period.id,
                ledger=str(from_ledger),
                transactions=str(from_transactions),
            )

        return summary
