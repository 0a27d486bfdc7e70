"""
Pay Period Model

A pay period starts when income is logged and ends on the next payday.
Its per diem is computed once:

    discretionary_pool = income - fixed_cost_total
    per_diem           = discretionary_pool / max(days, 1)

CRITICAL: per_diem never changes after creation. A user has at most one
active period; creating a new one deactivates the previous ones in the
same storage unit.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional
from uuid import UUID

import structlog

from spendsend.audit import AuditLogger
from spendsend.budget.calendar import TodayProvider, budget_today, spendable_days
from spendsend.budget.errors import BudgetValidationError, NotFoundError
from spendsend.models import (
    ZERO,
    AllocationRequest,
    FixedAllocation,
    PayPeriod,
    PerDiemLedgerEntry,
    ValidationIssue,
    label_key,
    to_money,
)
from spendsend.services.storage import BudgetStorageInterface

logger = structlog.get_logger("spendsend.budget.pay_periods")


def compute_per_diem(discretionary_pool: Decimal, days: int) -> Decimal:
    """Daily allowance, rounded half-up to cents. Days are floored at 1."""
    return to_money(Decimal(discretionary_pool) / max(days, 1))


def _money_arg(name: str, value) -> Decimal:
    try:
        return to_money(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise BudgetValidationError(f"{name} is not a valid amount: {value!r}") from e


class PayPeriodService:
    """Creates and looks up pay periods."""

    def __init__(
        self,
        storage: BudgetStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        today_provider: Optional[TodayProvider] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._today = today_provider or budget_today

    async def create_pay_period(
        self,
        owner_id: str,
        start_date: date,
        end_date: date,
        income: Decimal,
        fixed_cost_total: Decimal,
        fixed_allocations: Iterable[AllocationRequest] = (),
        correlation_id: Optional[UUID] = None,
    ) -> PayPeriod:
        """
        Start a new active pay period.

        Deactivates the owner's previous periods, stores the new period
        with its allocations and opens today's ledger entry (rollover 0),
        all in one storage unit.

        Raises:
            BudgetValidationError: Negative amounts, end_date <= start_date,
                negative or duplicate allocation categories
            StorageError: If the write fails (nothing is persisted)
        """
        income_amount = _money_arg("income", income)
        fixed_total = _money_arg("fixed_cost_total", fixed_cost_total)
        requests = list(fixed_allocations)

        issues = self._check_inputs(owner_id, start_date, end_date, income_amount, fixed_total, requests)
        if issues:
            await self._audit.log_validation_failed(
                subject="pay_period",
                issues=[issue.model_dump() for issue in issues],
                correlation_id=correlation_id,
            )
            raise BudgetValidationError(
                "; ".join(issue.message for issue in issues),
                issues=issues,
            )

        days = spendable_days(start_date, end_date)
        pool = income_amount - fixed_total
        per_diem = compute_per_diem(pool, days)

        period = PayPeriod(
            owner_id=owner_id,
            start_date=start_date,
            end_date=end_date,
            income_amount=income_amount,
            fixed_cost_total=fixed_total,
            discretionary_pool=pool,
            per_diem=per_diem,
            days_until_payday=days,
        )
        allocations = [
            FixedAllocation(
                pay_period_id=period.id,
                category=request.category,
                allocated_amount=request.amount,
            )
            for request in requests
        ]

        allocated = sum((a.allocated_amount for a in allocations), ZERO)
        if allocations and allocated != fixed_total:
            logger.warning(
                "allocations_do_not_match_fixed_total",
                owner_id=owner_id,
                allocated=str(allocated),
                fixed_cost_total=str(fixed_total),
            )

        opening_entry = PerDiemLedgerEntry.open(
            pay_period_id=period.id,
            tracking_date=self._today(),
            per_diem_amount=per_diem,
            rollover_from_previous=ZERO,
        )

        deactivated = await self._storage.create_pay_period(period, allocations, opening_entry)

        if deactivated:
            await self._audit.log_pay_periods_deactivated(
                owner_id=owner_id,
                count=deactivated,
                correlation_id=correlation_id,
            )
        await self._audit.log_pay_period_created(
            pay_period_id=period.id,
            owner_id=owner_id,
            per_diem=per_diem,
            days=days,
            correlation_id=correlation_id,
        )
        await self._audit.log_ledger_day_opened(
            entry_id=opening_entry.id,
            pay_period_id=period.id,
            tracking_date=opening_entry.tracking_date,
            per_diem=per_diem,
            rollover=ZERO,
            rollover_source=None,
            correlation_id=correlation_id,
        )

        return period

    @staticmethod
    def _check_inputs(
        owner_id: str,
        start_date: date,
        end_date: date,
        income: Decimal,
        fixed_total: Decimal,
        requests: list[AllocationRequest],
    ) -> list[ValidationIssue]:
        issues = []

        def error(field: str, message: str) -> None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=message,
                severity="error",
            ))

        if not owner_id or not owner_id.strip():
            error("owner_id", "Owner is required")
        if income < 0:
            error("income", f"Income cannot be negative, got {income}")
        if fixed_total < 0:
            error("fixed_cost_total", f"Fixed cost total cannot be negative, got {fixed_total}")
        if end_date <= start_date:
            error(
                "end_date",
                f"Next payday {end_date.isoformat()} must be after {start_date.isoformat()}",
            )

        seen = set()
        for request in requests:
            key = label_key(request.category)
            if key in seen:
                error("fixed_allocations", f"Duplicate allocation category '{request.category}'")
            seen.add(key)
            if request.amount < 0:
                error(
                    "fixed_allocations",
                    f"Allocation for '{request.category}' cannot be negative",
                )

        return issues

    async def get_active_pay_period(self, owner_id: str) -> PayPeriod:
        """
        Raises:
            NotFoundError: If the owner has no active period
        """
        period = await self._storage.get_active_pay_period(owner_id)
        if period is None:
            raise NotFoundError(f"No active pay period for '{owner_id}'")
        return period

    async def get_pay_period(self, pay_period_id: str) -> PayPeriod:
        period = await self._storage.get_pay_period(pay_period_id)
        if period is None:
            raise NotFoundError(f"Pay period '{pay_period_id}' not found")
        return period

    async def list_pay_periods(self, owner_id: str) -> list[PayPeriod]:
        return await self._storage.list_pay_periods(owner_id)
