"""
Per-diem accounting core.

Pay periods, the daily ledger, the rollover engine and category
resolution.
"""

from spendsend.budget.calendar import (
    budget_today,
    days_remaining,
    make_today_provider,
    spendable_days,
)
from spendsend.budget.categories import CategoryResolver
from spendsend.budget.engine import PerDiemEngine
from spendsend.budget.errors import (
    BudgetError,
    BudgetValidationError,
    CategoryNotFoundError,
    NotFoundError,
)
from spendsend.budget.ledger import PerDiemLedger
from spendsend.budget.pay_periods import PayPeriodService, compute_per_diem

__all__ = [
    "budget_today",
    "days_remaining",
    "make_today_provider",
    "spendable_days",
    "CategoryResolver",
    "PerDiemEngine",
    "BudgetError",
    "BudgetValidationError",
    "CategoryNotFoundError",
    "NotFoundError",
    "PerDiemLedger",
    "PayPeriodService",
    "compute_per_diem",
]
