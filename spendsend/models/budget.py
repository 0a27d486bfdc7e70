"""
Core Data Models for Spend & Send

These models define the strict schemas for all data flowing through the
per-diem accounting core. They are designed to:
1. Enforce type safety at runtime
2. Keep money exact (Decimal, quantized to cents)
3. Be serializable for storage and logging
4. Carry the ledger invariant with the data itself

DESIGN DECISION: Money is never a float inside the core.
Values are Decimal quantized to cents here and integer cents in storage,
so thousands of small postings cannot drift.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Quantize a number to cents (half-up). Floats go through str()."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def label_key(label: str) -> str:
    """Case-insensitive lookup key for category and allocation labels."""
    return label.strip().casefold()


Money = Annotated[Decimal, AfterValidator(to_money)]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CategoryType(str, Enum):
    """
    How a spending category participates in budgeting.

    Predictable expenses (rent, utilities, debt, savings) are paid from
    their own allocation and never touch the per diem.
    """
    PREDICTABLE_EXPENSES = "predictable_expenses"
    DISCRETIONARY = "discretionary"


class TransactionType(str, Enum):
    """Direction/kind of a logged transaction. Amounts are always positive."""
    INCOME = "income"
    EXPENSE = "expense"
    FIXED_COST = "fixed_cost"
    TRANSFER = "transfer"


class RolloverMode(str, Enum):
    """
    Where a new day's rollover comes from.

    LAST_ENTRY: the most recent existing entry only (skipped days vanish).
    CHAIN: skipped days are materialized with zero spend, compounding.
    """
    LAST_ENTRY = "last_entry"
    CHAIN = "chain"


# =============================================================================
# PAY PERIOD
# =============================================================================

class AllocationRequest(BaseModel):
    """One predictable-expense budget requested when a pay period starts."""
    model_config = ConfigDict(str_strip_whitespace=True)

    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category label, matched case-insensitively"
    )
    amount: Money = Field(
        ...,
        description="Amount set aside for this category"
    )


class PayPeriod(BaseModel):
    """
    One income cycle.

    CRITICAL: per_diem is fixed for the life of the period.
    Only the ledger's rollover adapts daily spending capacity.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    owner_id: str = Field(..., min_length=1)
    start_date: date
    end_date: date = Field(
        ...,
        description="Next payday (exclusive)"
    )
    income_amount: Money = Field(..., ge=0)
    fixed_cost_total: Money = Field(..., ge=0)
    discretionary_pool: Money = Field(
        ...,
        description="income - fixed costs, may be negative"
    )
    per_diem: Money = Field(
        ...,
        description="discretionary_pool / max(days, 1)"
    )
    days_until_payday: int = Field(..., ge=0)
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode='after')
    def validate_dates(self) -> 'PayPeriod':
        if self.end_date <= self.start_date:
            raise ValueError("Pay period must end after it starts")
        return self


class FixedAllocation(BaseModel):
    """Per-category predictable-expense budget within a pay period."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    pay_period_id: str
    category: str = Field(..., min_length=1, max_length=100)
    allocated_amount: Money = Field(..., ge=0)
    spent_amount: Money = Field(default=ZERO, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def remaining_amount(self) -> Decimal:
        return self.allocated_amount - self.spent_amount


# =============================================================================
# PER-DIEM LEDGER
# =============================================================================

class PerDiemLedgerEntry(BaseModel):
    """
    One calendar day of per-diem accounting for a pay period.

    INVARIANT: remaining = per_diem + rollover - spent, always.
    (pay_period_id, tracking_date) is unique.
    """

    id: str = Field(default_factory=_new_id)
    pay_period_id: str
    tracking_date: date
    per_diem_amount: Money
    remaining_amount: Money
    spent_today: Money = Field(default=ZERO, ge=0)
    rollover_from_previous: Money = Field(
        default=ZERO,
        description="Yesterday's remaining; negative when overspent"
    )
    created_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode='after')
    def validate_balance(self) -> 'PerDiemLedgerEntry':
        expected = self.per_diem_amount + self.rollover_from_previous - self.spent_today
        if self.remaining_amount != expected:
            raise ValueError(
                f"Ledger entry out of balance: remaining {self.remaining_amount} "
                f"!= {expected}"
            )
        return self

    @classmethod
    def open(
        cls,
        pay_period_id: str,
        tracking_date: date,
        per_diem_amount: Decimal,
        rollover_from_previous: Decimal = ZERO,
        spent_today: Decimal = ZERO,
    ) -> 'PerDiemLedgerEntry':
        """Build an entry with remaining derived from the other amounts."""
        per_diem_amount = to_money(per_diem_amount)
        rollover_from_previous = to_money(rollover_from_previous)
        spent_today = to_money(spent_today)
        return cls(
            pay_period_id=pay_period_id,
            tracking_date=tracking_date,
            per_diem_amount=per_diem_amount,
            spent_today=spent_today,
            rollover_from_previous=rollover_from_previous,
            remaining_amount=per_diem_amount + rollover_from_previous - spent_today,
        )

    @property
    def available_today(self) -> Decimal:
        """What the day started with, before any spending."""
        return self.per_diem_amount + self.rollover_from_previous


# =============================================================================
# CATEGORIES & TRANSACTIONS
# =============================================================================

class Category(BaseModel):
    """A spending category, either shared (user_id None) or user-owned."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    user_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    category_type: CategoryType = CategoryType.DISCRETIONARY
    is_default: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_fixed_cost(self) -> bool:
        return self.category_type == CategoryType.PREDICTABLE_EXPENSES


class Transaction(BaseModel):
    """
    A logged transaction.

    The engine only needs amount, fixed-cost flag, category label and
    pay period; the rest is kept for history and summaries.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    user_id: str
    pay_period_id: str
    category_id: str
    category_name: str
    amount: Money = Field(..., gt=0, description="Always a positive magnitude")
    transaction_type: TransactionType = TransactionType.EXPENSE
    is_fixed_cost: bool = False
    description: Optional[str] = Field(default=None, max_length=500)
    merchant: Optional[str] = Field(default=None, max_length=200)
    transaction_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=_utcnow)


class ParsedTransaction(BaseModel):
    """
    A transaction as classified by the conversational front end.

    CRITICAL: This is PROPOSED data from a language model.
    It is validated before anything touches the ledger.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal
    description: str = ""
    category: str = ""
    merchant: Optional[str] = None
    transaction_date: Optional[date] = None
    transaction_type: TransactionType = TransactionType.EXPENSE
    is_fixed_cost: bool = False
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class BudgetContext(BaseModel):
    """
    Explicit per-call context: who is acting and on which pay period.

    Passed into every flow operation instead of holding the current
    user/period in process-wide state.
    """

    user_id: str = Field(..., min_length=1)
    pay_period_id: Optional[str] = None

    @property
    def has_pay_period(self) -> bool:
        return self.pay_period_id is not None


# =============================================================================
# READ MODELS
# =============================================================================

class TodaysStatus(BaseModel):
    """Snapshot of today's per-diem position. Zeroed when no period exists."""

    pay_period_id: Optional[str] = None
    tracking_date: Optional[date] = None
    per_diem_rate: Money = ZERO
    remaining_today: Money = ZERO
    spent_today: Money = ZERO
    rollover_from_previous: Money = ZERO
    days_until_payday: int = Field(default=0, ge=0)
    projected_tomorrow_per_diem: Money = ZERO

    @classmethod
    def zeroed(cls) -> 'TodaysStatus':
        return cls()

    @property
    def has_active_period(self) -> bool:
        return self.pay_period_id is not None


class AllocationStatus(BaseModel):
    """Allocated vs. spent for one predictable-expense category."""

    category: str
    allocated: Money
    spent: Money

    @property
    def remaining(self) -> Decimal:
        return self.allocated - self.spent


class CategoryTotal(BaseModel):
    """Transaction total for one category within a period."""

    name: str
    category_type: CategoryType
    total: Money
    count: int = Field(ge=0)


class PeriodSummary(BaseModel):
    """
    Aggregated view of a pay period.

    discretionary_spent_ledger and discretionary_spent_transactions are
    computed independently and must always match.
    """

    pay_period_id: str
    income: Money
    fixed_cost_total: Money
    fixed_allocated: Money
    fixed_spent: Money
    fixed_breakdown: list[AllocationStatus] = Field(default_factory=list)
    discretionary_pool: Money
    discretionary_spent_ledger: Money
    discretionary_spent_transactions: Money
    discretionary_breakdown: list[CategoryTotal] = Field(default_factory=list)
    per_diem_rate: Money
    days_tracked: int = Field(ge=0)
    days_under_per_diem: int = Field(ge=0)
    days_over_per_diem: int = Field(ge=0)
    days_on_target: int = Field(ge=0)

    @property
    def is_reconciled(self) -> bool:
        return self.discretionary_spent_ledger == self.discretionary_spent_transactions


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (amount, category label)
    Stage 2: Semantic validation (sanity limits, dates, confidence)
    """

    validated_at: datetime = Field(default_factory=_utcnow)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)

    # Warnings don't block but should be shown
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
