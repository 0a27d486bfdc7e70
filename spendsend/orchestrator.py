"""
Main Orchestrator for Spend & Send

This module ties together all the components and defines the
end-to-end flows the conversational front end calls:
1. Income (amount + next payday + fixed costs → new pay period)
2. Transaction (parsed → validate → categorize → record → post)
3. Status and summaries (today's per diem, period summary, context)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing proposed by the parser touches the ledger before validation
- Every flow receives an explicit BudgetContext (who, which period)
  instead of reading process-wide state
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from spendsend.audit import AuditLogger, create_correlation_id
from spendsend.budget import (
    BudgetValidationError,
    CategoryResolver,
    NotFoundError,
    PayPeriodService,
    PerDiemEngine,
    make_today_provider,
)
from spendsend.budget.calendar import TodayProvider
from spendsend.config import BudgetSettings, Settings, get_settings
from spendsend.models import (
    ZERO,
    AllocationRequest,
    BudgetContext,
    CategoryTotal,
    CategoryType,
    ParsedTransaction,
    PayPeriod,
    PeriodSummary,
    RolloverMode,
    TodaysStatus,
    Transaction,
    TransactionType,
    to_money,
)
from spendsend.reporting import PeriodReporter
from spendsend.services.storage import (
    BudgetStorageInterface,
    CategoryStorageInterface,
    SettingsStorageInterface,
    SQLiteAuditStorage,
    SQLiteBudgetStorage,
    SQLiteCategoryStorage,
    SQLiteClient,
    SQLiteSettingsStorage,
    StorageError,
)
from spendsend.validation import TransactionValidator


AllocationInput = Union[AllocationRequest, dict]


class BudgetFlow:
    """
    Orchestrates everything a user can do through the chat front end.

    Income flow:
    1. Sum the fixed-cost allocations
    2. Create the pay period (deactivating the previous one)

    Transaction flow:
    1. Validate → Two-stage validation of the parsed transaction
    2. Categorize → Resolve or create the category
    3. Post → Income/transfer are recorded only; expenses go through
       the engine (allocation or today's ledger entry), with the
       transaction row written in the same storage unit
    """

    def __init__(
        self,
        budget_storage: BudgetStorageInterface,
        category_storage: CategoryStorageInterface,
        settings_storage: SettingsStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        budget_settings: Optional[BudgetSettings] = None,
        today_provider: Optional[TodayProvider] = None,
        engine: Optional[PerDiemEngine] = None,
        validator: Optional[TransactionValidator] = None,
    ):
        self._settings = budget_settings or get_settings().budget
        self._today = today_provider or make_today_provider(self._settings.day_boundary_timezone)
        self._audit_logger = audit_logger or AuditLogger()

        self._budget_storage = budget_storage
        self._settings_storage = settings_storage

        self._engine = engine or PerDiemEngine(
            budget_storage,
            audit_logger=self._audit_logger,
            today_provider=self._today,
            rollover_mode=RolloverMode(self._settings.rollover_mode),
        )
        self._pay_periods = PayPeriodService(
            budget_storage,
            audit_logger=self._audit_logger,
            today_provider=self._today,
        )
        self._categories = CategoryResolver(category_storage, self._audit_logger)
        self._reporter = PeriodReporter(budget_storage)
        self._validator = validator or TransactionValidator(self._settings, self._today)

    @property
    def engine(self) -> PerDiemEngine:
        return self._engine

    @property
    def validator(self) -> TransactionValidator:
        return self._validator

    async def resolve_context(self, user_id: str) -> BudgetContext:
        """Build the context for a user, pointing at their active period if any."""
        period = await self._budget_storage.get_active_pay_period(user_id)
        return BudgetContext(
            user_id=user_id,
            pay_period_id=period.id if period else None,
        )

    # -------------------------------------------------------------------------
    # Income
    # -------------------------------------------------------------------------

    async def log_income(
        self,
        context: BudgetContext,
        amount: Decimal,
        next_payday: date,
        allocations: Iterable[AllocationInput] = (),
        start_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PayPeriod:
        """
        Start a new pay period from a paycheck.

        The fixed-cost total is the sum of the allocations.
        Use resolve_context afterwards to point at the new period.

        Raises:
            BudgetValidationError: Invalid amounts, dates or allocations
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            requests = [
                a if isinstance(a, AllocationRequest) else AllocationRequest(**a)
                for a in allocations
            ]
        except PydanticValidationError as e:
            raise BudgetValidationError(f"Invalid fixed-cost allocation: {e}") from e
        fixed_total = sum((r.amount for r in requests), ZERO)

        return await self._pay_periods.create_pay_period(
            owner_id=context.user_id,
            start_date=start_date or self._today(),
            end_date=next_payday,
            income=amount,
            fixed_cost_total=fixed_total,
            fixed_allocations=requests,
            correlation_id=correlation_id,
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def _require_period(self, context: BudgetContext) -> PayPeriod:
        period = None
        if context.pay_period_id is not None:
            period = await self._budget_storage.get_pay_period(context.pay_period_id)
        if period is None or not period.is_active:
            raise NotFoundError(
                f"No active pay period for '{context.user_id}'. Log your income first."
            )
        return period

    async def log_transaction(
        self,
        context: BudgetContext,
        parsed: ParsedTransaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate, categorize, record and post a parsed transaction.

        Returns:
            The stored Transaction

        Raises:
            BudgetValidationError: If validation finds errors
            NotFoundError: If the context has no active pay period
            CategoryNotFoundError: Fixed cost with no matching allocation
            StorageError: If the write fails (nothing is persisted)
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(parsed)
        if result.has_errors:
            await self._audit_logger.log_validation_failed(
                subject="transaction",
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            raise BudgetValidationError(
                self._validator.get_user_friendly_summary(result),
                issues=result.issues,
            )

        period = await self._require_period(context)

        posts_to_budget = parsed.transaction_type in (
            TransactionType.EXPENSE,
            TransactionType.FIXED_COST,
        )
        is_fixed = posts_to_budget and (
            parsed.is_fixed_cost or parsed.transaction_type == TransactionType.FIXED_COST
        )

        category = await self._categories.resolve_or_create_category(
            parsed.category,
            context.user_id,
            category_type=(
                CategoryType.PREDICTABLE_EXPENSES if is_fixed else CategoryType.DISCRETIONARY
            ),
            correlation_id=correlation_id,
        )

        if is_fixed:
            transaction_type = TransactionType.FIXED_COST
        elif posts_to_budget:
            transaction_type = TransactionType.EXPENSE
        else:
            transaction_type = parsed.transaction_type

        amount = to_money(parsed.amount)
        transaction = Transaction(
            user_id=context.user_id,
            pay_period_id=period.id,
            category_id=category.id,
            category_name=category.name,
            amount=amount,
            transaction_type=transaction_type,
            is_fixed_cost=is_fixed,
            description=parsed.description or None,
            merchant=parsed.merchant,
            transaction_date=parsed.transaction_date or self._today(),
        )

        try:
            if posts_to_budget:
                await self._engine.handle_classified_transaction(
                    pay_period_id=period.id,
                    amount=amount,
                    is_fixed_cost=is_fixed,
                    category=category.name,
                    transaction=transaction,
                    correlation_id=correlation_id,
                )
            else:
                await self._budget_storage.record_transaction(transaction)
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                operation="log_transaction",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_transaction_recorded(
            transaction_id=transaction.id,
            transaction_type=transaction.transaction_type.value,
            amount=amount,
            category=category.name,
            correlation_id=correlation_id,
        )

        return transaction

    # -------------------------------------------------------------------------
    # Queries & summaries
    # -------------------------------------------------------------------------

    async def get_todays_status(self, context: BudgetContext) -> TodaysStatus:
        """Zeroed when the context has no active period."""
        return await self._engine.get_todays_status(context.pay_period_id)

    async def get_period_summary(self, context: BudgetContext) -> PeriodSummary:
        """
        Raises:
            NotFoundError: If the context has no pay period
        """
        if not context.has_pay_period:
            raise NotFoundError(f"No pay period for '{context.user_id}'")
        return await self._reporter.get_period_summary(context.pay_period_id)

    async def get_recent_transactions(
        self,
        context: BudgetContext,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        return await self._budget_storage.get_recent_transactions(
            context.user_id,
            limit or self._settings.recent_transactions_limit,
        )

    async def get_category_totals(self, context: BudgetContext) -> list[CategoryTotal]:
        if not context.has_pay_period:
            return []
        return await self._budget_storage.get_category_totals(context.pay_period_id)

    async def get_budget_context(self, context: BudgetContext) -> Optional[dict[str, Any]]:
        """
        Snapshot of the user's budget for the conversational front end.

        Amounts are rendered as strings so the dict is JSON-ready.
        Returns None when the user has no active pay period.
        """
        period = await self._budget_storage.get_active_pay_period(context.user_id)
        if period is None:
            return None

        status = await self._engine.get_todays_status(period.id)
        allocations = await self._budget_storage.get_allocations(period.id)
        recent = await self.get_recent_transactions(context)
        spent_period = await self._budget_storage.get_discretionary_total(period.id)

        return {
            "currency": self._settings.currency,
            "per_diem": str(period.per_diem),
            "per_diem_remaining_today": str(status.remaining_today),
            "rollover_from_previous": str(status.rollover_from_previous),
            "days_until_payday": status.days_until_payday,
            "projected_tomorrow_per_diem": str(status.projected_tomorrow_per_diem),
            "discretionary_spent_today": str(status.spent_today),
            "discretionary_spent_period": str(spent_period),
            "fixed_costs_status": [
                {
                    "category": a.category,
                    "allocated": str(a.allocated_amount),
                    "spent": str(a.spent_amount),
                }
                for a in allocations
            ],
            "recent_transactions": [
                {
                    "amount": str(t.amount),
                    "description": t.description or "",
                    "category": t.category_name,
                    "date": t.transaction_date.isoformat(),
                }
                for t in recent
            ],
        }

    # -------------------------------------------------------------------------
    # User settings
    # -------------------------------------------------------------------------

    async def get_setting(self, context: BudgetContext, key: str) -> Optional[str]:
        return await self._settings_storage.get_setting(context.user_id, key)

    async def get_all_settings(self, context: BudgetContext) -> dict[str, str]:
        return await self._settings_storage.get_all_settings(context.user_id)

    async def set_setting(
        self,
        context: BudgetContext,
        key: str,
        value: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        if not key or not key.strip():
            raise BudgetValidationError("Setting key is required")
        saved = await self._settings_storage.set_setting(context.user_id, key.strip(), value)
        await self._audit_logger.log_setting_changed(
            user_id=context.user_id,
            key=key.strip(),
            correlation_id=correlation_id,
        )
        return saved

    async def delete_setting(self, context: BudgetContext, key: str) -> bool:
        return await self._settings_storage.delete_setting(context.user_id, key)


def create_app_components(
    settings: Optional[Settings] = None,
    today_provider: Optional[TodayProvider] = None,
) -> tuple[BudgetFlow, SQLiteClient]:
    """
    Factory function to create all application components.

    Args:
        settings: Application settings. Defaults to get_settings().
        today_provider: Clock override, mostly for tests.

    Returns:
        (budget_flow, sqlite_client)
    """
    settings = settings or get_settings()
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if settings.app.debug_mode else settings.app.log_level,
    )
    budget_settings = settings.budget
    client = SQLiteClient(settings.database)

    if settings.app.persist_audit_events:
        audit_logger = AuditLogger(SQLiteAuditStorage(client))
    else:
        audit_logger = AuditLogger()  # Local-only logging

    budget_flow = BudgetFlow(
        budget_storage=SQLiteBudgetStorage(client),
        category_storage=SQLiteCategoryStorage(client),
        settings_storage=SQLiteSettingsStorage(client),
        audit_logger=audit_logger,
        budget_settings=budget_settings,
        today_provider=today_provider,
    )

    return budget_flow, client
