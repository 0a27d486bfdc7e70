"""Tests for PeriodReporter."""

import pytest
from decimal import Decimal

from spendsend.budget import NotFoundError
from spendsend.models import CategoryType, ParsedTransaction, TransactionType
from spendsend.reporting import PeriodReporter


@pytest.fixture
def reporter(budget_storage):
    return PeriodReporter(budget_storage)


class TestPeriodSummary:
    """Tests for period aggregation."""

    @pytest.mark.asyncio
    async def test_ledger_and_transactions_reconcile(self, flow, reporter, clock):
        context = await flow.resolve_context("user-1")
        await flow.log_income(context, Decimal("1000"), clock.today.replace(day=11), [
            {"category": "Housing", "amount": Decimal("600")},
        ])
        context = await flow.resolve_context("user-1")

        spends = [
            ("Coffee", "4.50"),
            ("Dining", "32.10"),
            ("Housing", "600"),
            ("Coffee", "3.75"),
            ("Groceries", "58.42"),
        ]
        for i, (category, amount) in enumerate(spends):
            await flow.log_transaction(context, ParsedTransaction(
                amount=Decimal(amount),
                category=category,
                is_fixed_cost=category == "Housing",
            ))
            if i % 2:
                clock.advance()

        await flow.log_transaction(context, ParsedTransaction(
            amount=Decimal("250"),
            category="Side gig",
            transaction_type=TransactionType.INCOME,
        ))

        summary = await reporter.get_period_summary(context.pay_period_id)
        assert summary.discretionary_spent_ledger == Decimal("98.77")
        assert summary.discretionary_spent_transactions == Decimal("98.77")
        assert summary.is_reconciled

    @pytest.mark.asyncio
    async def test_summary_totals(self, engine, reporter, period, clock):
        await engine.post_discretionary_spend(period.id, Decimal("25"))
        clock.advance()
        await engine.post_discretionary_spend(period.id, Decimal("40"))
        clock.advance()
        await engine.post_discretionary_spend(period.id, Decimal("70"))
        await engine.post_fixed_cost_spend(period.id, "Housing", Decimal("480"))

        summary = await reporter.get_period_summary(period.id)

        assert summary.income == Decimal("1000.00")
        assert summary.fixed_cost_total == Decimal("600.00")
        assert summary.fixed_allocated == Decimal("600.00")
        assert summary.fixed_spent == Decimal("480.00")
        assert summary.discretionary_pool == Decimal("400.00")
        assert summary.discretionary_spent_ledger == Decimal("135.00")
        assert summary.per_diem_rate == Decimal("40.00")
        assert summary.days_tracked == 3
        assert summary.days_under_per_diem == 1
        assert summary.days_on_target == 1
        assert summary.days_over_per_diem == 1

        housing = next(s for s in summary.fixed_breakdown if s.category == "Housing")
        assert housing.remaining == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_discretionary_breakdown_excludes_fixed_costs(self, flow, reporter, period):
        context = await flow.resolve_context("user-1")
        await flow.log_transaction(context, ParsedTransaction(amount=Decimal("5"), category="Coffee"))
        await flow.log_transaction(
            context,
            ParsedTransaction(amount=Decimal("90"), category="Utilities", is_fixed_cost=True),
        )

        summary = await reporter.get_period_summary(period.id)
        assert [(c.name, c.total) for c in summary.discretionary_breakdown] == [
            ("Coffee", Decimal("5.00"))
        ]
        assert all(c.category_type == CategoryType.DISCRETIONARY for c in summary.discretionary_breakdown)

    @pytest.mark.asyncio
    async def test_summary_is_read_only(self, reporter, period, budget_storage):
        before = await budget_storage.list_entries(period.id)
        await reporter.get_period_summary(period.id)
        assert await budget_storage.list_entries(period.id) == before

    @pytest.mark.asyncio
    async def test_unknown_period(self, reporter):
        with pytest.raises(NotFoundError):
            await reporter.get_period_summary("missing")
