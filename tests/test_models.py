"""
Tests for Spend & Send

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows against an in-memory SQLite database
3. No network calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from spendsend.models.budget import (
    AllocationRequest,
    AllocationStatus,
    Category,
    CategoryType,
    FixedAllocation,
    ParsedTransaction,
    PayPeriod,
    PerDiemLedgerEntry,
    PeriodSummary,
    TodaysStatus,
    Transaction,
    ValidationIssue,
    ValidationResult,
    to_money,
)
from spendsend.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestMoney:
    """Tests for cent quantization."""

    def test_rounds_half_up(self):
        assert to_money(Decimal("0.005")) == Decimal("0.01")
        assert to_money(Decimal("2.345")) == Decimal("2.35")

    def test_float_goes_through_str(self):
        assert to_money(0.1 + 0.2) == Decimal("0.30")

    def test_negative_values_keep_sign(self):
        assert to_money("-20") == Decimal("-20.00")


class TestPayPeriodModels:
    """Tests for pay period and allocation models."""

    def _period(self, **overrides):
        values = dict(
            owner_id="user-1",
            start_date=date(2025, 3, 1),
            end_date=date(2025, 3, 11),
            income_amount=Decimal("1000"),
            fixed_cost_total=Decimal("600"),
            discretionary_pool=Decimal("400"),
            per_diem=Decimal("40"),
            days_until_payday=10,
        )
        values.update(overrides)
        return PayPeriod(**values)

    def test_pay_period_creation(self):
        period = self._period()
        assert period.per_diem == Decimal("40.00")
        assert period.is_active
        assert period.id

    def test_pay_period_rejects_end_before_start(self):
        with pytest.raises(ValueError):
            self._period(end_date=date(2025, 3, 1))

    def test_pay_period_rejects_negative_income(self):
        with pytest.raises(ValueError):
            self._period(income_amount=Decimal("-1"))

    def test_pay_period_allows_negative_pool(self):
        period = self._period(
            fixed_cost_total=Decimal("1200"),
            discretionary_pool=Decimal("-200"),
            per_diem=Decimal("-20"),
        )
        assert period.per_diem == Decimal("-20.00")

    def test_allocation_remaining(self):
        allocation = FixedAllocation(
            pay_period_id="p",
            category="Housing",
            allocated_amount=Decimal("500"),
            spent_amount=Decimal("120.50"),
        )
        assert allocation.remaining_amount == Decimal("379.50")

    def test_allocation_request_strips_whitespace(self):
        request = AllocationRequest(category="  Housing ", amount=Decimal("10"))
        assert request.category == "Housing"


class TestLedgerEntryModel:
    """Tests for the per-diem ledger entry invariant."""

    def test_open_derives_remaining(self):
        entry = PerDiemLedgerEntry.open(
            pay_period_id="p",
            tracking_date=date(2025, 3, 2),
            per_diem_amount=Decimal("40"),
            rollover_from_previous=Decimal("-20"),
            spent_today=Decimal("5"),
        )
        assert entry.remaining_amount == Decimal("15.00")
        assert entry.available_today == Decimal("20.00")

    def test_rejects_out_of_balance_entry(self):
        with pytest.raises(ValueError):
            PerDiemLedgerEntry(
                pay_period_id="p",
                tracking_date=date(2025, 3, 2),
                per_diem_amount=Decimal("40"),
                remaining_amount=Decimal("41"),
            )

    def test_rejects_negative_spent(self):
        with pytest.raises(ValueError):
            PerDiemLedgerEntry.open("p", date(2025, 3, 2), Decimal("40"), spent_today=Decimal("-1"))


class TestTransactionModels:
    """Tests for categories and transactions."""

    def test_fixed_cost_category(self):
        assert Category(name="Housing", category_type=CategoryType.PREDICTABLE_EXPENSES).is_fixed_cost
        assert not Category(name="Coffee").is_fixed_cost

    def test_transaction_rejects_zero_amount(self):
        with pytest.raises(ValueError):
            Transaction(
                user_id="u",
                pay_period_id="p",
                category_id="c",
                category_name="Coffee",
                amount=Decimal("0"),
                transaction_date=date(2025, 3, 1),
            )

    def test_parsed_transaction_confidence_bounds(self):
        with pytest.raises(ValueError):
            ParsedTransaction(amount=Decimal("5"), category="Coffee", confidence=1.5)


class TestReadModels:
    """Tests for status and summary views."""

    def test_zeroed_status(self):
        status = TodaysStatus.zeroed()
        assert status.per_diem_rate == Decimal("0")
        assert status.remaining_today == Decimal("0")
        assert status.days_until_payday == 0
        assert not status.has_active_period

    def test_allocation_status_remaining(self):
        status = AllocationStatus(category="Debt", allocated=Decimal("100"), spent=Decimal("130"))
        assert status.remaining == Decimal("-30.00")

    def test_summary_reconciled_flag(self):
        summary = PeriodSummary(
            pay_period_id="p",
            income=Decimal("1000"),
            fixed_cost_total=Decimal("600"),
            fixed_allocated=Decimal("600"),
            fixed_spent=Decimal("0"),
            discretionary_pool=Decimal("400"),
            discretionary_spent_ledger=Decimal("25"),
            discretionary_spent_transactions=Decimal("25.00"),
            per_diem_rate=Decimal("40"),
            days_tracked=1,
            days_under_per_diem=1,
            days_over_per_diem=0,
            days_on_target=0,
        )
        assert summary.is_reconciled


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.PAY_PERIOD_CREATED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.PAY_PERIOD_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.DISCRETIONARY_SPEND_POSTED,
            description="Spent",
            details={"amount": Decimal("25.00"), "tracking_date": date(2025, 3, 1)},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "discretionary_spend_posted"
        assert log_dict["details"] == {"amount": "25.00", "tracking_date": "2025-03-01"}

    def test_audit_event_builder_pay_period_created(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.pay_period_created(
            pay_period_id="p-1",
            owner_id="user-1",
            per_diem=Decimal("40.00"),
            days=10,
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.PAY_PERIOD_CREATED
        assert event.entity_id == "p-1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action

    def test_audit_event_builder_ledger_day_opened(self):
        event = AuditEventBuilder.ledger_day_opened(
            entry_id="e-1",
            pay_period_id="p-1",
            tracking_date=date(2025, 3, 2),
            per_diem=Decimal("40.00"),
            rollover=Decimal("15.00"),
            rollover_source=date(2025, 3, 1),
        )
        assert event.entity_type == "ledger_entry"
        assert event.details["rollover_from_previous"] == Decimal("15.00")


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount missing",
                    severity="error",
                ),
                ValidationIssue(
                    field="confidence",
                    issue_type="low_confidence",
                    message="Low confidence",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_issue_severity_pattern(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")
