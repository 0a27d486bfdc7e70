"""Tests for the two-stage transaction validator."""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from spendsend.models import ParsedTransaction, TransactionType
from spendsend.validation import TransactionValidator

from conftest import START


@pytest.fixture
def validator(budget_settings, clock):
    return TransactionValidator(budget_settings, clock)


class TestSchemaStage:
    """Stage 1 checks."""

    def test_valid_transaction(self, validator):
        result = validator.validate(ParsedTransaction(amount=Decimal("4.50"), category="Coffee"))
        assert result.is_valid
        assert result.issues == []

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-3"), Decimal("0.001")])
    def test_non_positive_amount_is_error(self, validator, amount):
        result = validator.validate(ParsedTransaction(amount=amount, category="Coffee"))
        assert not result.schema_valid
        assert not result.semantic_valid
        assert result.issues[0].field == "amount"

    def test_half_cent_rounds_up_to_a_cent(self, validator):
        result = validator.validate(ParsedTransaction(amount=Decimal("0.005"), category="Coffee"))
        assert result.is_valid
        assert result.issues == []

    def test_missing_category_is_error(self, validator):
        result = validator.validate(ParsedTransaction(amount=Decimal("5"), category="   "))
        assert result.has_errors
        assert result.issues[0].field == "category"


class TestSemanticStage:
    """Stage 2 checks."""

    def test_amount_over_ceiling_is_error(self, validator):
        result = validator.validate(ParsedTransaction(amount=Decimal("100000.01"), category="Travel"))
        assert result.schema_valid
        assert not result.semantic_valid
        assert result.error_count == 1

    def test_future_date_is_warning(self, validator):
        result = validator.validate(ParsedTransaction(
            amount=Decimal("5"),
            category="Coffee",
            transaction_date=START + timedelta(days=3),
        ))
        assert result.is_valid
        assert any("future" in w for w in result.warnings)

    def test_tomorrow_is_within_tolerance(self, validator):
        result = validator.validate(ParsedTransaction(
            amount=Decimal("5"),
            category="Coffee",
            transaction_date=START + timedelta(days=1),
        ))
        assert result.warnings == []

    def test_old_date_is_warning(self, validator):
        result = validator.validate(ParsedTransaction(
            amount=Decimal("5"),
            category="Coffee",
            transaction_date=date(2023, 1, 1),
        ))
        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_date"

    def test_low_confidence_is_warning(self, validator):
        result = validator.validate(ParsedTransaction(
            amount=Decimal("5"),
            category="Coffee",
            confidence=0.3,
        ))
        assert result.is_valid
        assert result.issues[0].issue_type == "low_confidence"

    def test_fixed_cost_income_is_inconsistent(self, validator):
        result = validator.validate(ParsedTransaction(
            amount=Decimal("5"),
            category="Salary",
            transaction_type=TransactionType.INCOME,
            is_fixed_cost=True,
        ))
        assert result.issues[0].issue_type == "inconsistent"


class TestSummaryText:
    """Tests for the user-facing summary."""

    def test_clean_summary(self, validator):
        result = validator.validate(ParsedTransaction(amount=Decimal("5"), category="Coffee"))
        assert validator.get_user_friendly_summary(result) == "✅ Looks good!"

    def test_error_summary_lists_fixes(self, validator):
        result = validator.validate(ParsedTransaction(amount=Decimal("0"), category="Coffee"))
        text = validator.get_user_friendly_summary(result)
        assert "Amount must be greater than zero" in text
        assert "💡" in text
