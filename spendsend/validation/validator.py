"""
Two-Stage Validation Pipeline

DESIGN DECISION: Parsed transactions are validated in two distinct stages
before anything touches the ledger:

STAGE 1 - SCHEMA VALIDATION:
- Amount present, numeric and positive
- Category label present
- This catches malformed output from the conversational parser

STAGE 2 - SEMANTIC VALIDATION:
- Absurd amount detection
- Future and very old dates
- Low parser confidence
- Inconsistent type/flag combinations
- This catches logically impossible or suspicious data

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the caller decides whether to proceed.
"""

from datetime import date, timedelta
from typing import Callable, Optional

from spendsend.budget.calendar import make_today_provider
from spendsend.config import BudgetSettings, get_settings
from spendsend.models import (
    ParsedTransaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    to_money,
)


class TransactionValidator:
    """
    Validates parsed transactions through a two-stage pipeline.

    Stage 1: Schema validation
    Stage 2: Semantic validation against the configured budget limits
    """

    def __init__(
        self,
        settings: Optional[BudgetSettings] = None,
        today_provider: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize validator.

        Args:
            settings: Budget limits. Defaults to the global settings.
            today_provider: Source of the current date for date checks.
        """
        self._settings = settings or get_settings().budget
        self._today = today_provider or make_today_provider(self._settings.day_boundary_timezone)

    def _validate_schema(
        self,
        parsed: ParsedTransaction,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not parsed.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount is not a number",
                severity="error",
                suggested_fix="Say the amount again, e.g. '12.50'",
            ))
        elif parsed.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Log refunds as income instead",
            ))
        elif to_money(parsed.amount) == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount ({parsed.amount}) rounds to zero",
                severity="error",
            ))

        if not parsed.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required but was not provided",
                severity="error",
                suggested_fix="Tell me what the money was spent on",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        parsed: ParsedTransaction,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        today = self._today()

        max_amount = self._settings.max_transaction_amount
        if parsed.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({parsed.amount:,.2f} {self._settings.currency}) "
                    f"exceeds the limit of {max_amount:,.2f}"
                ),
                severity="error",
                suggested_fix="Please verify this amount is correct",
            ))

        if parsed.transaction_date:
            max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
            if parsed.transaction_date > max_future_date:
                issues.append(ValidationIssue(
                    field="transaction_date",
                    issue_type="future_date",
                    message=f"Transaction date ({parsed.transaction_date}) is in the future",
                    severity="warning",
                    suggested_fix="Please verify the date is correct",
                ))

            # Probably a parsing slip
            min_reasonable_date = today - timedelta(days=365)
            if parsed.transaction_date < min_reasonable_date:
                issues.append(ValidationIssue(
                    field="transaction_date",
                    issue_type="suspicious_date",
                    message=f"Transaction date ({parsed.transaction_date}) is over a year old",
                    severity="warning",
                    suggested_fix="Please verify the date was understood correctly",
                ))

        if parsed.confidence < self._settings.min_parse_confidence:
            issues.append(ValidationIssue(
                field="confidence",
                issue_type="low_confidence",
                message=f"Parser confidence is low ({parsed.confidence:.0%})",
                severity="warning",
                suggested_fix="Please check the amount and category",
            ))

        if parsed.is_fixed_cost and parsed.transaction_type in (
            TransactionType.INCOME,
            TransactionType.TRANSFER,
        ):
            issues.append(ValidationIssue(
                field="is_fixed_cost",
                issue_type="inconsistent",
                message=(
                    f"A {parsed.transaction_type.value} cannot be a fixed cost"
                ),
                severity="warning",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(self, parsed: ParsedTransaction) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            parsed: The parsed transaction to validate

        Returns:
            ValidationResult with all issues found
        """
        all_issues = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(parsed)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(parsed)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the chat front end shows back to the user.
        """
        if result.is_valid and not result.warnings:
            return "✅ Looks good!"

        lines = []

        if result.has_errors:
            lines.append("❌ I couldn't log that transaction:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please double-check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
