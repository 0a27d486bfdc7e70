"""Custom exception types for the per-diem accounting core."""

from typing import Optional

from spendsend.models.budget import ValidationIssue


class BudgetError(Exception):
    """Base exception for accounting operations."""
    pass


class BudgetValidationError(BudgetError, ValueError):
    """
    Malformed input: negative amounts, empty periods, non-positive postings.

    Recoverable by correcting the input. Never retried automatically.
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


class NotFoundError(BudgetError, LookupError):
    """No active pay period, or a referenced period/entry does not exist."""
    pass


class CategoryNotFoundError(NotFoundError):
    """Raised when a fixed-cost posting has no allocation in the period."""

    def __init__(self, pay_period_id: str, category: str):
        self.pay_period_id = pay_period_id
        self.category = category
        super().__init__(
            f"No fixed allocation for category '{category}' in pay period '{pay_period_id}'"
        )
