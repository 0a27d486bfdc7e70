"""
Data Models Package

This package contains all Pydantic models used in Spend & Send.
All data flowing through the accounting core must conform to these schemas.
"""

from spendsend.models.budget import (
    CENTS,
    ZERO,
    AllocationRequest,
    AllocationStatus,
    BudgetContext,
    Category,
    CategoryTotal,
    CategoryType,
    FixedAllocation,
    Money,
    ParsedTransaction,
    PayPeriod,
    PerDiemLedgerEntry,
    PeriodSummary,
    RolloverMode,
    TodaysStatus,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    label_key,
    to_money,
)
from spendsend.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Money helpers
    "CENTS",
    "ZERO",
    "Money",
    "label_key",
    "to_money",
    # Budget models
    "AllocationRequest",
    "AllocationStatus",
    "BudgetContext",
    "Category",
    "CategoryTotal",
    "CategoryType",
    "FixedAllocation",
    "ParsedTransaction",
    "PayPeriod",
    "PerDiemLedgerEntry",
    "PeriodSummary",
    "RolloverMode",
    "TodaysStatus",
    "Transaction",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
