"""
Audit Models for Spend & Send

Every change to a user's money picture is logged for audit purposes.
This provides:
1. A trail explaining any displayed balance
2. Debugging information when a balance looks wrong
3. Ability to reconstruct how a day's rollover was derived

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every accounting mutation has its own event type.
    """
    # Pay periods
    PAY_PERIOD_CREATED = "pay_period_created"
    PAY_PERIOD_DEACTIVATED = "pay_period_deactivated"

    # Ledger
    LEDGER_DAY_OPENED = "ledger_day_opened"
    LEDGER_ENTRY_UPSERTED = "ledger_entry_upserted"

    # Postings
    DISCRETIONARY_SPEND_POSTED = "discretionary_spend_posted"
    FIXED_COST_POSTED = "fixed_cost_posted"
    TRANSACTION_RECORDED = "transaction_recorded"

    # Classification
    CATEGORY_CREATED = "category_created"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Settings
    SETTING_CHANGED = "setting_changed"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _json_default(value: Any) -> str:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every accounting mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'pay_period', 'ledger_entry', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one chat message)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": json.loads(json.dumps(self.details, default=_json_default)),
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def details_json(self) -> str:
        return json.dumps(self.details, default=_json_default) if self.details else ""


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.pay_period_created(period, correlation_id)
        event = AuditEventBuilder.ledger_day_opened(entry, source_date)
    """

    @staticmethod
    def pay_period_created(
        pay_period_id: str,
        owner_id: str,
        per_diem: Decimal,
        days: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAY_PERIOD_CREATED,
            entity_type="pay_period",
            entity_id=pay_period_id,
            correlation_id=correlation_id,
            description=f"Pay period created: {per_diem}/day for {days} days",
            details={
                "owner_id": owner_id,
                "per_diem": per_diem,
                "days_until_payday": days,
            },
            is_user_action=True,
        )

    @staticmethod
    def pay_periods_deactivated(
        owner_id: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAY_PERIOD_DEACTIVATED,
            entity_type="owner",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Deactivated {count} previous pay period(s)",
            details={"count": count},
        )

    @staticmethod
    def ledger_day_opened(
        entry_id: str,
        pay_period_id: str,
        tracking_date: date,
        per_diem: Decimal,
        rollover: Decimal,
        rollover_source: Optional[date],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_DAY_OPENED,
            entity_type="ledger_entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Opened {tracking_date.isoformat()} with rollover {rollover}",
            details={
                "pay_period_id": pay_period_id,
                "tracking_date": tracking_date,
                "per_diem_amount": per_diem,
                "rollover_from_previous": rollover,
                "rollover_source_date": rollover_source,
            },
        )

    @staticmethod
    def ledger_entry_upserted(
        pay_period_id: str,
        tracking_date: date,
        remaining: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ENTRY_UPSERTED,
            entity_type="ledger_entry",
            correlation_id=correlation_id,
            description=f"Ledger entry for {tracking_date.isoformat()} written",
            details={
                "pay_period_id": pay_period_id,
                "tracking_date": tracking_date,
                "remaining_amount": remaining,
            },
        )

    @staticmethod
    def discretionary_spend_posted(
        pay_period_id: str,
        tracking_date: date,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DISCRETIONARY_SPEND_POSTED,
            entity_type="pay_period",
            entity_id=pay_period_id,
            correlation_id=correlation_id,
            description=f"Discretionary spend of {amount} posted",
            details={
                "tracking_date": tracking_date,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def fixed_cost_posted(
        pay_period_id: str,
        category: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FIXED_COST_POSTED,
            entity_type="pay_period",
            entity_id=pay_period_id,
            correlation_id=correlation_id,
            description=f"Fixed cost of {amount} posted to {category}",
            details={
                "category": category,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        transaction_id: str,
        transaction_type: str,
        amount: Decimal,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} of {amount} recorded ({category})",
            details={
                "transaction_type": transaction_type,
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_created(
        category_id: str,
        name: str,
        category_type: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name} ({category_type})",
            details={
                "name": name,
                "category_type": category_type,
                "user_id": user_id,
            },
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            correlation_id=correlation_id,
            description=f"Validation of {subject} failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def setting_changed(
        user_id: str,
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTING_CHANGED,
            entity_type="setting",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Setting '{key}' changed",
            details={"user_id": user_id},
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
