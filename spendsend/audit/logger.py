"""
Audit Logger

DESIGN DECISION: Every change to the ledger, allocations or pay periods
is logged. This provides:
1. An explanation for every displayed balance
2. Debugging capability when a rollover looks wrong
3. A history the user can be shown

The audit logger:
- Is async to match the storage layer
- Gracefully handles failures (doesn't break accounting if logging fails)
- Supports correlation IDs to trace the events of one user action
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from spendsend.models.audit import AuditEvent, AuditEventBuilder
from spendsend.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit_events table (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("spendsend.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_pay_period_created(
        self,
        pay_period_id: str,
        owner_id: str,
        per_diem: Decimal,
        days: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.pay_period_created(
            pay_period_id=pay_period_id,
            owner_id=owner_id,
            per_diem=per_diem,
            days=days,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_pay_periods_deactivated(
        self,
        owner_id: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.pay_periods_deactivated(
            owner_id=owner_id,
            count=count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_day_opened(
        self,
        entry_id: str,
        pay_period_id: str,
        tracking_date: date,
        per_diem: Decimal,
        rollover: Decimal,
        rollover_source: Optional[date],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the lazy creation of a day's ledger entry."""
        event = AuditEventBuilder.ledger_day_opened(
            entry_id=entry_id,
            pay_period_id=pay_period_id,
            tracking_date=tracking_date,
            per_diem=per_diem,
            rollover=rollover,
            rollover_source=rollover_source,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_ledger_entry_upserted(
        self,
        pay_period_id: str,
        tracking_date: date,
        remaining: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.ledger_entry_upserted(
            pay_period_id=pay_period_id,
            tracking_date=tracking_date,
            remaining=remaining,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_discretionary_spend(
        self,
        pay_period_id: str,
        tracking_date: date,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.discretionary_spend_posted(
            pay_period_id=pay_period_id,
            tracking_date=tracking_date,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_fixed_cost(
        self,
        pay_period_id: str,
        category: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.fixed_cost_posted(
            pay_period_id=pay_period_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_recorded(
        self,
        transaction_id: str,
        transaction_type: str,
        amount: Decimal,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_category_created(
        self,
        category_id: str,
        name: str,
        category_type: str,
        user_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.category_created(
            category_id=category_id,
            name=name,
            category_type=category_type,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        subject: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            subject=subject,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_setting_changed(
        self,
        user_id: str,
        key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.setting_changed(
            user_id=user_id,
            key=key,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one chat message).
    Pass it through all subsequent operations.
    """
    return uuid4()
