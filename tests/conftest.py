"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database and a clock it can move
forward to simulate day changes.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from spendsend.audit import AuditLogger
from spendsend.budget import PayPeriodService, PerDiemEngine, PerDiemLedger
from spendsend.config import BudgetSettings, DatabaseSettings
from spendsend.models import AllocationRequest
from spendsend.orchestrator import BudgetFlow
from spendsend.services.storage import (
    SQLiteAuditStorage,
    SQLiteBudgetStorage,
    SQLiteCategoryStorage,
    SQLiteClient,
    SQLiteSettingsStorage,
)


START = date(2025, 3, 1)
PAYDAY = date(2025, 3, 11)


class Clock:
    """Mutable 'today' for the engine."""

    def __init__(self, today: date = START):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int = 1) -> date:
        self.today += timedelta(days=days)
        return self.today


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def client():
    client = SQLiteClient(DatabaseSettings(path=":memory:", connect_retries=1))
    yield client
    client.close()


@pytest.fixture
def budget_storage(client):
    return SQLiteBudgetStorage(client)


@pytest.fixture
def category_storage(client):
    return SQLiteCategoryStorage(client)


@pytest.fixture
def settings_storage(client):
    return SQLiteSettingsStorage(client)


@pytest.fixture
def audit_storage(client):
    return SQLiteAuditStorage(client)


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def budget_settings():
    return BudgetSettings(
        day_boundary_timezone="UTC",
        rollover_mode="last_entry",
        currency="USD",
        max_transaction_amount=Decimal("100000.00"),
        future_date_tolerance_days=1,
        min_parse_confidence=0.6,
        recent_transactions_limit=10,
    )


@pytest.fixture
def ledger(budget_storage, audit_logger):
    return PerDiemLedger(budget_storage, audit_logger)


@pytest.fixture
def engine(budget_storage, ledger, audit_logger, clock):
    return PerDiemEngine(
        budget_storage,
        ledger=ledger,
        audit_logger=audit_logger,
        today_provider=clock,
    )


@pytest.fixture
def pay_periods(budget_storage, audit_logger, clock):
    return PayPeriodService(budget_storage, audit_logger=audit_logger, today_provider=clock)


@pytest.fixture
def flow(budget_storage, category_storage, settings_storage, audit_logger, budget_settings, clock):
    return BudgetFlow(
        budget_storage=budget_storage,
        category_storage=category_storage,
        settings_storage=settings_storage,
        audit_logger=audit_logger,
        budget_settings=budget_settings,
        today_provider=clock,
    )


@pytest_asyncio.fixture
async def period(pay_periods):
    """1000 income, 600 fixed, 10 days: 40.00 per day."""
    return await pay_periods.create_pay_period(
        owner_id="user-1",
        start_date=START,
        end_date=PAYDAY,
        income=Decimal("1000.00"),
        fixed_cost_total=Decimal("600.00"),
        fixed_allocations=[
            AllocationRequest(category="Housing", amount=Decimal("500.00")),
            AllocationRequest(category="Utilities", amount=Decimal("100.00")),
        ],
    )
