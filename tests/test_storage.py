"""Tests for the SQLite storage layer."""

import pytest
from datetime import date
from decimal import Decimal

from spendsend.config import DatabaseSettings
from spendsend.models import (
    AuditEventType,
    Category,
    CategoryType,
    FixedAllocation,
    PayPeriod,
    PerDiemLedgerEntry,
    Transaction,
)
from spendsend.models.audit import AuditEventBuilder
from spendsend.services.storage import (
    DuplicateError,
    SQLiteClient,
    StorageConnectionError,
)
from spendsend.services.storage.sqlite import DEFAULT_CATEGORIES, from_cents, to_cents


def _period(owner_id="user-1", **overrides) -> PayPeriod:
    values = dict(
        owner_id=owner_id,
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


async def _recorded_transaction(budget_storage, category_storage, period) -> Transaction:
    """A transaction that is already stored, so inserting it again fails."""
    coffee = await category_storage.get_category_by_name("Coffee")
    transaction = Transaction(
        user_id=period.owner_id,
        pay_period_id=period.id,
        category_id=coffee.id,
        category_name=coffee.name,
        amount=Decimal("5"),
        transaction_date=period.start_date,
    )
    await budget_storage.record_transaction(transaction)
    return transaction


class TestCents:
    """Tests for money <-> integer cents conversion."""

    def test_to_cents(self):
        assert to_cents(Decimal("40.00")) == 4000
        assert to_cents(Decimal("-20.005")) == -2001

    def test_from_cents(self):
        assert from_cents(1550) == Decimal("15.50")
        assert from_cents(-2000) == Decimal("-20.00")


class TestClient:
    """Tests for SQLiteClient."""

    def test_unopenable_database_raises_connection_error(self, tmp_path):
        settings = DatabaseSettings(
            path=str(tmp_path / "missing" / "db.sqlite"),
            connect_retries=1,
        )
        client = SQLiteClient(settings)
        with pytest.raises(StorageConnectionError):
            client.connect()

    def test_file_database_persists_between_clients(self, tmp_path):
        settings = DatabaseSettings(path=str(tmp_path / "budget.db"), connect_retries=1)
        first = SQLiteClient(settings)
        first.connect()
        first.close()

        second = SQLiteClient(settings)
        rows = second.query("SELECT COUNT(*) AS n FROM categories WHERE user_id IS NULL")
        assert rows[0]["n"] == len(DEFAULT_CATEGORIES)
        second.close()


class TestPayPeriodStorage:
    """Tests for pay period persistence."""

    @pytest.mark.asyncio
    async def test_create_deactivates_previous(self, budget_storage):
        first = _period()
        assert await budget_storage.create_pay_period(first, []) == 0

        second = _period(start_date=date(2025, 3, 11), end_date=date(2025, 3, 25))
        assert await budget_storage.create_pay_period(second, []) == 1

        active = await budget_storage.get_active_pay_period("user-1")
        assert active.id == second.id
        stored_first = await budget_storage.get_pay_period(first.id)
        assert not stored_first.is_active

    @pytest.mark.asyncio
    async def test_other_owners_are_untouched(self, budget_storage):
        mine = _period()
        theirs = _period(owner_id="user-2")
        await budget_storage.create_pay_period(mine, [])
        await budget_storage.create_pay_period(theirs, [])

        assert (await budget_storage.get_active_pay_period("user-1")).id == mine.id
        assert (await budget_storage.get_active_pay_period("user-2")).id == theirs.id

    @pytest.mark.asyncio
    async def test_failed_create_persists_nothing(self, budget_storage):
        period = _period()
        allocations = [
            FixedAllocation(pay_period_id=period.id, category="Housing", allocated_amount=Decimal("1")),
            FixedAllocation(pay_period_id=period.id, category="housing", allocated_amount=Decimal("2")),
        ]
        with pytest.raises(DuplicateError):
            await budget_storage.create_pay_period(period, allocations)

        assert await budget_storage.get_pay_period(period.id) is None
        assert await budget_storage.get_allocations(period.id) == []

    @pytest.mark.asyncio
    async def test_money_round_trips_exactly(self, budget_storage):
        period = _period(per_diem=Decimal("33.33"), discretionary_pool=Decimal("399.96"))
        await budget_storage.create_pay_period(period, [])
        stored = await budget_storage.get_pay_period(period.id)
        assert stored.per_diem == Decimal("33.33")
        assert stored.discretionary_pool == Decimal("399.96")
        assert stored.start_date == date(2025, 3, 1)


class TestLedgerStorage:
    """Tests for ledger rows."""

    @pytest.mark.asyncio
    async def test_insert_if_absent_keeps_existing_row(self, budget_storage):
        period = _period()
        first = PerDiemLedgerEntry.open(period.id, date(2025, 3, 1), Decimal("40"))
        await budget_storage.create_pay_period(period, [], first)

        duplicate = PerDiemLedgerEntry.open(period.id, date(2025, 3, 1), Decimal("40"), Decimal("99"))
        stored = await budget_storage.insert_entries_if_absent([duplicate])

        assert stored[0].id == first.id
        assert stored[0].rollover_from_previous == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_add_spending_is_an_increment(self, budget_storage):
        period = _period()
        day = date(2025, 3, 1)
        await budget_storage.create_pay_period(
            period, [], PerDiemLedgerEntry.open(period.id, day, Decimal("40"))
        )

        assert await budget_storage.add_spending(period.id, day, Decimal("25"))
        assert await budget_storage.add_spending(period.id, day, Decimal("30"))

        entry = await budget_storage.get_entry(period.id, day)
        assert entry.spent_today == Decimal("55.00")
        assert entry.remaining_amount == Decimal("-15.00")

    @pytest.mark.asyncio
    async def test_add_spending_without_entry_writes_nothing(self, budget_storage):
        period = _period()
        await budget_storage.create_pay_period(period, [])
        transaction = Transaction(
            user_id="user-1",
            pay_period_id=period.id,
            category_id="c",
            category_name="Coffee",
            amount=Decimal("5"),
            transaction_date=date(2025, 3, 1),
        )

        assert not await budget_storage.add_spending(period.id, date(2025, 3, 1), Decimal("5"), transaction)
        assert await budget_storage.list_transactions(period.id) == []

    @pytest.mark.asyncio
    async def test_failed_transaction_insert_rolls_back_spending(self, budget_storage, category_storage):
        period = _period()
        day = date(2025, 3, 1)
        await budget_storage.create_pay_period(
            period, [], PerDiemLedgerEntry.open(period.id, day, Decimal("40"))
        )
        transaction = await _recorded_transaction(budget_storage, category_storage, period)

        with pytest.raises(DuplicateError):
            await budget_storage.add_spending(period.id, day, Decimal("5"), transaction)

        entry = await budget_storage.get_entry(period.id, day)
        assert entry.spent_today == Decimal("0.00")
        assert entry.remaining_amount == Decimal("40.00")
        assert len(await budget_storage.list_transactions(period.id)) == 1

    @pytest.mark.asyncio
    async def test_upsert_overwrites_amounts(self, budget_storage):
        period = _period()
        day = date(2025, 3, 1)
        await budget_storage.create_pay_period(period, [])
        await budget_storage.upsert_entry(PerDiemLedgerEntry.open(period.id, day, Decimal("40")))
        updated = await budget_storage.upsert_entry(
            PerDiemLedgerEntry.open(period.id, day, Decimal("40"), Decimal("10"), Decimal("5"))
        )
        assert updated.remaining_amount == Decimal("45.00")
        assert len(await budget_storage.list_entries(period.id)) == 1

    @pytest.mark.asyncio
    async def test_latest_entry_before(self, budget_storage):
        period = _period()
        await budget_storage.create_pay_period(period, [])
        await budget_storage.insert_entries_if_absent([
            PerDiemLedgerEntry.open(period.id, date(2025, 3, 1), Decimal("40")),
            PerDiemLedgerEntry.open(period.id, date(2025, 3, 4), Decimal("40")),
        ])

        latest = await budget_storage.get_latest_entry_before(period.id, date(2025, 3, 6))
        assert latest.tracking_date == date(2025, 3, 4)
        assert await budget_storage.get_latest_entry_before(period.id, date(2025, 3, 1)) is None


class TestAllocationStorage:
    """Tests for fixed allocations."""

    @pytest.mark.asyncio
    async def test_fixed_spending_matches_case_insensitively(self, budget_storage):
        period = _period()
        allocation = FixedAllocation(
            pay_period_id=period.id,
            category="Housing",
            allocated_amount=Decimal("500"),
        )
        await budget_storage.create_pay_period(period, [allocation])

        assert await budget_storage.add_fixed_spending(period.id, "housing", Decimal("450"))
        assert not await budget_storage.add_fixed_spending(period.id, "Debt", Decimal("1"))

        stored = await budget_storage.get_allocation(period.id, "HOUSING")
        assert stored.spent_amount == Decimal("450.00")
        assert stored.remaining_amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_non_ascii_labels_match(self, budget_storage):
        period = _period()
        allocation = FixedAllocation(
            pay_period_id=period.id,
            category="Crèche",
            allocated_amount=Decimal("300"),
        )
        await budget_storage.create_pay_period(period, [allocation])

        assert await budget_storage.add_fixed_spending(period.id, "CRÈCHE", Decimal("120"))

        stored = await budget_storage.get_allocation(period.id, "crèche")
        assert stored.category == "Crèche"
        assert stored.spent_amount == Decimal("120.00")

    @pytest.mark.asyncio
    async def test_failed_transaction_insert_rolls_back_fixed_spending(self, budget_storage, category_storage):
        period = _period()
        allocation = FixedAllocation(
            pay_period_id=period.id,
            category="Housing",
            allocated_amount=Decimal("500"),
        )
        await budget_storage.create_pay_period(period, [allocation])
        transaction = await _recorded_transaction(budget_storage, category_storage, period)

        with pytest.raises(DuplicateError):
            await budget_storage.add_fixed_spending(period.id, "Housing", Decimal("450"), transaction)

        stored = await budget_storage.get_allocation(period.id, "Housing")
        assert stored.spent_amount == Decimal("0.00")
        assert stored.remaining_amount == Decimal("500.00")


class TestCategoryStorage:
    """Tests for the category store."""

    @pytest.mark.asyncio
    async def test_defaults_are_seeded(self, category_storage):
        fixed = await category_storage.list_categories(category_type=CategoryType.PREDICTABLE_EXPENSES)
        assert {c.name for c in fixed} == {"Housing", "Utilities", "Debt", "Savings"}

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self, category_storage):
        category = await category_storage.get_category_by_name("coffee", "user-1")
        assert category.name == "Coffee"
        assert category.is_default

    @pytest.mark.asyncio
    async def test_user_category_is_private(self, category_storage):
        await category_storage.create_category(Category(user_id="user-1", name="Climbing"))
        assert await category_storage.get_category_by_name("Climbing", "user-1") is not None
        assert await category_storage.get_category_by_name("Climbing", "user-2") is None

    @pytest.mark.asyncio
    async def test_duplicate_category_rejected(self, category_storage):
        await category_storage.create_category(Category(user_id="user-1", name="Climbing"))
        with pytest.raises(DuplicateError):
            await category_storage.create_category(Category(user_id="user-1", name="climbing"))


class TestSettingsStorage:
    """Tests for the per-user settings store."""

    @pytest.mark.asyncio
    async def test_set_get_overwrite_delete(self, settings_storage):
        assert await settings_storage.get_setting("user-1", "currency") is None

        await settings_storage.set_setting("user-1", "currency", "USD")
        await settings_storage.set_setting("user-1", "currency", "EUR")
        await settings_storage.set_setting("user-2", "currency", "GBP")

        assert await settings_storage.get_setting("user-1", "currency") == "EUR"
        assert await settings_storage.get_all_settings("user-1") == {"currency": "EUR"}

        assert await settings_storage.delete_setting("user-1", "currency")
        assert not await settings_storage.delete_setting("user-1", "currency")
        assert await settings_storage.get_setting("user-2", "currency") == "GBP"


class TestAuditStorage:
    """Tests for the append-only audit trail."""

    @pytest.mark.asyncio
    async def test_append_and_query(self, audit_storage):
        event = AuditEventBuilder.discretionary_spend_posted(
            pay_period_id="p-1",
            tracking_date=date(2025, 3, 1),
            amount=Decimal("25.00"),
        )
        assert await audit_storage.append_event(event)

        recent = await audit_storage.get_recent_events(limit=5)
        assert len(recent) == 1
        assert recent[0].event_type == AuditEventType.DISCRETIONARY_SPEND_POSTED
        assert recent[0].details["amount"] == "25.00"

    @pytest.mark.asyncio
    async def test_append_failure_returns_false(self, audit_storage):
        event = AuditEventBuilder.setting_changed(user_id="user-1", key="currency")
        assert await audit_storage.append_event(event)
        # Same event_id again violates the primary key
        assert not await audit_storage.append_event(event)
