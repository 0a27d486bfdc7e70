"""
SQLite Storage Implementation

DESIGN DECISION: A local SQLite file is the storage backend because:
1. The app is a single-device personal store
2. No server to run or secure
3. Real transactions, so every posting is all-or-nothing
4. Atomic relative updates (spent = spent + ?) in a single statement

Money is stored as INTEGER cents, dates as 'YYYY-MM-DD' text without
offset. Category and allocation labels are matched on a casefolded key column
(name_key, category_key) so lookups are case-insensitive beyond ASCII.

The implementation follows the abstract interfaces, so the engine never
sees SQL.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID, uuid4

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from spendsend.config import DatabaseSettings, get_settings
from spendsend.models.audit import AuditEvent, AuditEventType, AuditSeverity
from spendsend.models.budget import (
    Category,
    CategoryTotal,
    CategoryType,
    FixedAllocation,
    PayPeriod,
    PerDiemLedgerEntry,
    Transaction,
    TransactionType,
    label_key,
    to_money,
)
from spendsend.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    SettingsStorageInterface,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS pay_periods (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    income_cents INTEGER NOT NULL,
    fixed_cost_total_cents INTEGER NOT NULL,
    discretionary_pool_cents INTEGER NOT NULL,
    per_diem_cents INTEGER NOT NULL,
    days_until_payday INTEGER NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_pay_periods_owner_active ON pay_periods(owner_id, is_active);

CREATE TABLE IF NOT EXISTS fixed_allocations (
    id TEXT PRIMARY KEY,
    pay_period_id TEXT NOT NULL REFERENCES pay_periods(id),
    category TEXT NOT NULL,
    category_key TEXT NOT NULL,
    allocated_cents INTEGER NOT NULL,
    spent_cents INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE(pay_period_id, category_key)
);

CREATE TABLE IF NOT EXISTS per_diem_ledger (
    id TEXT PRIMARY KEY,
    pay_period_id TEXT NOT NULL REFERENCES pay_periods(id),
    tracking_date TEXT NOT NULL,
    per_diem_cents INTEGER NOT NULL,
    remaining_cents INTEGER NOT NULL,
    spent_cents INTEGER NOT NULL DEFAULT 0,
    rollover_cents INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE(pay_period_id, tracking_date)
);

CREATE TABLE IF NOT EXISTS categories (
    id TEXT PRIMARY KEY,
    user_id TEXT,
    name TEXT NOT NULL,
    name_key TEXT NOT NULL,
    category_type TEXT NOT NULL CHECK (category_type IN ('predictable_expenses', 'discretionary')),
    is_default INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_categories_user ON categories(user_id, is_active);
CREATE INDEX IF NOT EXISTS idx_categories_key ON categories(name_key);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    pay_period_id TEXT NOT NULL REFERENCES pay_periods(id),
    category_id TEXT NOT NULL REFERENCES categories(id),
    category_name TEXT NOT NULL,
    amount_cents INTEGER NOT NULL CHECK (amount_cents > 0),
    transaction_type TEXT NOT NULL CHECK (transaction_type IN ('income', 'expense', 'fixed_cost', 'transfer')),
    is_fixed_cost INTEGER NOT NULL DEFAULT 0,
    description TEXT,
    merchant TEXT,
    transaction_date TEXT NOT NULL,
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_period ON transactions(pay_period_id);
CREATE INDEX IF NOT EXISTS idx_transactions_user ON transactions(user_id, transaction_date);

CREATE TABLE IF NOT EXISTS settings (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(user_id, key)
);

CREATE TABLE IF NOT EXISTS audit_events (
    event_id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    event_type TEXT NOT NULL,
    severity TEXT NOT NULL,
    entity_type TEXT,
    entity_id TEXT,
    correlation_id TEXT,
    description TEXT NOT NULL,
    details_json TEXT,
    error_code TEXT,
    error_message TEXT,
    is_user_action INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_audit_correlation ON audit_events(correlation_id);
CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_events(entity_type, entity_id);
"""

# Shared categories available to every user
DEFAULT_CATEGORIES = [
    # Predictable expenses
    ("Housing", CategoryType.PREDICTABLE_EXPENSES),
    ("Utilities", CategoryType.PREDICTABLE_EXPENSES),
    ("Debt", CategoryType.PREDICTABLE_EXPENSES),
    ("Savings", CategoryType.PREDICTABLE_EXPENSES),
    # Discretionary
    ("Dining", CategoryType.DISCRETIONARY),
    ("Transportation", CategoryType.DISCRETIONARY),
    ("Coffee", CategoryType.DISCRETIONARY),
    ("Shopping", CategoryType.DISCRETIONARY),
    ("Entertainment", CategoryType.DISCRETIONARY),
    ("Subscriptions", CategoryType.DISCRETIONARY),
    ("Health", CategoryType.DISCRETIONARY),
    ("Personal", CategoryType.DISCRETIONARY),
    ("Kids/Family", CategoryType.DISCRETIONARY),
    ("Pets", CategoryType.DISCRETIONARY),
    ("Gifts", CategoryType.DISCRETIONARY),
    ("Travel", CategoryType.DISCRETIONARY),
    ("Misc", CategoryType.DISCRETIONARY),
]


def to_cents(amount: Decimal) -> int:
    """Decimal money -> integer cents."""
    return int(to_money(amount).scaleb(2))


def from_cents(cents: int) -> Decimal:
    """Integer cents -> Decimal money with two places."""
    return Decimal(int(cents)).scaleb(-2)


class SQLiteClient:
    """
    Low-level SQLite wrapper.

    Opens the database (with retry), creates the schema, seeds default
    categories and serializes access to the shared connection.
    """

    def __init__(self, settings: Optional[DatabaseSettings] = None):
        self._settings = settings or get_settings().database
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def path(self) -> str:
        return self._settings.path

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._settings.path,
            timeout=self._settings.timeout_seconds,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.executescript(SCHEMA_SQL)
        self._seed_default_categories(conn)
        return conn

    def connect(self) -> sqlite3.Connection:
        """
        Open the database on first use.

        Locked or busy files (sqlite3.OperationalError) are retried with
        exponential backoff before giving up.
        """
        if self._conn is None:
            try:
                for attempt in Retrying(
                    stop=stop_after_attempt(self._settings.connect_retries),
                    wait=wait_exponential(multiplier=1, min=2, max=10),
                    retry=retry_if_exception_type(sqlite3.OperationalError),
                    reraise=True,
                ):
                    with attempt:
                        self._conn = self._open()
            except sqlite3.Error as e:
                raise StorageConnectionError(
                    f"Failed to open database {self._settings.path}: {e}"
                ) from e
            logger.debug("database_opened", path=self._settings.path)
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        One atomic unit of work. Commits on success, rolls back on any
        exception; sqlite errors surface as StorageError.
        """
        conn = self.connect()
        with self._lock:
            try:
                with conn:
                    yield conn
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise DuplicateError(str(e)) from e
                raise StorageError(str(e)) from e
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn = self.connect()
        with self._lock:
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def _seed_default_categories(self, conn: sqlite3.Connection) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with conn:
            for name, category_type in DEFAULT_CATEGORIES:
                conn.execute(
                    """INSERT INTO categories (id, user_id, name, name_key, category_type, is_default, is_active, created_at)
                       SELECT ?, NULL, ?, ?, ?, 1, 1, ?
                       WHERE NOT EXISTS (
                           SELECT 1 FROM categories WHERE user_id IS NULL AND name_key = ?
                       )""",
                    (str(uuid4()), name, label_key(name), category_type.value, now, label_key(name)),
                )


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _row_to_period(row: sqlite3.Row) -> PayPeriod:
    return PayPeriod(
        id=row["id"],
        owner_id=row["owner_id"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        income_amount=from_cents(row["income_cents"]),
        fixed_cost_total=from_cents(row["fixed_cost_total_cents"]),
        discretionary_pool=from_cents(row["discretionary_pool_cents"]),
        per_diem=from_cents(row["per_diem_cents"]),
        days_until_payday=row["days_until_payday"],
        is_active=bool(row["is_active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_allocation(row: sqlite3.Row) -> FixedAllocation:
    return FixedAllocation(
        id=row["id"],
        pay_period_id=row["pay_period_id"],
        category=row["category"],
        allocated_amount=from_cents(row["allocated_cents"]),
        spent_amount=from_cents(row["spent_cents"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_entry(row: sqlite3.Row) -> PerDiemLedgerEntry:
    return PerDiemLedgerEntry(
        id=row["id"],
        pay_period_id=row["pay_period_id"],
        tracking_date=date.fromisoformat(row["tracking_date"]),
        per_diem_amount=from_cents(row["per_diem_cents"]),
        remaining_amount=from_cents(row["remaining_cents"]),
        spent_today=from_cents(row["spent_cents"]),
        rollover_from_previous=from_cents(row["rollover_cents"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_category(row: sqlite3.Row) -> Category:
    return Category(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        category_type=CategoryType(row["category_type"]),
        is_default=bool(row["is_default"]),
        is_active=bool(row["is_active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        user_id=row["user_id"],
        pay_period_id=row["pay_period_id"],
        category_id=row["category_id"],
        category_name=row["category_name"],
        amount=from_cents(row["amount_cents"]),
        transaction_type=TransactionType(row["transaction_type"]),
        is_fixed_cost=bool(row["is_fixed_cost"]),
        description=row["description"],
        merchant=row["merchant"],
        transaction_date=date.fromisoformat(row["transaction_date"]),
        notes=row["notes"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


# =============================================================================
# BUDGET STORAGE
# =============================================================================

class SQLiteBudgetStorage(BudgetStorageInterface):
    """
    SQLite implementation of pay period, allocation, ledger and
    transaction storage.
    """

    def __init__(self, client: Optional[SQLiteClient] = None):
        self._client = client or SQLiteClient()

    # ----- writes shared by several units of work -----

    @staticmethod
    def _insert_transaction(conn: sqlite3.Connection, t: Transaction) -> None:
        conn.execute(
            """INSERT INTO transactions
               (id, user_id, pay_period_id, category_id, category_name, amount_cents,
                transaction_type, is_fixed_cost, description, merchant, transaction_date,
                notes, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                t.id,
                t.user_id,
                t.pay_period_id,
                t.category_id,
                t.category_name,
                to_cents(t.amount),
                t.transaction_type.value,
                int(t.is_fixed_cost),
                t.description,
                t.merchant,
                t.transaction_date.isoformat(),
                t.notes,
                t.created_at.isoformat(),
            ),
        )

    @staticmethod
    def _insert_entry(
        conn: sqlite3.Connection,
        entry: PerDiemLedgerEntry,
        on_conflict: str,
    ) -> None:
        conn.execute(
            f"""INSERT INTO per_diem_ledger
                (id, pay_period_id, tracking_date, per_diem_cents, remaining_cents,
                 spent_cents, rollover_cents, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(pay_period_id, tracking_date) {on_conflict}""",
            (
                entry.id,
                entry.pay_period_id,
                entry.tracking_date.isoformat(),
                to_cents(entry.per_diem_amount),
                to_cents(entry.remaining_amount),
                to_cents(entry.spent_today),
                to_cents(entry.rollover_from_previous),
                entry.created_at.isoformat(),
            ),
        )

    @staticmethod
    def _select_entry(
        conn: sqlite3.Connection,
        pay_period_id: str,
        tracking_date: date,
    ) -> PerDiemLedgerEntry:
        row = conn.execute(
            "SELECT * FROM per_diem_ledger WHERE pay_period_id = ? AND tracking_date = ?",
            (pay_period_id, tracking_date.isoformat()),
        ).fetchone()
        return _row_to_entry(row)

    # ----- pay periods -----

    async def create_pay_period(
        self,
        period: PayPeriod,
        allocations: list[FixedAllocation],
        opening_entry: Optional[PerDiemLedgerEntry] = None,
    ) -> int:
        with self._client.transaction() as conn:
            deactivated = conn.execute(
                "UPDATE pay_periods SET is_active = 0 WHERE owner_id = ? AND is_active = 1",
                (period.owner_id,),
            ).rowcount
            conn.execute(
                """INSERT INTO pay_periods
                   (id, owner_id, start_date, end_date, income_cents, fixed_cost_total_cents,
                    discretionary_pool_cents, per_diem_cents, days_until_payday, is_active,
                    created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    period.id,
                    period.owner_id,
                    period.start_date.isoformat(),
                    period.end_date.isoformat(),
                    to_cents(period.income_amount),
                    to_cents(period.fixed_cost_total),
                    to_cents(period.discretionary_pool),
                    to_cents(period.per_diem),
                    period.days_until_payday,
                    int(period.is_active),
                    period.created_at.isoformat(),
                ),
            )
            for allocation in allocations:
                conn.execute(
                    """INSERT INTO fixed_allocations
                       (id, pay_period_id, category, category_key, allocated_cents, spent_cents, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        allocation.id,
                        allocation.pay_period_id,
                        allocation.category,
                        label_key(allocation.category),
                        to_cents(allocation.allocated_amount),
                        to_cents(allocation.spent_amount),
                        allocation.created_at.isoformat(),
                    ),
                )
            if opening_entry is not None:
                self._insert_entry(conn, opening_entry, "DO NOTHING")
        return deactivated

    async def get_pay_period(self, pay_period_id: str) -> Optional[PayPeriod]:
        rows = self._client.query(
            "SELECT * FROM pay_periods WHERE id = ?",
            (pay_period_id,),
        )
        return _row_to_period(rows[0]) if rows else None

    async def get_active_pay_period(self, owner_id: str) -> Optional[PayPeriod]:
        rows = self._client.query(
            """SELECT * FROM pay_periods
               WHERE owner_id = ? AND is_active = 1
               ORDER BY start_date DESC, created_at DESC
               LIMIT 1""",
            (owner_id,),
        )
        return _row_to_period(rows[0]) if rows else None

    async def list_pay_periods(self, owner_id: str) -> list[PayPeriod]:
        rows = self._client.query(
            "SELECT * FROM pay_periods WHERE owner_id = ? ORDER BY start_date DESC, created_at DESC",
            (owner_id,),
        )
        return [_row_to_period(row) for row in rows]

    # ----- fixed allocations -----

    async def get_allocations(self, pay_period_id: str) -> list[FixedAllocation]:
        rows = self._client.query(
            "SELECT * FROM fixed_allocations WHERE pay_period_id = ? ORDER BY category_key",
            (pay_period_id,),
        )
        return [_row_to_allocation(row) for row in rows]

    async def get_allocation(
        self,
        pay_period_id: str,
        category: str,
    ) -> Optional[FixedAllocation]:
        rows = self._client.query(
            "SELECT * FROM fixed_allocations WHERE pay_period_id = ? AND category_key = ?",
            (pay_period_id, label_key(category)),
        )
        return _row_to_allocation(rows[0]) if rows else None

    async def add_fixed_spending(
        self,
        pay_period_id: str,
        category: str,
        amount: Decimal,
        transaction: Optional[Transaction] = None,
    ) -> bool:
        with self._client.transaction() as conn:
            updated = conn.execute(
                """UPDATE fixed_allocations
                   SET spent_cents = spent_cents + ?
                   WHERE pay_period_id = ? AND category_key = ?""",
                (to_cents(amount), pay_period_id, label_key(category)),
            ).rowcount
            if updated == 0:
                return False
            if transaction is not None:
                self._insert_transaction(conn, transaction)
        return True

    # ----- per-diem ledger -----

    async def get_entry(
        self,
        pay_period_id: str,
        tracking_date: date,
    ) -> Optional[PerDiemLedgerEntry]:
        rows = self._client.query(
            "SELECT * FROM per_diem_ledger WHERE pay_period_id = ? AND tracking_date = ?",
            (pay_period_id, tracking_date.isoformat()),
        )
        return _row_to_entry(rows[0]) if rows else None

    async def get_latest_entry_before(
        self,
        pay_period_id: str,
        tracking_date: date,
    ) -> Optional[PerDiemLedgerEntry]:
        rows = self._client.query(
            """SELECT * FROM per_diem_ledger
               WHERE pay_period_id = ? AND tracking_date < ?
               ORDER BY tracking_date DESC
               LIMIT 1""",
            (pay_period_id, tracking_date.isoformat()),
        )
        return _row_to_entry(rows[0]) if rows else None

    async def list_entries(self, pay_period_id: str) -> list[PerDiemLedgerEntry]:
        rows = self._client.query(
            "SELECT * FROM per_diem_ledger WHERE pay_period_id = ? ORDER BY tracking_date",
            (pay_period_id,),
        )
        return [_row_to_entry(row) for row in rows]

    async def upsert_entry(self, entry: PerDiemLedgerEntry) -> PerDiemLedgerEntry:
        with self._client.transaction() as conn:
            self._insert_entry(
                conn,
                entry,
                """DO UPDATE SET
                       per_diem_cents = excluded.per_diem_cents,
                       remaining_cents = excluded.remaining_cents,
                       spent_cents = excluded.spent_cents,
                       rollover_cents = excluded.rollover_cents""",
            )
            return self._select_entry(conn, entry.pay_period_id, entry.tracking_date)

    async def insert_entries_if_absent(
        self,
        entries: list[PerDiemLedgerEntry],
    ) -> list[PerDiemLedgerEntry]:
        with self._client.transaction() as conn:
            for entry in entries:
                self._insert_entry(conn, entry, "DO NOTHING")
            return [
                self._select_entry(conn, entry.pay_period_id, entry.tracking_date)
                for entry in entries
            ]

    async def add_spending(
        self,
        pay_period_id: str,
        tracking_date: date,
        amount: Decimal,
        transaction: Optional[Transaction] = None,
    ) -> bool:
        cents = to_cents(amount)
        with self._client.transaction() as conn:
            updated = conn.execute(
                """UPDATE per_diem_ledger
                   SET spent_cents = spent_cents + ?, remaining_cents = remaining_cents - ?
                   WHERE pay_period_id = ? AND tracking_date = ?""",
                (cents, cents, pay_period_id, tracking_date.isoformat()),
            ).rowcount
            if updated == 0:
                return False
            if transaction is not None:
                self._insert_transaction(conn, transaction)
        return True

    # ----- transactions -----

    async def record_transaction(self, transaction: Transaction) -> bool:
        with self._client.transaction() as conn:
            self._insert_transaction(conn, transaction)
        return True

    async def list_transactions(self, pay_period_id: str) -> list[Transaction]:
        rows = self._client.query(
            """SELECT * FROM transactions WHERE pay_period_id = ?
               ORDER BY transaction_date DESC, created_at DESC""",
            (pay_period_id,),
        )
        return [_row_to_transaction(row) for row in rows]

    async def get_recent_transactions(
        self,
        user_id: str,
        limit: int = 20,
    ) -> list[Transaction]:
        rows = self._client.query(
            """SELECT * FROM transactions WHERE user_id = ?
               ORDER BY transaction_date DESC, created_at DESC
               LIMIT ?""",
            (user_id, limit),
        )
        return [_row_to_transaction(row) for row in rows]

    async def get_discretionary_total(self, pay_period_id: str) -> Decimal:
        rows = self._client.query(
            """SELECT COALESCE(SUM(amount_cents), 0) AS total
               FROM transactions
               WHERE pay_period_id = ? AND transaction_type = 'expense' AND is_fixed_cost = 0""",
            (pay_period_id,),
        )
        return from_cents(rows[0]["total"])

    async def get_category_totals(self, pay_period_id: str) -> list[CategoryTotal]:
        rows = self._client.query(
            """SELECT category_name AS name,
                      is_fixed_cost,
                      SUM(amount_cents) AS total,
                      COUNT(id) AS count
               FROM transactions
               WHERE pay_period_id = ? AND transaction_type IN ('expense', 'fixed_cost')
               GROUP BY category_id, category_name, is_fixed_cost
               ORDER BY total DESC, name""",
            (pay_period_id,),
        )
        return [
            CategoryTotal(
                name=row["name"],
                category_type=(
                    CategoryType.PREDICTABLE_EXPENSES
                    if row["is_fixed_cost"]
                    else CategoryType.DISCRETIONARY
                ),
                total=from_cents(row["total"]),
                count=row["count"],
            )
            for row in rows
        ]


# =============================================================================
# CATEGORY STORAGE
# =============================================================================

class SQLiteCategoryStorage(CategoryStorageInterface):
    """SQLite implementation of the category store."""

    def __init__(self, client: Optional[SQLiteClient] = None):
        self._client = client or SQLiteClient()

    async def get_category_by_name(
        self,
        name: str,
        user_id: Optional[str] = None,
    ) -> Optional[Category]:
        # User-owned categories shadow shared defaults of the same name
        rows = self._client.query(
            """SELECT * FROM categories
               WHERE name_key = ? AND is_active = 1 AND (user_id = ? OR user_id IS NULL)
               ORDER BY user_id IS NULL, created_at
               LIMIT 1""",
            (label_key(name), user_id),
        )
        return _row_to_category(rows[0]) if rows else None

    async def create_category(self, category: Category) -> Category:
        with self._client.transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM categories WHERE name_key = ? AND user_id IS ? AND is_active = 1",
                (label_key(category.name), category.user_id),
            ).fetchone()
            if existing:
                raise DuplicateError(f"Category already exists: {category.name}")
            conn.execute(
                """INSERT INTO categories
                   (id, user_id, name, name_key, category_type, is_default, is_active, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    category.id,
                    category.user_id,
                    category.name,
                    label_key(category.name),
                    category.category_type.value,
                    int(category.is_default),
                    int(category.is_active),
                    category.created_at.isoformat(),
                ),
            )
        return category

    async def list_categories(
        self,
        user_id: Optional[str] = None,
        category_type: Optional[CategoryType] = None,
    ) -> list[Category]:
        sql = "SELECT * FROM categories WHERE is_active = 1 AND (user_id = ? OR user_id IS NULL)"
        params: tuple = (user_id,)
        if category_type is not None:
            sql += " AND category_type = ?"
            params += (category_type.value,)
        sql += " ORDER BY category_type, name_key"
        return [_row_to_category(row) for row in self._client.query(sql, params)]


# =============================================================================
# SETTINGS STORAGE
# =============================================================================

class SQLiteSettingsStorage(SettingsStorageInterface):
    """SQLite implementation of the per-user key-value settings store."""

    def __init__(self, client: Optional[SQLiteClient] = None):
        self._client = client or SQLiteClient()

    async def get_setting(self, user_id: str, key: str) -> Optional[str]:
        rows = self._client.query(
            "SELECT value FROM settings WHERE user_id = ? AND key = ?",
            (user_id, key),
        )
        return rows[0]["value"] if rows else None

    async def get_all_settings(self, user_id: str) -> dict[str, str]:
        rows = self._client.query(
            "SELECT key, value FROM settings WHERE user_id = ? ORDER BY key",
            (user_id,),
        )
        return {row["key"]: row["value"] for row in rows}

    async def set_setting(self, user_id: str, key: str, value: str) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        with self._client.transaction() as conn:
            conn.execute(
                """INSERT INTO settings (id, user_id, key, value, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(user_id, key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (str(uuid4()), user_id, key, value, now, now),
            )
        return True

    async def delete_setting(self, user_id: str, key: str) -> bool:
        with self._client.transaction() as conn:
            deleted = conn.execute(
                "DELETE FROM settings WHERE user_id = ? AND key = ?",
                (user_id, key),
            ).rowcount
        return deleted > 0


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class SQLiteAuditStorage(AuditStorageInterface):
    """
    SQLite implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[SQLiteClient] = None):
        self._client = client or SQLiteClient()

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(row["event_id"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=AuditEventType(row["event_type"]),
            severity=AuditSeverity(row["severity"]),
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            correlation_id=UUID(row["correlation_id"]) if row["correlation_id"] else None,
            description=row["description"],
            details=json.loads(row["details_json"]) if row["details_json"] else {},
            error_code=row["error_code"],
            error_message=row["error_message"],
            is_user_action=bool(row["is_user_action"]),
        )

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            with self._client.transaction() as conn:
                conn.execute(
                    """INSERT INTO audit_events
                       (event_id, timestamp, event_type, severity, entity_type, entity_id,
                        correlation_id, description, details_json, error_code, error_message,
                        is_user_action)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        str(event.event_id),
                        event.timestamp.isoformat(),
                        event.event_type.value,
                        event.severity.value,
                        event.entity_type,
                        event.entity_id,
                        str(event.correlation_id) if event.correlation_id else None,
                        event.description,
                        event.details_json(),
                        event.error_code,
                        event.error_message,
                        int(event.is_user_action),
                    ),
                )
            return True
        except StorageError as e:
            # Audit logging must not break the accounting flow
            logger.warning("audit_event_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        rows = self._client.query(
            "SELECT * FROM audit_events WHERE correlation_id = ? ORDER BY timestamp",
            (str(correlation_id),),
        )
        return [self._row_to_event(row) for row in rows]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        rows = self._client.query(
            """SELECT * FROM audit_events
               WHERE entity_type = ? AND entity_id = ?
               ORDER BY timestamp""",
            (entity_type, entity_id),
        )
        return [self._row_to_event(row) for row in rows]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        rows = self._client.query(
            "SELECT * FROM audit_events ORDER BY timestamp DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_event(row) for row in rows]
