"""
Configuration Management for Spend & Send

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which knobs change accounting behaviour
(day boundary, rollover mode) and ensures they are validated at startup.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Local SQLite store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDSEND_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="spendandsend.db",
        description="Path to the SQLite database file (':memory:' for tests)"
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a write waits on a locked database"
    )
    connect_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made when opening the database"
    )


class BudgetSettings(BaseSettings):
    """Per-diem accounting configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDSEND_BUDGET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    day_boundary_timezone: str = Field(
        default="UTC",
        description="IANA timezone whose calendar day defines 'today'"
    )
    rollover_mode: str = Field(
        default="last_entry",
        pattern="^(last_entry|chain)$",
        description=(
            "last_entry: roll over from the most recent existing day only; "
            "chain: materialize skipped days and compound the rollover"
        )
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Display currency (single currency per store)"
    )

    # Sanity limits for transactions coming from the chat front end
    max_transaction_amount: Decimal = Field(
        default=Decimal("100000.00"),
        gt=0,
        description="Largest single transaction accepted without review"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a transaction date can be"
    )
    min_parse_confidence: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Parser confidence below which a warning is raised"
    )
    recent_transactions_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Transactions included in the chat budget context"
    )

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )
    persist_audit_events: bool = Field(
        default=True,
        description="Write audit events to the local store as well as the log"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def budget(self) -> BudgetSettings:
        return BudgetSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()

