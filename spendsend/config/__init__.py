"""Configuration package."""

from spendsend.config.settings import (
    AppSettings,
    BudgetSettings,
    DatabaseSettings,
    Settings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "BudgetSettings",
    "DatabaseSettings",
    "Settings",
    "get_settings",
]
