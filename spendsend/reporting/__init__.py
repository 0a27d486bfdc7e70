"""Read-only reporting over pay periods."""

from spendsend.reporting.summary import PeriodReporter

__all__ = ["PeriodReporter"]
