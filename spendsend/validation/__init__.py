"""Validation of parsed transactions."""

from spendsend.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
