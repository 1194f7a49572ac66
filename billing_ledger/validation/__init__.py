"""Validation package."""

from billing_ledger.validation.validator import DocumentValidator

__all__ = ["DocumentValidator"]
