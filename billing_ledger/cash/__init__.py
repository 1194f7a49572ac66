"""Cash register package."""

from billing_ledger.cash.reconciliation import cash_sales, compute_expected
from billing_ledger.cash.sessions import CashSessionManager

__all__ = ["CashSessionManager", "cash_sales", "compute_expected"]
