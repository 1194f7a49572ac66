"""
Billing Ledger - Source Package

The financial core of a small-business billing application:
document totals, payments and status, inventory stock sync and
cash-register reconciliation.

DESIGN PRINCIPLES:
1. Totals are derived, never stored
2. Reject bad input before any mutation
3. In-memory state first, persistence is best effort
4. Every significant action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Billing Ledger Team"
