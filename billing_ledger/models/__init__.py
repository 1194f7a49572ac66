"""
Data Models Package

This package contains all Pydantic models used in the Billing Ledger.
All data flowing through the ledger must conform to these schemas.
"""

from billing_ledger.models.document import (
    REVENUE_TYPES,
    Document,
    DocumentChange,
    DocumentStatus,
    DocumentTotals,
    DocumentType,
    FinalizedDocument,
    LineItem,
    Payment,
)
from billing_ledger.models.inventory import Product, StockAdjustment
from billing_ledger.models.cash import (
    CashMovement,
    CashMovementType,
    CashSession,
    CashSessionStatus,
    CashSessionSummary,
)
from billing_ledger.models.business import (
    BackupData,
    BusinessSettings,
    Client,
    DashboardSummary,
    Expense,
)
from billing_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Document models
    "REVENUE_TYPES",
    "Document",
    "DocumentChange",
    "DocumentStatus",
    "DocumentTotals",
    "DocumentType",
    "FinalizedDocument",
    "LineItem",
    "Payment",
    # Inventory models
    "Product",
    "StockAdjustment",
    # Cash models
    "CashMovement",
    "CashMovementType",
    "CashSession",
    "CashSessionStatus",
    "CashSessionSummary",
    # Business records
    "BackupData",
    "BusinessSettings",
    "Client",
    "DashboardSummary",
    "Expense",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
