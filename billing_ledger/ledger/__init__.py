"""Document ledger package."""

from billing_ledger.ledger.documents import DocumentLedger
from billing_ledger.ledger.numbering import default_tax_rate, next_document_number
from billing_ledger.repository import Repository
from billing_ledger.ledger.totals import (
    balance_due,
    compute_totals,
    derive_status,
    document_totals,
    paid_amount,
)

__all__ = [
    "DocumentLedger",
    "Repository",
    "balance_due",
    "compute_totals",
    "default_tax_rate",
    "derive_status",
    "document_totals",
    "next_document_number",
    "paid_amount",
]
