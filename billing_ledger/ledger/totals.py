"""
Money & Totals

Pure functions over a document's items and rates. Nothing here is
persisted: every figure can be re-derived from stored inputs at any
time, which is what keeps totals from drifting.

No rounding is applied. Presentation decides how to round.
"""

from decimal import Decimal
from typing import Iterable

from billing_ledger.models.document import (
    Document,
    DocumentStatus,
    DocumentTotals,
    LineItem,
    Payment,
)


HUNDRED = Decimal("100")
ZERO = Decimal("0")


def compute_totals(
    items: Iterable[LineItem],
    tax_rate: Decimal,
    withholding_rate: Decimal,
) -> DocumentTotals:
    """
    Compute subtotal, tax, gross, withholding and net.

    Withholding is taken on the gross (tax-inclusive) amount.
    """
    subtotal = sum((item.quantity * item.unit_price for item in items), ZERO)
    tax = subtotal * Decimal(tax_rate) / HUNDRED
    gross = subtotal + tax
    withholding = gross * Decimal(withholding_rate) / HUNDRED
    net = gross - withholding
    return DocumentTotals(
        subtotal=subtotal,
        tax=tax,
        gross=gross,
        withholding=withholding,
        net=net,
    )


def document_totals(document: Document) -> DocumentTotals:
    return compute_totals(document.items, document.tax_rate, document.withholding_rate)


def paid_amount(payments: Iterable[Payment]) -> Decimal:
    return sum((p.amount for p in payments), ZERO)


def balance_due(document: Document) -> Decimal:
    """Net total minus payments. Negative when overpaid."""
    return document_totals(document).net - paid_amount(document.payments)


def derive_status(
    current: DocumentStatus,
    paid: Decimal,
    net: Decimal,
    tolerance: Decimal,
) -> DocumentStatus:
    """
    Payment-driven status.

    PAID once paid reaches net within tolerance, PARTIAL for any smaller
    positive amount. Nothing paid leaves the current status alone, even
    for a document whose net is inside the tolerance.
    """
    if paid <= ZERO:
        return current
    if paid >= net - tolerance:
        return DocumentStatus.PAID
    return DocumentStatus.PARTIAL
