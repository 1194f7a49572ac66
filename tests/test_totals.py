"""
Tests for Money & Totals

Totals are pure: same inputs, same outputs, nothing stored.
"""

from datetime import date
from decimal import Decimal

from billing_ledger.ledger.totals import (
    balance_due,
    compute_totals,
    derive_status,
    document_totals,
    paid_amount,
)
from billing_ledger.models import DocumentStatus, LineItem, Payment

from tests.factories import make_document


def _items(*pairs):
    return [
        LineItem(description=f"Item {i}", quantity=Decimal(q), unit_price=Decimal(p))
        for i, (q, p) in enumerate(pairs)
    ]


class TestComputeTotals:
    """Tests for compute_totals."""

    def test_tax_example(self):
        """2 x 1000 at 19% tax, no withholding."""
        totals = compute_totals(_items(("2", "1000")), Decimal("19"), Decimal("0"))
        assert totals.subtotal == Decimal("2000")
        assert totals.tax == Decimal("380")
        assert totals.gross == Decimal("2380")
        assert totals.withholding == Decimal("0")
        assert totals.net == Decimal("2380")

    def test_withholding_taken_on_gross(self):
        """Withholding applies to the tax-inclusive amount."""
        totals = compute_totals(_items(("1", "1000")), Decimal("10"), Decimal("10"))
        assert totals.gross == Decimal("1100")
        assert totals.withholding == Decimal("110")
        assert totals.net == Decimal("990")

    def test_multiple_items_summed(self):
        totals = compute_totals(_items(("2", "1500"), ("0.5", "3000")), Decimal("0"), Decimal("0"))
        assert totals.subtotal == Decimal("4500")
        assert totals.net == Decimal("4500")

    def test_no_items_is_zero(self):
        totals = compute_totals([], Decimal("19"), Decimal("0"))
        assert totals.net == Decimal("0")

    def test_is_deterministic(self):
        """Computing twice from identical inputs yields identical output."""
        items = _items(("3", "333.33"), ("1", "0.01"))
        first = compute_totals(items, Decimal("19"), Decimal("2.5"))
        second = compute_totals(items, Decimal("19"), Decimal("2.5"))
        assert first == second

    def test_no_rounding_applied(self):
        totals = compute_totals(_items(("1", "0.10")), Decimal("19"), Decimal("0"))
        assert totals.tax == Decimal("0.019")


class TestBalances:
    """Tests for paid amount and balance due."""

    def test_paid_amount_sums_payments(self):
        payments = [
            Payment(date=date(2024, 3, 1), amount=Decimal("100")),
            Payment(date=date(2024, 3, 2), amount=Decimal("250")),
        ]
        assert paid_amount(payments) == Decimal("350")

    def test_balance_due(self):
        doc = make_document(
            tax_rate=Decimal("19"),
            payments=[Payment(date=date(2024, 3, 1), amount=Decimal("380"))],
        )
        assert document_totals(doc).net == Decimal("2380")
        assert balance_due(doc) == Decimal("2000")

    def test_overpayment_gives_negative_balance(self):
        doc = make_document(payments=[Payment(date=date(2024, 3, 1), amount=Decimal("2500"))])
        assert balance_due(doc) == Decimal("-500")


class TestDeriveStatus:
    """Tests for payment-driven status."""

    def test_exact_payment_is_paid(self):
        status = derive_status(DocumentStatus.SENT, Decimal("2380"), Decimal("2380"), Decimal("1"))
        assert status == DocumentStatus.PAID

    def test_within_tolerance_is_paid(self):
        status = derive_status(DocumentStatus.SENT, Decimal("2379.5"), Decimal("2380"), Decimal("1"))
        assert status == DocumentStatus.PAID

    def test_below_tolerance_is_partial(self):
        status = derive_status(DocumentStatus.SENT, Decimal("1000"), Decimal("2380"), Decimal("1"))
        assert status == DocumentStatus.PARTIAL

    def test_zero_tolerance_requires_full_amount(self):
        status = derive_status(DocumentStatus.SENT, Decimal("2379.5"), Decimal("2380"), Decimal("0"))
        assert status == DocumentStatus.PARTIAL

    def test_nothing_paid_keeps_current(self):
        status = derive_status(DocumentStatus.ACCEPTED, Decimal("0"), Decimal("2380"), Decimal("1"))
        assert status == DocumentStatus.ACCEPTED
