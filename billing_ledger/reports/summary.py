"""
Dashboard Summary

Headline figures for a tenant, computed from documents and expenses:

    collected  = sum of payments on revenue documents
    expenses   = sum of expense amounts
    net_profit = collected - expenses
    pending    = sum of balance due on revenue documents not PAID/REJECTED

Quotes never count: they move no money.
"""

from decimal import Decimal
from typing import Iterable

from billing_ledger.ledger.totals import ZERO, balance_due, paid_amount
from billing_ledger.models.business import DashboardSummary, Expense
from billing_ledger.models.document import Document, DocumentStatus


CLOSED_STATUSES = (DocumentStatus.PAID, DocumentStatus.REJECTED)


def build_dashboard_summary(
    documents: Iterable[Document],
    expenses: Iterable[Expense],
) -> DashboardSummary:
    collected = ZERO
    pending = ZERO
    revenue_count = 0
    open_count = 0

    for doc in documents:
        if not doc.is_revenue:
            continue
        revenue_count += 1
        collected += paid_amount(doc.payments)
        if doc.status not in CLOSED_STATUSES:
            open_count += 1
            pending += max(balance_due(doc), ZERO)

    total_expenses = sum((e.amount for e in expenses), Decimal("0"))

    return DashboardSummary(
        collected=collected,
        expenses=total_expenses,
        net_profit=collected - total_expenses,
        pending=pending,
        revenue_documents=revenue_count,
        open_documents=open_count,
    )
