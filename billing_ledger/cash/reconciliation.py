"""
Cash Reconciliation

Pure computation of what a drawer should contain:

    expected = opening_balance + cash_sales + (movements IN - movements OUT)

cash_sales counts revenue documents created on or after the session
opened, whose payment method is cash-equivalent, and only the part of
their payments made in cash.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable

from billing_ledger.models.cash import CashMovement, CashMovementType, CashSession
from billing_ledger.models.document import Document
from billing_ledger.time_utils import start_of_day


ZERO = Decimal("0")


def is_cash_method(method: str, cash_methods: Iterable[str]) -> bool:
    return method.strip().lower() in {m.strip().lower() for m in cash_methods}


def document_timestamp(document: Document) -> datetime:
    """When the document entered the ledger; falls back to its date."""
    return document.created_at or start_of_day(document.date)


def cash_portion(document: Document, cash_methods: Iterable[str]) -> Decimal:
    methods = list(cash_methods)
    return sum(
        (p.amount for p in document.payments if is_cash_method(p.method, methods)),
        ZERO,
    )


def cash_sales(
    session: CashSession,
    documents: Iterable[Document],
    cash_methods: Iterable[str],
) -> Decimal:
    methods = list(cash_methods)
    total = ZERO
    for document in documents:
        if not document.is_revenue:
            continue
        if not is_cash_method(document.payment_method, methods):
            continue
        if document_timestamp(document) < session.opened_at:
            continue
        total += cash_portion(document, methods)
    return total


def movement_totals(
    session: CashSession,
    movements: Iterable[CashMovement],
) -> tuple[Decimal, Decimal]:
    """(total IN, total OUT) over this session's movements only."""
    total_in = ZERO
    total_out = ZERO
    for movement in movements:
        if movement.session_id != session.id:
            continue
        if movement.type == CashMovementType.IN:
            total_in += movement.amount
        else:
            total_out += movement.amount
    return total_in, total_out


def compute_expected(
    session: CashSession,
    movements: Iterable[CashMovement],
    documents: Iterable[Document],
    cash_methods: Iterable[str],
) -> Decimal:
    total_in, total_out = movement_totals(session, movements)
    return (
        session.opening_balance
        + cash_sales(session, documents, cash_methods)
        + total_in
        - total_out
    )
