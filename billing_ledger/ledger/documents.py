"""
Document Ledger

Owns the document records of one tenant: upsert, payment application,
status derivation and deletion.

GUARANTEES:
- Bad input raises InvalidOperation before anything changes
- Status is derived from payments once payments exist
- Stock moves exactly once per revenue-document creation and once per
  deletion; edits never move stock

Everything here is a synchronous in-memory mutation. Persisting the
result is the caller's job (see billing_ledger.orchestrator).
"""

from decimal import Decimal
from typing import Callable, Optional

import structlog

from billing_ledger.exceptions import InvalidOperation
from billing_ledger.inventory.sync import InventorySync
from billing_ledger.ledger.totals import (
    balance_due,
    derive_status,
    document_totals,
    paid_amount,
)
from billing_ledger.models.document import (
    Document,
    DocumentChange,
    DocumentStatus,
    DocumentType,
    FinalizedDocument,
    Payment,
)
from billing_ledger.repository import Repository
from billing_ledger.time_utils import utcnow
from billing_ledger.validation.validator import DocumentValidator


logger = structlog.get_logger(__name__)


DEFAULT_PAYMENT_TOLERANCE = Decimal("1")


class DocumentLedger:
    """
    In-memory document ledger.

    All collaborators are injected: the document repository, the
    inventory sync (optional - without it stock is never touched), the
    validator and the clock.
    """

    def __init__(
        self,
        documents: Repository[Document],
        inventory: Optional[InventorySync] = None,
        validator: Optional[DocumentValidator] = None,
        payment_tolerance: Decimal = DEFAULT_PAYMENT_TOLERANCE,
        clock: Callable = utcnow,
    ):
        self._documents = documents
        self._inventory = inventory
        self._validator = validator or DocumentValidator(documents=documents)
        self._tolerance = Decimal(payment_tolerance)
        self._clock = clock

    @property
    def payment_tolerance(self) -> Decimal:
        return self._tolerance

    def get(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    def list(
        self,
        type: Optional[DocumentType] = None,
        status: Optional[DocumentStatus] = None,
    ) -> list[Document]:
        return self._documents.list(
            lambda d: (type is None or d.type == type)
            and (status is None or d.status == status)
        )

    def _require(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise InvalidOperation(f"Document not found: {document_id}")
        return document

    def upsert(self, document: Document) -> DocumentChange:
        """
        Insert an unseen document or replace an existing one in place.

        On first save a revenue document takes its stock; a replacement
        never does. Payments are append-only: a replacement keeps every
        stored payment and only adds the ones it carries that are new.
        """
        self._validator.ensure_valid(document)

        existing = self._documents.get(document.id)
        created = existing is None

        update = {}
        payments = document.payments
        if created and document.created_at is None:
            update["created_at"] = self._clock()
        elif not created:
            if document.created_at is None:
                update["created_at"] = existing.created_at
            known = {p.id for p in existing.payments}
            payments = [
                *existing.payments,
                *(p for p in document.payments if p.id not in known),
            ]
            update["payments"] = payments
        if payments:
            totals = document_totals(document)
            update["status"] = derive_status(
                document.status,
                paid_amount(payments),
                totals.net,
                self._tolerance,
            )
        stored = document.model_copy(update=update, deep=True)
        self._documents.put(stored)

        adjustments = []
        if created and self._inventory is not None and stored.is_revenue:
            adjustments = self._inventory.apply_creation(stored)

        logger.info(
            "document_upserted",
            document_id=stored.id,
            number=stored.number,
            created=created,
            stock_adjustments=len(adjustments),
        )
        return DocumentChange(
            document=stored,
            created=created,
            stock_adjustments=adjustments,
        )

    def apply_payment(self, document_id: str, payment: Payment) -> Document:
        """
        Append a payment and re-derive status.

        The payment's method becomes the document's latest payment method.
        """
        if payment.amount <= 0:
            raise InvalidOperation(
                f"Payment amount must be positive, got {payment.amount}"
            )
        document = self._require(document_id)

        payments = [*document.payments, payment]
        net = document_totals(document).net
        status = derive_status(
            document.status,
            paid_amount(payments),
            net,
            self._tolerance,
        )
        updated = document.model_copy(
            update={
                "payments": payments,
                "status": status,
                "payment_method": payment.method,
            },
            deep=True,
        )
        self._documents.put(updated)

        logger.info(
            "payment_applied",
            document_id=document_id,
            amount=str(payment.amount),
            method=payment.method,
            status=status.value,
        )
        return updated

    def delete(self, document_id: str) -> DocumentChange:
        """Remove a document, reversing its stock effect if it was revenue."""
        document = self._require(document_id)
        self._documents.remove(document_id)

        adjustments = []
        if self._inventory is not None and document.is_revenue:
            adjustments = self._inventory.reverse_creation(document)

        logger.info(
            "document_deleted",
            document_id=document_id,
            number=document.number,
            stock_adjustments=len(adjustments),
        )
        return DocumentChange(
            document=document,
            deleted=True,
            stock_adjustments=adjustments,
        )

    def finalize(self, document_id: str) -> FinalizedDocument:
        """Resolve every amount of a document for the export consumer."""
        document = self._require(document_id)
        return FinalizedDocument(
            document=document,
            totals=document_totals(document),
            paid=paid_amount(document.payments),
            balance_due=balance_due(document),
        )
