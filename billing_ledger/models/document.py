"""
Core Document Models for Billing Ledger

These models define the strict schemas for the documents the ledger owns:
invoices, quotes and collection accounts, with their line items and
payments.

DESIGN DECISION: Amounts and quantities are Decimal. Totals (subtotal,
tax, withholding, net) are NOT fields here - they are always re-derived
from items and rates by billing_ledger.ledger.totals, so they can never
drift from their inputs.

Document-level rules that need context (at least one item, a known
client) live in the validator, which raises InvalidOperation. Field-level
rules live here and raise pydantic's ValidationError.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from billing_ledger.models.inventory import StockAdjustment
from billing_ledger.time_utils import new_id, to_utc_naive


DEFAULT_PAYMENT_METHOD = "Efectivo"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DocumentType(str, Enum):
    """
    Document types the ledger handles.

    Only INVOICE and ACCOUNT_COLLECTION are revenue documents: they move
    stock and count toward cash sales. A QUOTE never does.
    """
    INVOICE = "invoice"
    QUOTE = "quote"
    ACCOUNT_COLLECTION = "account_collection"

    @property
    def is_revenue(self) -> bool:
        return self in REVENUE_TYPES

    @property
    def number_prefix(self) -> str:
        return _NUMBER_PREFIXES[self]


REVENUE_TYPES = frozenset({DocumentType.INVOICE, DocumentType.ACCOUNT_COLLECTION})

_NUMBER_PREFIXES = {
    DocumentType.INVOICE: "FAC",
    DocumentType.QUOTE: "PRE",
    DocumentType.ACCOUNT_COLLECTION: "CC",
}


class DocumentStatus(str, Enum):
    """
    Document status.

    CRITICAL: PARTIAL and PAID are derived from payments.
    Once a document carries payments, the ledger owns its status.
    """
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# =============================================================================
# LINE ITEMS AND PAYMENTS
# =============================================================================

class LineItem(BaseModel):
    """
    One priced line on a document.

    The description doubles as the inventory lookup key: it is matched
    against product barcodes first, then product descriptions.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    description: str = Field(
        ...,
        min_length=1,
        max_length=300,
        description="Item description, barcode or scanned code"
    )
    quantity: Decimal = Field(
        ...,
        gt=0,
        description="Units sold (fractional for weighed goods)"
    )
    unit_price: Decimal = Field(
        ...,
        ge=0,
        description="Price per unit before tax"
    )


class Payment(BaseModel):
    """
    A payment applied to a document. Append-only.

    The amount is not constrained here: the ledger and the document
    validator reject non-positive amounts with InvalidOperation before
    touching the document.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    date: date
    amount: Decimal
    method: str = Field(
        default=DEFAULT_PAYMENT_METHOD,
        min_length=1,
        max_length=50,
        description="Free-text payment method label"
    )
    note: Optional[str] = Field(default=None, max_length=500)


# =============================================================================
# DOCUMENT
# =============================================================================

class Document(BaseModel):
    """
    An invoice, quote or collection account.

    Created on first save, mutated by payments and edits, deleted
    (reversing any stock effect) on delete.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    type: DocumentType
    number: str = Field(..., min_length=1, max_length=50)
    date: date
    due_date: Optional[date] = None
    client_id: str = Field(
        default="",
        description="Client reference; validated by DocumentValidator"
    )
    items: list[LineItem] = Field(default_factory=list)
    status: DocumentStatus = DocumentStatus.DRAFT
    notes: str = Field(default="", max_length=2000)

    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    withholding_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)

    payment_method: str = Field(default=DEFAULT_PAYMENT_METHOD, max_length=50)
    is_pos: bool = False
    payments: list[Payment] = Field(default_factory=list)

    # Stamped by the ledger on first save; used by cash reconciliation
    created_at: Optional[datetime] = None

    @field_validator('created_at')
    @classmethod
    def normalize_created_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc_naive(v) if v else v

    @model_validator(mode='after')
    def validate_dates(self) -> 'Document':
        """Validate date relationships."""
        if self.due_date and self.due_date < self.date:
            raise ValueError("Due date cannot be before document date")
        return self

    @property
    def is_revenue(self) -> bool:
        return self.type.is_revenue


class DocumentTotals(BaseModel):
    """Derived amounts for a document. Never persisted."""
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    tax: Decimal
    gross: Decimal
    withholding: Decimal
    net: Decimal


class FinalizedDocument(BaseModel):
    """
    A document with every amount resolved.

    This is what the export/report consumer receives.
    """

    document: Document
    totals: DocumentTotals
    paid: Decimal
    balance_due: Decimal


class DocumentChange(BaseModel):
    """Outcome of an upsert or delete on the ledger."""

    document: Document
    created: bool = False
    deleted: bool = False
    stock_adjustments: list[StockAdjustment] = Field(default_factory=list)
