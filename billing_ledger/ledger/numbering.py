"""
Document Numbering

Numbers are "<PREFIX>-<sequence>": FAC for invoices, PRE for quotes, CC
for account collections and POS for register sales. The sequence is one
past the highest numeric suffix already used under that prefix, so a
number freed by a delete is not reused while a later one exists.
"""

from decimal import Decimal
from typing import Iterable

from billing_ledger.models.business import BusinessSettings
from billing_ledger.models.document import Document, DocumentType


POS_PREFIX = "POS"
SEQUENCE_WIDTH = 6


def _sequence(number: str, prefix: str) -> int:
    head, sep, tail = number.partition("-")
    if not sep or head != prefix or not tail.isdigit():
        return 0
    return int(tail)


def next_document_number(
    doc_type: DocumentType,
    documents: Iterable[Document],
    pos: bool = False,
) -> str:
    prefix = POS_PREFIX if pos else doc_type.number_prefix
    highest = max((_sequence(d.number, prefix) for d in documents), default=0)
    return f"{prefix}-{highest + 1:0{SEQUENCE_WIDTH}d}"


def default_tax_rate(doc_type: DocumentType, settings: BusinessSettings) -> Decimal:
    """Account collections carry no tax; everything else takes the tenant default."""
    if doc_type == DocumentType.ACCOUNT_COLLECTION:
        return Decimal("0")
    return settings.default_tax_rate
