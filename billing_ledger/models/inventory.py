"""
Inventory Models

Products are never owned by a document. Line items reach them by
barcode or description matching (see billing_ledger.inventory).
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from billing_ledger.time_utils import new_id


class Product(BaseModel):
    """
    A catalog product.

    Stock is mutated only by InventorySync and manual edits. It may go
    negative: overselling is tracked, not blocked.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    description: str = Field(..., min_length=1, max_length=300)
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    sale_price: Decimal = Field(default=Decimal("0"), ge=0)
    stock: Decimal = Field(
        default=Decimal("0"),
        description="Units on hand (can be negative)"
    )
    category: Optional[str] = Field(default=None, max_length=100)
    barcode: Optional[str] = Field(default=None, max_length=100)
    sku: Optional[str] = Field(default=None, max_length=100)


class StockAdjustment(BaseModel):
    """A single stock delta applied to a product because of a document."""

    product_id: str
    document_id: str
    delta: Decimal
    reason: str = Field(
        ...,
        pattern="^(document_created|document_deleted)$"
    )
