"""
Inventory Sync

Keeps product stock in step with the revenue-document lifecycle:

- creation of an INVOICE or ACCOUNT_COLLECTION deducts each matched
  line item's quantity, exactly once
- deletion puts the same quantities back

Edits of an existing document never touch stock. Quotes never do.

DESIGN DECISION: Unmatched line items are skipped without error; not
every invoiced line is a catalog product. Stock has no floor and may go
negative, so overselling stays visible instead of being clamped away.
"""

from decimal import Decimal
from typing import Optional, Sequence

import structlog

from billing_ledger.models.document import Document
from billing_ledger.models.inventory import Product, StockAdjustment
from billing_ledger.inventory.matchers import ProductMatcher, default_matchers
from billing_ledger.repository import Repository


logger = structlog.get_logger(__name__)


class InventorySync:
    """
    Applies and reverses document stock effects against a product catalog.

    The deltas applied for each document are remembered, so a deletion in
    the same process reverses exactly what creation did even if the
    catalog was edited in between. Documents created by an earlier process
    are reversed by matching their items again.
    """

    def __init__(
        self,
        products: Repository[Product],
        matchers: Optional[Sequence[ProductMatcher]] = None,
    ):
        self._products = products
        self._matchers = list(matchers) if matchers is not None else default_matchers()
        self._applied: dict[str, list[StockAdjustment]] = {}

    @property
    def matchers(self) -> list[ProductMatcher]:
        return list(self._matchers)

    def find_product(self, query: str) -> Optional[Product]:
        """
        Resolve a description or scanned code to a product.

        Matchers run in priority order; the first hit wins.
        """
        products = self._products.list()
        for matcher in self._matchers:
            product = matcher.match(query, products)
            if product is not None:
                return product
        return None

    def apply_creation(self, document: Document) -> list[StockAdjustment]:
        """Deduct stock for a newly created revenue document."""
        if not document.is_revenue:
            return []

        adjustments = []
        for item in document.items:
            product = self.find_product(item.description)
            if product is None:
                logger.debug(
                    "inventory_item_unmatched",
                    document_id=document.id,
                    description=item.description,
                )
                continue
            adjustments.append(
                self._adjust(product.id, document.id, -item.quantity, "document_created")
            )

        self._applied[document.id] = adjustments
        return adjustments

    def reverse_creation(self, document: Document) -> list[StockAdjustment]:
        """Put back the stock a revenue document took when it was created."""
        if not document.is_revenue:
            return []

        recorded = self._applied.pop(document.id, None)
        if recorded is not None:
            return [
                self._adjust(a.product_id, document.id, -a.delta, "document_deleted")
                for a in recorded
            ]

        adjustments = []
        for item in document.items:
            product = self.find_product(item.description)
            if product is None:
                continue
            adjustments.append(
                self._adjust(product.id, document.id, item.quantity, "document_deleted")
            )
        return adjustments

    def remembers(self, document_id: str) -> bool:
        return document_id in self._applied

    def forget_all(self) -> None:
        """Drop every remembered delta; later reversals re-match items."""
        self._applied.clear()

    def _adjust(
        self,
        product_id: str,
        document_id: str,
        delta: Decimal,
        reason: str,
    ) -> StockAdjustment:
        product = self._products.get(product_id)
        if product is not None:
            self._products.put(product.model_copy(update={"stock": product.stock + delta}))
        else:
            # Product removed from the catalog since creation
            logger.warning(
                "inventory_product_missing",
                product_id=product_id,
                document_id=document_id,
            )

        logger.debug(
            "inventory_stock_adjusted",
            product_id=product_id,
            document_id=document_id,
            delta=str(delta),
            reason=reason,
        )
        return StockAdjustment(
            product_id=product_id,
            document_id=document_id,
            delta=delta,
            reason=reason,
        )
