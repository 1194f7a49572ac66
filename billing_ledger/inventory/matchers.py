"""
Product Matching Strategies

Line items do not carry a product foreign key. A line item's description
(typed, picked from the catalog, or produced by a barcode scan) is
resolved to a product by trying an ordered list of matchers.

Default priority:
1. BarcodeMatcher      - exact equality with product.barcode
2. DescriptionMatcher  - trimmed, case-insensitive equality with
                         product.description

The first matcher that returns a product wins, so a barcode hit beats a
description hit on a different product.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from billing_ledger.models.inventory import Product


class ProductMatcher(ABC):
    """One product lookup strategy."""

    name: str = "matcher"

    @abstractmethod
    def match(self, query: str, products: Iterable[Product]) -> Optional[Product]:
        """Return the first product this strategy accepts, or None."""
        pass


class BarcodeMatcher(ProductMatcher):
    """Exact barcode equality. Products without a barcode never match."""

    name = "barcode"

    def match(self, query: str, products: Iterable[Product]) -> Optional[Product]:
        for product in products:
            if product.barcode and query == product.barcode:
                return product
        return None


class DescriptionMatcher(ProductMatcher):
    """Trimmed, case-insensitive description equality."""

    name = "description"

    def match(self, query: str, products: Iterable[Product]) -> Optional[Product]:
        wanted = query.strip().lower()
        if not wanted:
            return None
        for product in products:
            if product.description.strip().lower() == wanted:
                return product
        return None


def default_matchers() -> list[ProductMatcher]:
    return [BarcodeMatcher(), DescriptionMatcher()]
