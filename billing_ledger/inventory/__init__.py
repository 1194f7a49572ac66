"""Inventory package."""

from billing_ledger.inventory.matchers import (
    BarcodeMatcher,
    DescriptionMatcher,
    ProductMatcher,
    default_matchers,
)
from billing_ledger.inventory.sync import InventorySync

__all__ = [
    "BarcodeMatcher",
    "DescriptionMatcher",
    "InventorySync",
    "ProductMatcher",
    "default_matchers",
]
