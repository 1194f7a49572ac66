"""Document export package."""

from billing_ledger.services.export.interface import DocumentRenderer, ExportError

__all__ = ["DocumentRenderer", "ExportError"]
