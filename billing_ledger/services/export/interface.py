"""
Document Export Interface

DESIGN DECISION: The ledger does not lay out PDFs. It resolves every
figure (totals, paid, balance due) into a FinalizedDocument and hands
that to a renderer, so a renderer never recomputes money.
"""

from abc import ABC, abstractmethod
from typing import Optional

from billing_ledger.models.business import BusinessSettings, Client
from billing_ledger.models.document import FinalizedDocument


class ExportError(Exception):
    """A renderer could not produce output."""
    pass


class DocumentRenderer(ABC):
    """Consumer that turns a finalized document into bytes (PDF, HTML...)."""

    @property
    def content_type(self) -> str:
        return "application/octet-stream"

    @abstractmethod
    def render(
        self,
        finalized: FinalizedDocument,
        client: Optional[Client],
        settings: BusinessSettings,
    ) -> bytes:
        """
        Render a document.

        Raises:
            ExportError: If rendering fails
        """
        pass
