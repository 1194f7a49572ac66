"""
Ledger Exceptions

Every failure in the ledger core is per-operation and recoverable by
retrying the user action. Nothing here is fatal to the process.

InvalidOperation and InvalidState are raised BEFORE any mutation, so the
in-memory state is untouched when they surface.

SoftSyncFailure is never raised. It is created as a notification when the
remote store misses a write that the local store accepted.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidOperation(LedgerError):
    """Malformed input: bad amount, unknown id, missing client reference."""
    pass


class InvalidState(LedgerError):
    """Operation attempted against a record not in the required state."""
    pass


class SoftSyncFailure(LedgerError):
    """
    Remote persistence failed but the local write succeeded.

    State is not rolled back. Flows collect these so the caller can show
    a non-blocking notification.
    """

    def __init__(
        self,
        collection: str,
        record_id: str,
        tenant_scope: str,
        reason: Optional[str] = None,
    ):
        self.collection = collection
        self.record_id = record_id
        self.tenant_scope = tenant_scope
        self.reason = reason
        message = f"Remote sync failed for {collection}/{record_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
