"""
Audit Models for Billing Ledger

Every significant ledger action is logged for audit purposes.
This provides:
1. Traceability of every money and stock movement
2. Debugging information when a reconciliation does not add up
3. A record of remote sync failures the user was notified about

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from billing_ledger.time_utils import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Documents
    DOCUMENT_CREATED = "document_created"
    DOCUMENT_UPDATED = "document_updated"
    DOCUMENT_DELETED = "document_deleted"
    PAYMENT_APPLIED = "payment_applied"
    POS_SALE_COMPLETED = "pos_sale_completed"

    # Inventory
    STOCK_ADJUSTED = "stock_adjusted"

    # Cash register
    CASH_SESSION_OPENED = "cash_session_opened"
    CASH_MOVEMENT_RECORDED = "cash_movement_recorded"
    CASH_SESSION_CLOSED = "cash_session_closed"

    # Other records
    EXPENSE_RECORDED = "expense_recorded"
    BACKUP_RESTORED = "backup_restored"

    # Failures
    OPERATION_REJECTED = "operation_rejected"
    SAVE_FAILED = "save_failed"
    REMOTE_SYNC_FAILED = "remote_sync_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'document', 'cash_session', 'product')"
    )
    entity_id: Optional[str] = None

    # For tracking related events (e.g. a sale and its stock adjustments)
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    @property
    def id(self) -> str:
        """Record id used when the event is persisted."""
        return str(self.event_id)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.payment_applied(document_id, amount, method, status)
        event = AuditEventBuilder.cash_session_closed(session_id, expected, actual, diff)
    """

    @staticmethod
    def document_saved(
        document_id: str,
        number: str,
        document_type: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.DOCUMENT_CREATED if created
                else AuditEventType.DOCUMENT_UPDATED
            ),
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Document {number} {'created' if created else 'updated'}",
            details={"number": number, "document_type": document_type},
            is_user_action=True,
        )

    @staticmethod
    def document_deleted(
        document_id: str,
        number: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_DELETED,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Document {number} deleted",
            details={"number": number},
            is_user_action=True,
        )

    @staticmethod
    def payment_applied(
        document_id: str,
        amount: Decimal,
        method: str,
        status: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_APPLIED,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Payment of {amount} ({method}) applied",
            details={"amount": str(amount), "method": method, "status": status},
            is_user_action=True,
        )

    @staticmethod
    def pos_sale_completed(
        document_id: str,
        number: str,
        net: Decimal,
        method: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.POS_SALE_COMPLETED,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"POS sale {number} completed",
            details={"number": number, "net": str(net), "method": method},
            is_user_action=True,
        )

    @staticmethod
    def stock_adjusted(
        product_id: str,
        document_id: str,
        delta: Decimal,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STOCK_ADJUSTED,
            entity_type="product",
            entity_id=product_id,
            correlation_id=correlation_id,
            description=f"Stock {'+' if delta >= 0 else ''}{delta} ({reason})",
            details={"document_id": document_id, "delta": str(delta), "reason": reason},
        )

    @staticmethod
    def cash_session_opened(
        session_id: str,
        user_id: str,
        opening_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASH_SESSION_OPENED,
            entity_type="cash_session",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Cash session opened with {opening_balance}",
            details={"user_id": user_id, "opening_balance": str(opening_balance)},
            is_user_action=True,
        )

    @staticmethod
    def cash_movement_recorded(
        session_id: str,
        movement_type: str,
        amount: Decimal,
        description: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASH_MOVEMENT_RECORDED,
            entity_type="cash_session",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Cash {movement_type} of {amount}",
            details={
                "type": movement_type,
                "amount": str(amount),
                "description": description,
            },
            is_user_action=True,
        )

    @staticmethod
    def cash_session_closed(
        session_id: str,
        expected: Decimal,
        actual: Decimal,
        difference: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASH_SESSION_CLOSED,
            # A variance is worth a look, not an error
            severity=AuditSeverity.INFO if difference == 0 else AuditSeverity.WARNING,
            entity_type="cash_session",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Cash session closed with difference {difference}",
            details={
                "expected_balance": str(expected),
                "actual_balance": str(actual),
                "difference": str(difference),
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_recorded(
        expense_id: str,
        amount: Decimal,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense of {amount} recorded",
            details={"amount": str(amount), "category": category},
            is_user_action=True,
        )

    @staticmethod
    def backup_restored(
        tenant_scope: str,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            severity=AuditSeverity.WARNING,
            entity_type="tenant",
            entity_id=tenant_scope,
            correlation_id=correlation_id,
            description="Backup restored",
            details=counts,
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        reason: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected",
            details={"operation": operation},
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        collection: str,
        record_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=collection,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Local save failed for {collection}",
            error_message=error_message,
        )

    @staticmethod
    def remote_sync_failed(
        collection: str,
        record_id: str,
        error_message: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=collection,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Remote sync failed for {collection}; kept locally",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )
