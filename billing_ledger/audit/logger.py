"""
Audit Logger

DESIGN DECISION: Every money, stock and cash movement is logged.
This provides:
1. Complete traceability of the ledger
2. Debugging capability when a register does not reconcile
3. A persisted history the business owner can review

The audit logger:
- Is async so it can persist through the same gateway as the ledger
- Gracefully handles failures (a failed audit write never fails a sale)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from billing_ledger.config import get_settings
from billing_ledger.models.audit import AuditEvent, AuditEventBuilder
from billing_ledger.models.document import Document
from billing_ledger.services.storage import PersistenceGateway, StorageError


AUDIT_COLLECTION = "audit_log"


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: Optional[str] = None) -> None:
    """Route structlog output through stdlib logging at the configured level."""
    level = level or get_settings().app.log_level
    logging.basicConfig(format="%(message)s", level=getattr(logging, level))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The "audit_log" collection of the tenant (for persistence)
    """

    def __init__(
        self,
        gateway: Optional[PersistenceGateway] = None,
        tenant_scope: str = "default",
    ):
        """
        Initialize audit logger.

        Args:
            gateway: Persistence gateway for audit records.
                    If None, only logs locally.
            tenant_scope: Tenant the events belong to
        """
        self._gateway = gateway
        self._tenant_scope = tenant_scope
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists through the gateway if available.

        Returns True if the local write succeeded (or no gateway configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._gateway:
            try:
                result = await self._gateway.save(
                    AUDIT_COLLECTION, event, self._tenant_scope
                )
            except StorageError as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False
            return result.persisted_locally

        return True

    async def log_document_saved(
        self,
        document: Document,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log document creation or update."""
        event = AuditEventBuilder.document_saved(
            document_id=document.id,
            number=document.number,
            document_type=document.type.value,
            created=created,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_document_deleted(
        self,
        document: Document,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.document_deleted(
            document_id=document.id,
            number=document.number,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_payment_applied(
        self,
        document: Document,
        amount: Decimal,
        method: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a payment and the status it produced."""
        event = AuditEventBuilder.payment_applied(
            document_id=document.id,
            amount=amount,
            method=method,
            status=document.status.value,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_pos_sale(
        self,
        document: Document,
        net: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.pos_sale_completed(
            document_id=document.id,
            number=document.number,
            net=net,
            method=document.payment_method,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_stock_adjusted(
        self,
        product_id: str,
        document_id: str,
        delta: Decimal,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.stock_adjusted(
            product_id=product_id,
            document_id=document_id,
            delta=delta,
            reason=reason,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_cash_session_opened(
        self,
        session_id: str,
        user_id: str,
        opening_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.cash_session_opened(
            session_id=session_id,
            user_id=user_id,
            opening_balance=opening_balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_cash_movement(
        self,
        session_id: str,
        movement_type: str,
        amount: Decimal,
        description: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.cash_movement_recorded(
            session_id=session_id,
            movement_type=movement_type,
            amount=amount,
            description=description,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_cash_session_closed(
        self,
        session_id: str,
        expected: Decimal,
        actual: Decimal,
        difference: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a session close with its variance."""
        event = AuditEventBuilder.cash_session_closed(
            session_id=session_id,
            expected=expected,
            actual=actual,
            difference=difference,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_recorded(
        self,
        expense_id: str,
        amount: Decimal,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_recorded(
            expense_id=expense_id,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_backup_restored(
        self,
        counts: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.backup_restored(
            tenant_scope=self._tenant_scope,
            counts=counts,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_operation_rejected(
        self,
        operation: str,
        reason: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an operation refused by a ledger rule."""
        event = AuditEventBuilder.operation_rejected(
            operation=operation,
            reason=reason,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        collection: str,
        record_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.save_failed(
            collection=collection,
            record_id=record_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        # Local-only: the gateway that just failed is not retried here
        self._log_local(event)

    async def log_remote_sync_failed(
        self,
        collection: str,
        record_id: str,
        error_message: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.remote_sync_failed(
            collection=collection,
            record_id=record_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    def _log_local(self, event: AuditEvent) -> None:
        self._logger.error("audit_event", **event.to_log_dict())


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a POS checkout).
    Pass it through all subsequent operations.
    """
    return uuid4()
