"""
Main Orchestrator for Billing Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Documents (draft -> validate -> upsert -> stock -> persist)
2. Payments and POS checkout
3. Cash register (open -> movements -> reconcile -> close)
4. Business records (clients, products, expenses, settings, backup)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Ledger rules run first, as synchronous in-memory mutations
- Persistence runs after, through the gateway, best effort
- A local save failure is raised; a remote miss becomes a notification
- Every step is audited

The in-memory state is the source of truth for the running process.
Nothing is rolled back when persistence fails.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from billing_ledger.audit import AuditLogger, configure_logging, create_correlation_id
from billing_ledger.cash import CashSessionManager
from billing_ledger.config import get_settings
from billing_ledger.exceptions import (
    InvalidOperation,
    InvalidState,
    LedgerError,
    SoftSyncFailure,
)
from billing_ledger.inventory import InventorySync
from billing_ledger.ledger import (
    DocumentLedger,
    compute_totals,
    default_tax_rate,
    next_document_number,
)
from billing_ledger.models import (
    BackupData,
    BusinessSettings,
    CashMovement,
    CashMovementType,
    CashSession,
    CashSessionSummary,
    Client,
    DashboardSummary,
    Document,
    DocumentChange,
    DocumentStatus,
    DocumentType,
    Expense,
    LineItem,
    Payment,
    Product,
    StockAdjustment,
)
from billing_ledger.models.document import DEFAULT_PAYMENT_METHOD
from billing_ledger.reports import build_dashboard_summary
from billing_ledger.repository import Repository
from billing_ledger.services.export import DocumentRenderer
from billing_ledger.services.storage import (
    GoogleSheetsRecordStore,
    JsonFileRecordStore,
    LocalFirstGateway,
    PersistenceError,
    PersistenceGateway,
    Record,
    SaveResult,
    StorageError,
)
from billing_ledger.time_utils import utcnow
from billing_ledger.validation import DocumentValidator


logger = structlog.get_logger(__name__)


DOCUMENTS = "documents"
PRODUCTS = "products"
CLIENTS = "clients"
EXPENSES = "expenses"
CASH_SESSIONS = "cash_sessions"
CASH_MOVEMENTS = "cash_movements"
SETTINGS = "settings"


class LedgerState:
    """
    Every in-memory collection of one tenant.

    The cash manager reads the same document repository the ledger
    writes, so both must be built from one state. The inventory sync
    is shared the same way.
    """

    def __init__(
        self,
        tenant_scope: str,
        documents: Iterable[Document] = (),
        products: Iterable[Product] = (),
        clients: Iterable[Client] = (),
        expenses: Iterable[Expense] = (),
        cash_sessions: Iterable[CashSession] = (),
        cash_movements: Iterable[CashMovement] = (),
        settings: Optional[BusinessSettings] = None,
    ):
        self.tenant_scope = tenant_scope
        self.documents: Repository[Document] = Repository(documents)
        self.products: Repository[Product] = Repository(products)
        self.clients: Repository[Client] = Repository(clients)
        self.expenses: Repository[Expense] = Repository(expenses)
        self.cash_sessions: Repository[CashSession] = Repository(cash_sessions)
        self.cash_movements: Repository[CashMovement] = Repository(cash_movements)
        self.settings = settings or BusinessSettings()
        self.inventory = InventorySync(self.products)

    @classmethod
    async def load(cls, gateway: PersistenceGateway, tenant_scope: str) -> "LedgerState":
        """Hydrate a tenant's state from the gateway."""

        async def fetch(collection: str, model: type[BaseModel]) -> list:
            records = await gateway.fetch_all(collection, tenant_scope)
            return _parse_records(collection, records, model)

        settings_records = [
            r for r in await gateway.fetch_all(SETTINGS, tenant_scope)
            if r.get("id") == tenant_scope
        ]
        parsed_settings = _parse_records(SETTINGS, settings_records, BusinessSettings)

        return cls(
            tenant_scope,
            documents=await fetch(DOCUMENTS, Document),
            products=await fetch(PRODUCTS, Product),
            clients=await fetch(CLIENTS, Client),
            expenses=await fetch(EXPENSES, Expense),
            cash_sessions=await fetch(CASH_SESSIONS, CashSession),
            cash_movements=await fetch(CASH_MOVEMENTS, CashMovement),
            settings=parsed_settings[0] if parsed_settings else None,
        )


def _parse_records(collection: str, records: list[Record], model: type[BaseModel]) -> list:
    parsed = []
    for record in records:
        try:
            parsed.append(model.model_validate(record))
        except ValidationError as e:
            # Skip malformed records rather than refusing to start
            logger.warning(
                "record_skipped",
                collection=collection,
                record_id=str(record.get("id")),
                error=str(e),
            )
    return parsed


def settings_record(tenant_scope: str, settings: BusinessSettings) -> Record:
    """Settings are stored as one record whose id is the tenant scope."""
    return {"id": tenant_scope, **settings.model_dump(mode="json")}


class RecordSync:
    """
    Persists records after in-memory mutations.

    - local save fails -> save_failed audit, PersistenceError raised
    - remote misses    -> SoftSyncFailure queued, warning audit

    Without a gateway nothing is persisted and nothing fails.
    """

    def __init__(
        self,
        gateway: Optional[PersistenceGateway],
        tenant_scope: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._tenant_scope = tenant_scope
        self._audit_logger = audit_logger
        self._notifications: list[SoftSyncFailure] = []

    @property
    def tenant_scope(self) -> str:
        return self._tenant_scope

    @property
    def notifications(self) -> list[SoftSyncFailure]:
        return list(self._notifications)

    def drain_notifications(self) -> list[SoftSyncFailure]:
        """Hand pending sync notifications to the caller and forget them."""
        pending, self._notifications = self._notifications, []
        return pending

    async def save(
        self,
        collection: str,
        record: Union[BaseModel, Record],
        correlation_id: Optional[UUID] = None,
    ) -> SaveResult:
        record_id = str(record["id"] if isinstance(record, dict) else record.id)

        if self._gateway is None:
            return SaveResult(persisted_locally=True, persisted_remotely=False)

        try:
            result = await self._gateway.save(collection, record, self._tenant_scope)
        except StorageError as e:
            result = SaveResult(
                persisted_locally=False,
                persisted_remotely=False,
                error_message=str(e),
            )

        if not result.persisted_locally:
            message = result.error_message or "local store rejected the write"
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    collection=collection,
                    record_id=record_id,
                    error_message=message,
                    correlation_id=correlation_id,
                )
            raise PersistenceError(
                f"Could not save {collection}/{record_id}: {message}"
            )

        if result.remote_missed:
            failure = SoftSyncFailure(
                collection=collection,
                record_id=record_id,
                tenant_scope=self._tenant_scope,
                reason=result.error_message,
            )
            self._notifications.append(failure)
            logger.warning(
                "soft_sync_failure",
                collection=collection,
                record_id=record_id,
                reason=result.error_message,
            )
            if self._audit_logger:
                await self._audit_logger.log_remote_sync_failed(
                    collection=collection,
                    record_id=record_id,
                    error_message=result.error_message,
                    correlation_id=correlation_id,
                )

        return result

    async def delete(
        self,
        collection: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._gateway is None:
            return
        try:
            await self._gateway.delete(collection, record_id, self._tenant_scope)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    collection=collection,
                    record_id=record_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise PersistenceError(f"Could not delete {collection}/{record_id}: {e}")


class DocumentFlow:
    """
    Orchestrates the document lifecycle.

    Flow:
    1. Draft -> default number, tax rate and payment method
    2. Save -> validate, upsert, deduct stock on first save
    3. Pay -> append payment, derive PARTIAL/PAID
    4. Delete -> remove, put stock back
    5. Export -> finalize totals, hand to a renderer

    Rejected operations are audited and re-raised unchanged.
    """

    def __init__(
        self,
        state: LedgerState,
        sync: RecordSync,
        audit_logger: Optional[AuditLogger] = None,
        payment_tolerance: Decimal = Decimal("1"),
        clock: Callable = utcnow,
    ):
        self._state = state
        self._sync = sync
        self._audit_logger = audit_logger
        self._clock = clock
        self._inventory = state.inventory
        self._ledger = DocumentLedger(
            state.documents,
            inventory=self._inventory,
            validator=DocumentValidator(
                clients=state.clients,
                documents=state.documents,
            ),
            payment_tolerance=payment_tolerance,
            clock=clock,
        )

    @property
    def ledger(self) -> DocumentLedger:
        return self._ledger

    @property
    def inventory(self) -> InventorySync:
        return self._inventory

    def find_product(self, scan: str) -> Optional[Product]:
        """Resolve raw scanner or search input to a catalog product."""
        return self._inventory.find_product(scan)

    def new_document(
        self,
        doc_type: DocumentType,
        client_id: str = "",
        items: Optional[list[LineItem]] = None,
    ) -> Document:
        """An unsaved draft with default number, tax rate and payment method."""
        return Document(
            type=doc_type,
            number=next_document_number(doc_type, self._state.documents),
            date=self._clock().date(),
            client_id=client_id,
            items=items or [],
            tax_rate=default_tax_rate(doc_type, self._state.settings),
            payment_method=DEFAULT_PAYMENT_METHOD,
        )

    async def _rejected(
        self,
        operation: str,
        error: LedgerError,
        entity_type: str,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_operation_rejected(
                operation=operation,
                reason=str(error),
                entity_type=entity_type,
                entity_id=entity_id,
                correlation_id=correlation_id,
            )

    async def _persist_stock(
        self,
        adjustments: list[StockAdjustment],
        correlation_id: UUID,
    ) -> None:
        for product_id in dict.fromkeys(a.product_id for a in adjustments):
            product = self._state.products.get(product_id)
            if product is not None:
                await self._sync.save(PRODUCTS, product, correlation_id)

        if self._audit_logger:
            for adjustment in adjustments:
                await self._audit_logger.log_stock_adjusted(
                    product_id=adjustment.product_id,
                    document_id=adjustment.document_id,
                    delta=adjustment.delta,
                    reason=adjustment.reason,
                    correlation_id=correlation_id,
                )

    async def save_document(
        self,
        document: Document,
        correlation_id: Optional[UUID] = None,
    ) -> DocumentChange:
        """
        Validate and upsert a document, then persist it and any stock it moved.

        Raises:
            InvalidOperation: validation failed (nothing changed)
            PersistenceError: the local store did not take the write
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            change = self._ledger.upsert(document)
        except InvalidOperation as e:
            await self._rejected("save_document", e, "document", document.id, correlation_id)
            raise

        await self._sync.save(DOCUMENTS, change.document, correlation_id)
        await self._persist_stock(change.stock_adjustments, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_document_saved(
                change.document,
                created=change.created,
                correlation_id=correlation_id,
            )
        return change

    async def record_payment(
        self,
        document_id: str,
        amount: Decimal,
        method: str = DEFAULT_PAYMENT_METHOD,
        payment_date: Optional[date] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Document:
        """
        Apply a payment to a saved document.

        Raises:
            InvalidOperation: non-positive amount or unknown document
        """
        correlation_id = correlation_id or create_correlation_id()
        payment = Payment(
            date=payment_date or self._clock().date(),
            amount=Decimal(amount),
            method=method,
            note=note,
        )

        try:
            document = self._ledger.apply_payment(document_id, payment)
        except InvalidOperation as e:
            await self._rejected("record_payment", e, "document", document_id, correlation_id)
            raise

        await self._sync.save(DOCUMENTS, document, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_payment_applied(
                document,
                amount=payment.amount,
                method=payment.method,
                correlation_id=correlation_id,
            )
        return document

    async def delete_document(
        self,
        document_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> DocumentChange:
        """Delete a document and put back the stock it took."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            change = self._ledger.delete(document_id)
        except InvalidOperation as e:
            await self._rejected("delete_document", e, "document", document_id, correlation_id)
            raise

        await self._sync.delete(DOCUMENTS, document_id, correlation_id)
        await self._persist_stock(change.stock_adjustments, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_document_deleted(
                change.document,
                correlation_id=correlation_id,
            )
        return change

    async def checkout_pos(
        self,
        items: list[LineItem],
        client_id: str,
        payment_method: str = DEFAULT_PAYMENT_METHOD,
        correlation_id: Optional[UUID] = None,
    ) -> Document:
        """
        Turn a register cart into a paid invoice.

        The invoice takes the tenant's default tax rate and carries a
        single payment equal to its net total. A cart that nets to zero
        carries no payment.
        """
        correlation_id = correlation_id or create_correlation_id()
        today = self._clock().date()
        tax_rate = self._state.settings.default_tax_rate
        net = compute_totals(items, tax_rate, Decimal("0")).net
        payments = []
        if net > 0:
            payments.append(Payment(date=today, amount=net, method=payment_method))

        document = Document(
            type=DocumentType.INVOICE,
            number=next_document_number(
                DocumentType.INVOICE, self._state.documents, pos=True
            ),
            date=today,
            due_date=today,
            client_id=client_id,
            items=items,
            status=DocumentStatus.PAID,
            notes="POS sale",
            tax_rate=tax_rate,
            payment_method=payment_method,
            is_pos=True,
            payments=payments,
        )

        change = await self.save_document(document, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_pos_sale(
                change.document,
                net=net,
                correlation_id=correlation_id,
            )
        return change.document

    def export_document(self, document_id: str, renderer: DocumentRenderer) -> bytes:
        """Render a document with every amount already resolved."""
        finalized = self._ledger.finalize(document_id)
        client = self._state.clients.get(finalized.document.client_id)
        return renderer.render(finalized, client, self._state.settings)


class CashRegisterFlow:
    """
    Orchestrates the cash register.

    Flow:
    1. Open -> one OPEN session (unless concurrency is allowed)
    2. Movements -> manual cash in/out against the OPEN session
    3. Close -> count the drawer, freeze expected/actual/difference

    The expected balance includes cash sales the DocumentFlow records
    against the same state.
    """

    def __init__(
        self,
        state: LedgerState,
        sync: RecordSync,
        audit_logger: Optional[AuditLogger] = None,
        cash_methods: Iterable[str] = ("Efectivo", "Cash"),
        allow_concurrent_sessions: bool = False,
        clock: Callable = utcnow,
    ):
        self._sync = sync
        self._audit_logger = audit_logger
        self._manager = CashSessionManager(
            state.cash_sessions,
            state.cash_movements,
            state.documents,
            cash_methods=cash_methods,
            allow_concurrent_sessions=allow_concurrent_sessions,
            clock=clock,
        )

    @property
    def manager(self) -> CashSessionManager:
        return self._manager

    def active_session(self) -> Optional[CashSession]:
        return self._manager.active_session()

    def expected_balance(self, session_id: str) -> Decimal:
        return self._manager.expected_balance(session_id)

    def summary(self, session_id: str) -> CashSessionSummary:
        return self._manager.summary(session_id)

    async def _rejected(
        self,
        operation: str,
        error: LedgerError,
        session_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_operation_rejected(
                operation=operation,
                reason=str(error),
                entity_type="cash_session",
                entity_id=session_id,
                correlation_id=correlation_id,
            )

    async def open_session(
        self,
        opening_balance: Decimal,
        user_id: str,
        user_name: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CashSession:
        correlation_id = correlation_id or create_correlation_id()
        try:
            session = self._manager.open(opening_balance, user_id, user_name)
        except (InvalidOperation, InvalidState) as e:
            await self._rejected("open_cash_session", e, None, correlation_id)
            raise

        await self._sync.save(CASH_SESSIONS, session, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_cash_session_opened(
                session_id=session.id,
                user_id=user_id,
                opening_balance=session.opening_balance,
                correlation_id=correlation_id,
            )
        return session

    async def record_movement(
        self,
        session_id: str,
        movement_type: CashMovementType,
        amount: Decimal,
        description: str = "",
        correlation_id: Optional[UUID] = None,
    ) -> CashMovement:
        correlation_id = correlation_id or create_correlation_id()
        try:
            movement = self._manager.record_movement(
                session_id, movement_type, amount, description
            )
        except (InvalidOperation, InvalidState) as e:
            await self._rejected("record_cash_movement", e, session_id, correlation_id)
            raise

        await self._sync.save(CASH_MOVEMENTS, movement, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_cash_movement(
                session_id=session_id,
                movement_type=movement.type.value,
                amount=movement.amount,
                description=movement.description,
                correlation_id=correlation_id,
            )
        return movement

    async def close_session(
        self,
        session_id: str,
        actual_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> CashSession:
        correlation_id = correlation_id or create_correlation_id()
        try:
            session = self._manager.close(session_id, actual_balance)
        except (InvalidOperation, InvalidState) as e:
            await self._rejected("close_cash_session", e, session_id, correlation_id)
            raise

        await self._sync.save(CASH_SESSIONS, session, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_cash_session_closed(
                session_id=session.id,
                expected=session.expected_balance,
                actual=session.actual_balance,
                difference=session.difference,
                correlation_id=correlation_id,
            )
        return session


class BusinessRecordsFlow:
    """
    Clients, catalog, expenses, tenant settings, dashboard and backups.

    These records carry no ledger rules of their own; the flow keeps
    them in state and persists them.
    """

    def __init__(
        self,
        state: LedgerState,
        sync: RecordSync,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._state = state
        self._sync = sync
        self._audit_logger = audit_logger

    @property
    def settings(self) -> BusinessSettings:
        return self._state.settings

    async def save_client(self, client: Client) -> Client:
        self._state.clients.put(client)
        await self._sync.save(CLIENTS, client)
        return client

    async def save_product(self, product: Product) -> Product:
        self._state.products.put(product)
        await self._sync.save(PRODUCTS, product)
        return product

    async def update_settings(self, settings: BusinessSettings) -> BusinessSettings:
        self._state.settings = settings
        await self._sync.save(
            SETTINGS, settings_record(self._state.tenant_scope, settings)
        )
        return settings

    async def record_expense(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        correlation_id = correlation_id or create_correlation_id()
        self._state.expenses.put(expense)
        await self._sync.save(EXPENSES, expense, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_expense_recorded(
                expense_id=expense.id,
                amount=expense.amount,
                category=expense.category,
                correlation_id=correlation_id,
            )
        return expense

    async def delete_expense(self, expense_id: str) -> None:
        if self._state.expenses.remove(expense_id) is None:
            raise InvalidOperation(f"Expense not found: {expense_id}")
        await self._sync.delete(EXPENSES, expense_id)

    def dashboard(self) -> DashboardSummary:
        return build_dashboard_summary(self._state.documents, self._state.expenses)

    def export_backup(self) -> BackupData:
        """Snapshot of the tenant's records."""
        return BackupData(
            documents=self._state.documents.list(),
            expenses=self._state.expenses.list(),
            clients=self._state.clients.list(),
            products=self._state.products.list(),
            settings=self._state.settings,
        )

    async def restore_backup(
        self,
        backup: BackupData,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, int]:
        """
        Replace the tenant's records with a backup.

        Records missing from the backup are deleted. Cash sessions are
        not part of a backup and are left alone.
        """
        correlation_id = correlation_id or create_correlation_id()
        replacements = [
            (DOCUMENTS, self._state.documents, backup.documents),
            (EXPENSES, self._state.expenses, backup.expenses),
            (CLIENTS, self._state.clients, backup.clients),
            (PRODUCTS, self._state.products, backup.products),
        ]

        counts = {}
        for collection, repository, records in replacements:
            keep = {r.id for r in records}
            stale = [r.id for r in repository if r.id not in keep]
            repository.replace_all(records)
            for record_id in stale:
                await self._sync.delete(collection, record_id, correlation_id)
            for record in records:
                await self._sync.save(collection, record, correlation_id)
            counts[collection] = len(records)

        # Remembered stock deltas refer to the replaced catalog
        self._state.inventory.forget_all()

        self._state.settings = backup.settings
        await self._sync.save(
            SETTINGS,
            settings_record(self._state.tenant_scope, backup.settings),
            correlation_id,
        )

        if self._audit_logger:
            await self._audit_logger.log_backup_restored(
                counts=counts,
                correlation_id=correlation_id,
            )
        return counts


def build_gateway(use_remote: Optional[bool] = None) -> LocalFirstGateway:
    """
    Local JSON cache, plus Google Sheets when remote sync is enabled
    and configured.
    """
    settings = get_settings()
    if use_remote is None:
        use_remote = settings.storage.remote_enabled

    local = JsonFileRecordStore(settings.storage.local_data_dir)
    remote = None
    if use_remote:
        try:
            remote = GoogleSheetsRecordStore()
        except (StorageError, ValidationError) as e:
            # Remote not configured - continue local-only
            logger.warning("remote_storage_not_configured", error=str(e))
            remote = None

    return LocalFirstGateway(local, remote)


async def create_app_components(
    tenant_scope: Optional[str] = None,
    gateway: Optional[PersistenceGateway] = None,
    use_remote: Optional[bool] = None,
    clock: Callable = utcnow,
) -> tuple[DocumentFlow, CashRegisterFlow, BusinessRecordsFlow, RecordSync]:
    """
    Factory function to create all application components for a tenant.

    Args:
        tenant_scope: Tenant to load. Defaults to the configured scope.
        gateway: Persistence gateway. Built from settings when omitted.
        use_remote: Override STORAGE_REMOTE_ENABLED when building the gateway.
        clock: Source of "now" shared by every flow.

    Returns:
        (document_flow, cash_flow, records_flow, record_sync)
    """
    configure_logging()
    ledger_settings = get_settings().ledger
    tenant_scope = tenant_scope or ledger_settings.default_tenant_scope
    gateway = gateway or build_gateway(use_remote)

    state = await LedgerState.load(gateway, tenant_scope)
    audit_logger = AuditLogger(gateway, tenant_scope=tenant_scope)
    sync = RecordSync(gateway, tenant_scope, audit_logger)

    document_flow = DocumentFlow(
        state,
        sync,
        audit_logger=audit_logger,
        payment_tolerance=ledger_settings.payment_tolerance,
        clock=clock,
    )
    cash_flow = CashRegisterFlow(
        state,
        sync,
        audit_logger=audit_logger,
        cash_methods=ledger_settings.cash_methods_list,
        allow_concurrent_sessions=ledger_settings.allow_concurrent_cash_sessions,
        clock=clock,
    )
    records_flow = BusinessRecordsFlow(state, sync, audit_logger=audit_logger)

    logger.info(
        "app_components_created",
        tenant_scope=tenant_scope,
        documents=len(state.documents),
        products=len(state.products),
    )
    return document_flow, cash_flow, records_flow, sync
