"""
Tests for the orchestrated flows

End-to-end through in-memory stores: ledger rules, persistence outcome
handling, notifications, POS checkout, dashboard and backups.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from billing_ledger.exceptions import InvalidOperation, InvalidState, SoftSyncFailure
from billing_ledger.models import (
    BackupData,
    BusinessSettings,
    CashMovementType,
    Client,
    DocumentStatus,
    DocumentType,
    Expense,
    LineItem,
    Product,
)
from billing_ledger.orchestrator import (
    BusinessRecordsFlow,
    CashRegisterFlow,
    DocumentFlow,
    LedgerState,
    RecordSync,
    create_app_components,
)
from billing_ledger.services.export import DocumentRenderer
from billing_ledger.services.storage import (
    InMemoryRecordStore,
    LocalFirstGateway,
    PersistenceError,
    RecordStore,
    StorageError,
)

from tests.factories import make_document


def run(coro):
    return asyncio.run(coro)


class FailingRecordStore(RecordStore):
    async def put(self, collection, tenant_scope, record):
        raise StorageError("backend unreachable")

    async def all(self, collection, tenant_scope):
        raise StorageError("backend unreachable")

    async def remove(self, collection, tenant_scope, record_id):
        raise StorageError("backend unreachable")


class TextRenderer(DocumentRenderer):
    """Renders the resolved figures as plain text."""

    def render(self, finalized, client, settings):
        name = client.name if client else "-"
        return (
            f"{finalized.document.number}|{name}|{finalized.totals.net}|"
            f"{finalized.balance_due}|{settings.currency}"
        ).encode()


def _line(description: str, quantity: str, price: str) -> LineItem:
    return LineItem(description=description, quantity=Decimal(quantity), unit_price=Decimal(price))


class Harness:
    """All flows over one tenant state and one gateway."""

    def __init__(self, clock, gateway=None, tenant_scope="shop"):
        self.local = InMemoryRecordStore()
        self.gateway = gateway or LocalFirstGateway(self.local)
        self.state = LedgerState(tenant_scope)
        self.sync = RecordSync(self.gateway, tenant_scope)
        self.documents = DocumentFlow(self.state, self.sync, clock=clock)
        self.cash = CashRegisterFlow(self.state, self.sync, clock=clock)
        self.records = BusinessRecordsFlow(self.state, self.sync)

    async def seed(self):
        await self.records.save_client(Client(id="client-1", name="Tienda La Esquina"))
        await self.records.save_product(Product(
            id="prod-coffee",
            description="Coffee 500g",
            sale_price=Decimal("12000"),
            stock=Decimal("10"),
            barcode="7701234567890",
        ))


@pytest.fixture
def harness(clock):
    h = Harness(clock)
    run(h.seed())
    return h


class TestDocumentFlow:
    """Tests for document save, payment and delete through persistence."""

    def test_save_persists_document_and_stock(self, harness):
        change = run(harness.documents.save_document(make_document()))

        saved = run(harness.local.all("documents", "shop"))
        assert [r["id"] for r in saved] == [change.document.id]
        products = run(harness.local.all("products", "shop"))
        assert products[0]["stock"] == "8"

    def test_rejected_save_changes_nothing(self, harness):
        with pytest.raises(InvalidOperation):
            run(harness.documents.save_document(make_document(client_id="ghost")))
        assert len(harness.state.documents) == 0
        assert run(harness.local.all("documents", "shop")) == []

    def test_payments_drive_status(self, harness):
        doc = run(harness.documents.save_document(make_document())).document

        partial = run(harness.documents.record_payment(doc.id, Decimal("500")))
        assert partial.status == DocumentStatus.PARTIAL

        paid = run(harness.documents.record_payment(doc.id, Decimal("1500"), method="Nequi"))
        assert paid.status == DocumentStatus.PAID
        assert paid.payment_method == "Nequi"

        stored = run(harness.local.all("documents", "shop"))[0]
        assert stored["status"] == "paid"
        assert len(stored["payments"]) == 2

    def test_non_positive_payment_rejected(self, harness):
        doc = run(harness.documents.save_document(make_document())).document
        with pytest.raises(InvalidOperation):
            run(harness.documents.record_payment(doc.id, Decimal("0")))
        assert harness.state.documents.get(doc.id).payments == []

    def test_delete_restores_stock_everywhere(self, harness):
        doc = run(harness.documents.save_document(make_document())).document
        run(harness.documents.delete_document(doc.id))

        assert harness.state.products.get("prod-coffee").stock == Decimal("10")
        assert run(harness.local.all("products", "shop"))[0]["stock"] == "10"
        assert run(harness.local.all("documents", "shop")) == []

    def test_delete_unknown_rejected(self, harness):
        with pytest.raises(InvalidOperation):
            run(harness.documents.delete_document("missing"))

    def test_new_document_defaults(self, harness):
        run(harness.records.update_settings(BusinessSettings(default_tax_rate=Decimal("19"))))
        run(harness.documents.save_document(make_document(number="FAC-000004")))

        invoice = harness.documents.new_document(DocumentType.INVOICE, "client-1")
        collection = harness.documents.new_document(DocumentType.ACCOUNT_COLLECTION, "client-1")

        assert invoice.number == "FAC-000005"
        assert invoice.tax_rate == Decimal("19")
        assert invoice.payment_method == "Efectivo"
        assert collection.number == "CC-000001"
        assert collection.tax_rate == Decimal("0")

    def test_find_product_from_scan(self, harness):
        assert harness.documents.find_product("7701234567890").id == "prod-coffee"
        assert harness.documents.find_product("unknown") is None

    def test_export_document(self, harness):
        doc = run(harness.documents.save_document(make_document(tax_rate=Decimal("19")))).document
        output = harness.documents.export_document(doc.id, TextRenderer())
        assert output == b"FAC-000001|Tienda La Esquina|2380|2380|COP"


class TestPosCheckout:
    """Tests for POS checkout."""

    def test_checkout_is_paid_invoice(self, harness):
        run(harness.records.update_settings(BusinessSettings(default_tax_rate=Decimal("19"))))

        doc = run(harness.documents.checkout_pos(
            [_line("7701234567890", "2", "1000")], "client-1",
        ))

        assert doc.type == DocumentType.INVOICE
        assert doc.is_pos is True
        assert doc.number == "POS-000001"
        assert doc.status == DocumentStatus.PAID
        assert len(doc.payments) == 1
        assert doc.payments[0].amount == Decimal("2380")
        assert harness.state.products.get("prod-coffee").stock == Decimal("8")

    def test_consecutive_numbers(self, harness):
        first = run(harness.documents.checkout_pos([_line("Coffee 500g", "1", "10")], "client-1"))
        second = run(harness.documents.checkout_pos([_line("Coffee 500g", "1", "10")], "client-1"))
        assert (first.number, second.number) == ("POS-000001", "POS-000002")
        assert harness.state.products.get("prod-coffee").stock == Decimal("8")

    def test_zero_priced_cart_carries_no_payment(self, harness):
        doc = run(harness.documents.checkout_pos([_line("Gift wrap", "1", "0")], "client-1"))
        assert doc.payments == []
        assert doc.status == DocumentStatus.PAID
        assert harness.state.documents.get(doc.id).payments == []

    def test_empty_cart_rejected(self, harness):
        with pytest.raises(InvalidOperation):
            run(harness.documents.checkout_pos([], "client-1"))
        assert len(harness.state.documents) == 0


class TestCashRegisterFlow:
    """Tests for the cash register through persistence."""

    def test_session_with_pos_sales(self, harness, clock):
        run(harness.records.update_settings(BusinessSettings(default_tax_rate=Decimal("0"))))
        session = run(harness.cash.open_session(Decimal("100000"), "user-1", "Ana"))
        clock.advance(minutes=10)
        run(harness.documents.checkout_pos([_line("Sale", "1", "50000")], "client-1"))
        run(harness.cash.record_movement(session.id, CashMovementType.OUT, Decimal("10000"), "Supplier"))

        assert harness.cash.expected_balance(session.id) == Decimal("140000")

        closed = run(harness.cash.close_session(session.id, Decimal("140000")))
        assert closed.difference == Decimal("0")
        stored = run(harness.local.all("cash_sessions", "shop"))[0]
        assert stored["status"] == "closed"
        assert len(run(harness.local.all("cash_movements", "shop"))) == 1

    def test_card_sale_not_in_drawer(self, harness, clock):
        session = run(harness.cash.open_session(Decimal("0"), "user-1"))
        clock.advance(minutes=1)
        run(harness.documents.checkout_pos(
            [_line("Sale", "1", "50000")], "client-1", payment_method="Tarjeta",
        ))
        assert harness.cash.summary(session.id).cash_sales == Decimal("0")

    def test_second_open_rejected(self, harness):
        run(harness.cash.open_session(Decimal("0"), "user-1"))
        with pytest.raises(InvalidState):
            run(harness.cash.open_session(Decimal("0"), "user-2"))

    def test_movement_on_closed_session_rejected(self, harness):
        session = run(harness.cash.open_session(Decimal("0"), "user-1"))
        run(harness.cash.close_session(session.id, Decimal("0")))
        with pytest.raises(InvalidState):
            run(harness.cash.record_movement(session.id, CashMovementType.IN, Decimal("5")))
        assert run(harness.local.all("cash_movements", "shop")) == []


class TestPersistenceOutcomes:
    """Tests for hard and soft persistence failures."""

    def test_remote_miss_queues_notification(self, clock):
        local = InMemoryRecordStore()
        harness = Harness(clock, gateway=LocalFirstGateway(local, FailingRecordStore()))
        run(harness.seed())
        harness.sync.drain_notifications()

        doc = run(harness.documents.save_document(make_document())).document

        # In-memory and local state are intact
        assert harness.state.documents.get(doc.id) is not None
        assert len(run(local.all("documents", "shop"))) == 1

        notifications = harness.sync.drain_notifications()
        assert {n.collection for n in notifications} == {"documents", "products"}
        assert all(isinstance(n, SoftSyncFailure) for n in notifications)
        assert harness.sync.notifications == []

    def test_local_failure_raises_but_keeps_memory(self, clock):
        harness = Harness(clock, gateway=LocalFirstGateway(FailingRecordStore()))

        with pytest.raises(PersistenceError):
            run(harness.records.save_client(Client(id="client-1", name="Ana")))
        assert "client-1" in harness.state.clients

    def test_no_gateway_persists_nothing(self, clock):
        state = LedgerState("shop", clients=[Client(id="client-1", name="Ana")])
        flow = DocumentFlow(state, RecordSync(None, "shop"), clock=clock)
        change = run(flow.save_document(make_document(items=[_line("Misc", "1", "10")])))
        assert change.created is True


class TestBusinessRecordsFlow:
    """Tests for dashboard, expenses and backups."""

    def test_dashboard(self, harness):
        paid = run(harness.documents.save_document(make_document(number="FAC-000001"))).document
        run(harness.documents.record_payment(paid.id, Decimal("2000")))
        partial = run(harness.documents.save_document(make_document(number="FAC-000002"))).document
        run(harness.documents.record_payment(partial.id, Decimal("500")))
        run(harness.documents.save_document(make_document(DocumentType.QUOTE, number="PRE-000001")))
        run(harness.records.record_expense(
            Expense(date=date(2024, 3, 1), description="Rent", amount=Decimal("1000"))
        ))

        summary = harness.records.dashboard()
        assert summary.collected == Decimal("2500")
        assert summary.expenses == Decimal("1000")
        assert summary.net_profit == Decimal("1500")
        assert summary.pending == Decimal("1500")
        assert summary.revenue_documents == 2
        assert summary.open_documents == 1

    def test_delete_expense(self, harness):
        expense = run(harness.records.record_expense(
            Expense(date=date(2024, 3, 1), description="Rent", amount=Decimal("1000"))
        ))
        run(harness.records.delete_expense(expense.id))
        assert harness.records.dashboard().expenses == Decimal("0")
        with pytest.raises(InvalidOperation):
            run(harness.records.delete_expense(expense.id))

    def test_restore_forgets_remembered_stock_deltas(self, harness):
        doc = run(harness.documents.save_document(make_document())).document
        assert harness.state.inventory.remembers(doc.id)

        run(harness.records.restore_backup(harness.records.export_backup()))

        assert not harness.state.inventory.remembers(doc.id)

    def test_backup_and_restore(self, harness, clock):
        run(harness.documents.save_document(make_document()))
        backup = harness.records.export_backup()
        assert len(backup.documents) == 1
        assert len(backup.clients) == 1

        other = Harness(clock, tenant_scope="branch")
        run(other.records.save_client(Client(id="stale", name="Old")))
        counts = run(other.records.restore_backup(backup))

        assert counts["documents"] == 1
        assert "stale" not in other.state.clients
        assert [r["id"] for r in run(other.local.all("clients", "branch"))] == ["client-1"]
        restored = BackupData.model_validate_json(backup.model_dump_json())
        assert restored.documents[0].number == "FAC-000001"


class TestCreateAppComponents:
    """Tests for the factory and state hydration."""

    def test_hydrates_from_gateway(self, clock):
        gateway = LocalFirstGateway(InMemoryRecordStore())

        async def scenario():
            docs, cash, records, sync = await create_app_components("shop", gateway=gateway, clock=clock)
            await records.save_client(Client(id="client-1", name="Ana"))
            await records.update_settings(BusinessSettings(currency="USD"))
            await docs.save_document(make_document(items=[_line("Misc", "1", "10")]))
            await cash.open_session(Decimal("100"), "user-1")

            reloaded = await create_app_components("shop", gateway=gateway, clock=clock)
            return reloaded

        docs, cash, records, sync = run(scenario())
        assert len(docs.ledger.list()) == 1
        assert records.settings.currency == "USD"
        assert cash.active_session() is not None
        assert sync.tenant_scope == "shop"

    def test_audit_events_persisted(self, clock):
        store = InMemoryRecordStore()
        gateway = LocalFirstGateway(store)

        async def scenario():
            _, cash, _, _ = await create_app_components("shop", gateway=gateway, clock=clock)
            await cash.open_session(Decimal("0"), "user-1")
            return await store.all("audit_log", "shop")

        events = run(scenario())
        assert [e["event_type"] for e in events] == ["cash_session_opened"]
