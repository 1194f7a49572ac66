"""
Tests for Billing Ledger models

Test strategy:
1. Unit tests for individual components (models, totals, validators)
2. Flow tests through in-memory stores (no external services)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from billing_ledger.exceptions import SoftSyncFailure
from billing_ledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    CashMovement,
    CashMovementType,
    CashSession,
    Client,
    Document,
    DocumentType,
    LineItem,
    Payment,
    Product,
    REVENUE_TYPES,
)
from billing_ledger.models.validation import ValidationIssue, ValidationResult


class TestDocumentModels:
    """Tests for document-related Pydantic models."""

    def test_line_item_strips_whitespace(self):
        """Descriptions are trimmed (they double as inventory keys)."""
        item = LineItem(description="  Coffee 500g  ", quantity=Decimal("1"), unit_price=Decimal("10"))
        assert item.description == "Coffee 500g"

    def test_line_item_rejects_zero_quantity(self):
        with pytest.raises(ValueError):
            LineItem(description="Test", quantity=Decimal("0"), unit_price=Decimal("10"))

    def test_line_item_rejects_negative_price(self):
        with pytest.raises(ValueError):
            LineItem(description="Test", quantity=Decimal("1"), unit_price=Decimal("-10"))

    def test_payment_amount_unconstrained(self):
        """The ledger, not the model, rejects non-positive payments."""
        payment = Payment(date=date(2024, 3, 1), amount=Decimal("-5"))
        assert payment.method == "Efectivo"

    def test_document_rates_bounded(self):
        with pytest.raises(ValueError):
            Document(type=DocumentType.INVOICE, number="FAC-1", date=date(2024, 3, 1), tax_rate=Decimal("101"))

    def test_created_at_normalized_to_utc_naive(self):
        doc = Document(
            type=DocumentType.INVOICE,
            number="FAC-1",
            date=date(2024, 3, 1),
            created_at=datetime(2024, 3, 1, 14, 0, tzinfo=timezone.utc),
        )
        assert doc.created_at == datetime(2024, 3, 1, 14, 0)
        assert doc.created_at.tzinfo is None

    def test_revenue_types(self):
        assert REVENUE_TYPES == {DocumentType.INVOICE, DocumentType.ACCOUNT_COLLECTION}
        assert DocumentType.QUOTE.is_revenue is False
        assert DocumentType.ACCOUNT_COLLECTION.number_prefix == "CC"

    def test_json_roundtrip_keeps_decimals(self):
        doc = Document(
            type=DocumentType.INVOICE,
            number="FAC-1",
            date=date(2024, 3, 1),
            items=[LineItem(description="Rice", quantity=Decimal("0.5"), unit_price=Decimal("3200.10"))],
        )
        restored = Document.model_validate(doc.model_dump(mode="json"))
        assert restored.items[0].unit_price == Decimal("3200.10")


class TestInventoryAndCashModels:
    """Tests for product and cash register models."""

    def test_product_stock_can_be_negative(self):
        product = Product(description="Sugar", stock=Decimal("-3"))
        assert product.stock == Decimal("-3")

    def test_cash_session_rejects_negative_opening(self):
        with pytest.raises(ValueError):
            CashSession(user_id="u1", opening_balance=Decimal("-1"), expected_balance=Decimal("0"))

    def test_movement_signed_amount(self):
        out = CashMovement(session_id="s1", type=CashMovementType.OUT, amount=Decimal("50"))
        assert out.signed_amount == Decimal("-50")

    def test_client_requires_name(self):
        with pytest.raises(ValueError):
            Client(name="   ")


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.DOCUMENT_CREATED,
            description="Document FAC-1 created",
        )
        assert event.event_type == AuditEventType.DOCUMENT_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.id == str(event.event_id)

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.payment_applied(
            document_id="doc-1",
            amount=Decimal("500"),
            method="Efectivo",
            status="partial",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "payment_applied"
        assert log_dict["entity_id"] == "doc-1"
        assert log_dict["details"]["amount"] == "500"

    def test_cash_session_closed_with_variance_is_warning(self):
        balanced = AuditEventBuilder.cash_session_closed(
            "s1", Decimal("100"), Decimal("100"), Decimal("0")
        )
        short = AuditEventBuilder.cash_session_closed(
            "s1", Decimal("100"), Decimal("90"), Decimal("-10")
        )
        assert balanced.severity == AuditSeverity.INFO
        assert short.severity == AuditSeverity.WARNING

    def test_remote_sync_failed_is_warning(self):
        event = AuditEventBuilder.remote_sync_failed("documents", "doc-1", "timeout")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "timeout"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            document_id="doc-1",
            structure_valid=False,
            context_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="items",
                    issue_type="missing",
                    message="A document needs at least one line item",
                    severity="error",
                )
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test result with only warnings."""
        result = ValidationResult(
            document_id="doc-1",
            structure_valid=True,
            context_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="number",
                    issue_type="duplicate",
                    message="Number already used",
                    severity="warning",
                )
            ],
        )
        assert not result.has_errors
        assert result.warnings == ["Number already used"]


class TestSoftSyncFailure:
    """Tests for the remote sync notification."""

    def test_message(self):
        failure = SoftSyncFailure("documents", "doc-1", "shop", reason="timeout")
        assert str(failure) == "Remote sync failed for documents/doc-1: timeout"
        assert failure.tenant_scope == "shop"
