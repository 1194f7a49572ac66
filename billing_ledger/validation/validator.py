"""
Two-Stage Document Validation

STAGE 1 - STRUCTURE:
- At least one line item
- A client reference is present
- Non-negative subtotal

STAGE 2 - CONTEXT:
- The client reference resolves (when a client directory is known)
- The document number is not reused by another document of the same type

Field-level rules (positive quantities, rates within 0-100, due date
after date) are already enforced by the pydantic models.

IMPORTANT: Validation NEVER silently fixes issues. Errors become an
InvalidOperation raised before the ledger mutates anything; warnings
are reported back.
"""

from decimal import Decimal
from typing import Optional

from billing_ledger.exceptions import InvalidOperation
from billing_ledger.repository import Repository
from billing_ledger.models.business import Client
from billing_ledger.models.document import Document
from billing_ledger.models.validation import ValidationIssue, ValidationResult


class DocumentValidator:
    """
    Validates documents through a two-stage pipeline.

    Stage 1 runs without any context.
    Stage 2 uses whichever repositories were provided; a missing
    repository skips the corresponding check.
    """

    def __init__(
        self,
        clients: Optional[Repository[Client]] = None,
        documents: Optional[Repository[Document]] = None,
    ):
        self._clients = clients
        self._documents = documents

    def _validate_structure(
        self,
        document: Document,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if not document.items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="missing",
                message="A document needs at least one line item",
                severity="error",
                suggested_fix="Add an item before saving",
            ))

        if not document.client_id:
            issues.append(ValidationIssue(
                field="client_id",
                issue_type="missing",
                message="Client reference is required",
                severity="error",
                suggested_fix="Select a client",
            ))

        for payment in document.payments:
            if payment.amount <= 0:
                issues.append(ValidationIssue(
                    field="payments",
                    issue_type="invalid_value",
                    message=f"Payment amount must be positive, got {payment.amount}",
                    severity="error",
                ))

        if document.items:
            subtotal = sum(
                (item.quantity * item.unit_price for item in document.items),
                Decimal("0"),
            )
            if subtotal < 0:
                issues.append(ValidationIssue(
                    field="items",
                    issue_type="invalid_value",
                    message="Subtotal cannot be negative",
                    severity="error",
                ))
            elif subtotal == 0:
                issues.append(ValidationIssue(
                    field="items",
                    issue_type="suspicious_value",
                    message="Every line item is priced at zero",
                    severity="warning",
                    suggested_fix="Check the unit prices",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_context(
        self,
        document: Document,
    ) -> tuple[bool, list[ValidationIssue]]:
        issues = []

        if (
            self._clients is not None
            and document.client_id
            and document.client_id not in self._clients
        ):
            issues.append(ValidationIssue(
                field="client_id",
                issue_type="unknown_reference",
                message=f"Client {document.client_id} does not exist",
                severity="error",
                suggested_fix="Create the client first or pick an existing one",
            ))

        if self._documents is not None:
            for other in self._documents:
                if (
                    other.id != document.id
                    and other.type == document.type
                    and other.number == document.number
                ):
                    issues.append(ValidationIssue(
                        field="number",
                        issue_type="duplicate",
                        message=f"Number {document.number} is already used by another document",
                        severity="warning",
                        suggested_fix="Use a different document number",
                    ))
                    break

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(self, document: Document) -> ValidationResult:
        structure_valid, issues = self._validate_structure(document)

        # Context checks only make sense on a structurally sound document
        context_valid = False
        if structure_valid:
            context_valid, context_issues = self._validate_context(document)
            issues.extend(context_issues)

        return ValidationResult(
            document_id=document.id,
            structure_valid=structure_valid,
            context_valid=context_valid,
            is_valid=structure_valid and context_valid,
            issues=issues,
        )

    def ensure_valid(self, document: Document) -> ValidationResult:
        """Validate and raise InvalidOperation on any error-level issue."""
        result = self.validate(document)
        if result.has_errors:
            messages = "; ".join(
                i.message for i in result.issues if i.severity == "error"
            )
            raise InvalidOperation(f"Document {document.number} rejected: {messages}")
        return result
