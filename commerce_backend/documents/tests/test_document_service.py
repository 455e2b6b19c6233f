# documents/tests/test_document_service.py

from datetime import date
from decimal import Decimal

from django.test import TestCase, override_settings

from documents.models import CommercialDocument
from documents.services.document_service import (
    cancel_document,
    create_document,
    delete_document,
    update_document,
    validate_document,
)
from documents.services.exceptions import (
    DuplicateNumberError,
    ImmutableStateError,
    NotFoundError,
    ValidationFailedError,
)
from payments.services.allocation import apply_payment
from products.models import StockMovement
from tenants.models import AuditLog
from tenants.tests.factories import (
    make_customer,
    make_document,
    make_invoice,
    make_product,
    make_tenant,
    product_line,
    service_line,
)

Kind = CommercialDocument.Kind
Status = CommercialDocument.Status


class CreateDocumentTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        self.customer = make_customer(self.tenant, name="Acme", payment_terms="60 jours")

    def test_totals_and_due_date_are_computed_on_create(self):
        doc = create_document(
            tenant=self.tenant,
            actor="clerk@example.com",
            kind=Kind.INVOICE,
            customer_id=self.customer.id,
            date=date(2024, 1, 15),
            global_discount_pct=Decimal("5"),
            levy_enabled=True,
            levy_rate_pct=Decimal("1"),
            stamp_duty=Decimal("1"),
            lines=[
                {
                    "description": "Consulting",
                    "quantity": Decimal("2"),
                    "unit_price": Decimal("100"),
                    "discount_pct": Decimal("10"),
                    "tax_pct": Decimal("19"),
                }
            ],
        )

        doc.refresh_from_db()
        self.assertEqual(doc.status, Status.DRAFT)
        self.assertEqual(doc.base_amount, Decimal("171.00"))
        self.assertEqual(doc.levy_amount, Decimal("1.71"))
        self.assertEqual(doc.tax_amount, Decimal("32.81"))
        self.assertEqual(doc.total_amount, Decimal("206.52"))
        # terms inherited from the customer
        self.assertEqual(doc.payment_terms, "60 jours")
        self.assertEqual(doc.due_date, date(2024, 3, 15))
        self.assertEqual(doc.currency, self.tenant.currency)
        self.assertEqual(doc.created_by, "clerk@example.com")
        self.assertEqual(doc.lines.count(), 1)

    def test_number_comes_from_the_kind_sequence(self):
        first = make_invoice(self.tenant, self.customer, "10", date=date(2024, 3, 1))
        second = make_invoice(self.tenant, self.customer, "10", date=date(2024, 3, 1))

        self.assertEqual(first.number, "INV-2024-00001")
        self.assertEqual(second.number, "INV-2024-00002")

    def test_duplicate_number_is_rejected(self):
        make_invoice(self.tenant, self.customer, "10", number="F-001")

        with self.assertRaises(DuplicateNumberError):
            make_invoice(self.tenant, self.customer, "10", number="F-001")

        # same number on another kind is fine
        quote = make_document(
            self.tenant, kind=Kind.QUOTE, customer=self.customer, lines=[service_line("5")], number="F-001"
        )
        self.assertEqual(quote.number, "F-001")

    def test_sequence_skips_numbers_taken_manually(self):
        make_invoice(self.tenant, self.customer, "10", number="INV-2024-00001", date=date(2024, 3, 1))
        doc = make_invoice(self.tenant, self.customer, "10", date=date(2024, 3, 1))
        self.assertEqual(doc.number, "INV-2024-00002")

    def test_invoice_requires_a_customer(self):
        with self.assertRaises(ValidationFailedError):
            make_document(self.tenant, kind=Kind.INVOICE, lines=[service_line("10")])

    def test_unknown_product_is_not_found(self):
        other_tenant = make_tenant()
        foreign = make_product(other_tenant)

        with self.assertRaises(NotFoundError):
            make_document(
                self.tenant,
                kind=Kind.INVOICE,
                customer=self.customer,
                lines=[product_line(foreign, 1)],
            )

    def test_non_numeric_quantity_is_rejected(self):
        with self.assertRaises(ValidationFailedError):
            make_document(
                self.tenant,
                kind=Kind.INVOICE,
                customer=self.customer,
                lines=[{"description": "x", "quantity": "two", "unit_price": "1"}],
            )

    def test_negative_quantity_only_where_allowed(self):
        credit = make_document(
            self.tenant,
            kind=Kind.CREDIT_NOTE,
            customer=self.customer,
            lines=[service_line("50", quantity="-2")],
        )
        self.assertEqual(credit.total_amount, Decimal("-100.00"))

        with self.assertRaises(ValidationFailedError):
            make_document(
                self.tenant,
                kind=Kind.DELIVERY_NOTE,
                customer=self.customer,
                lines=[service_line("50", quantity="-2")],
            )

    def test_validated_document_needs_lines(self):
        with self.assertRaises(ValidationFailedError):
            make_document(self.tenant, kind=Kind.INVOICE, customer=self.customer, lines=[])

    @override_settings(DEFAULT_STAMP_DUTY="1")
    def test_invoice_gets_default_stamp_duty(self):
        doc = create_document(
            tenant=self.tenant,
            kind=Kind.INVOICE,
            customer_id=self.customer.id,
            lines=[service_line("10")],
        )
        self.assertEqual(doc.total_amount, Decimal("11.00"))

    def test_create_is_audited(self):
        doc = make_invoice(self.tenant, self.customer, "10")
        log = AuditLog.objects.get(action="DOCUMENT_CREATED")
        self.assertEqual(log.metadata["document_id"], str(doc.id))
        self.assertEqual(log.actor_email, "tests@example.com")


class DocumentLifecycleTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        self.customer = make_customer(self.tenant)
        self.product = make_product(self.tenant, unit_price="20")

    def _draft(self, **fields):
        return make_document(
            self.tenant,
            kind=Kind.INVOICE,
            customer=self.customer,
            status=Status.DRAFT,
            lines=[product_line(self.product, 2)],
            **fields,
        )

    def test_draft_lines_can_be_replaced(self):
        doc = self._draft()
        self.assertEqual(doc.total_amount, Decimal("40.00"))

        doc = update_document(
            tenant=self.tenant,
            document_id=doc.id,
            lines=[product_line(self.product, 5), service_line("3")],
        )

        self.assertEqual(doc.lines.count(), 2)
        self.assertEqual(doc.total_amount, Decimal("103.00"))

    def test_validated_document_is_immutable(self):
        doc = self._draft()
        validate_document(tenant=self.tenant, document_id=doc.id)

        with self.assertRaises(ImmutableStateError):
            update_document(tenant=self.tenant, document_id=doc.id, changes={"global_discount_pct": 5})

        with self.assertRaises(ImmutableStateError):
            update_document(tenant=self.tenant, document_id=doc.id, lines=[service_line("1")])

        doc = update_document(tenant=self.tenant, document_id=doc.id, changes={"notes": "Deliver at gate 2"})
        self.assertEqual(doc.notes, "Deliver at gate 2")
        self.assertEqual(doc.total_amount, Decimal("40.00"))

    def test_model_save_refuses_frozen_field_changes(self):
        doc = self._draft()
        validate_document(tenant=self.tenant, document_id=doc.id)
        doc.refresh_from_db()

        doc.total_amount = Decimal("1.00")
        with self.assertRaises(ImmutableStateError):
            doc.save()

    def test_validate_twice_is_rejected(self):
        doc = self._draft()
        validate_document(tenant=self.tenant, document_id=doc.id)
        with self.assertRaises(ImmutableStateError):
            validate_document(tenant=self.tenant, document_id=doc.id)

    def test_cancelled_is_terminal(self):
        doc = self._draft()
        cancel_document(tenant=self.tenant, document_id=doc.id)

        with self.assertRaises(ImmutableStateError):
            validate_document(tenant=self.tenant, document_id=doc.id)

    def test_cancel_removes_stock_movements(self):
        doc = self._draft()
        validate_document(tenant=self.tenant, document_id=doc.id)
        self.assertEqual(StockMovement.objects.filter(source_id=str(doc.id)).count(), 1)

        cancel_document(tenant=self.tenant, document_id=doc.id)
        self.assertFalse(StockMovement.objects.filter(source_id=str(doc.id)).exists())

    def test_paid_invoice_cannot_be_cancelled(self):
        doc = self._draft()
        validate_document(tenant=self.tenant, document_id=doc.id)
        apply_payment(
            tenant=self.tenant,
            direction="CUSTOMER",
            counterparty_id=self.customer.id,
            lines=[{"invoice_id": doc.id, "amount": Decimal("10")}],
        )

        with self.assertRaises(ImmutableStateError):
            cancel_document(tenant=self.tenant, document_id=doc.id)

    def test_delete_only_from_draft_or_cancelled(self):
        doc = self._draft()
        validate_document(tenant=self.tenant, document_id=doc.id)

        with self.assertRaises(ImmutableStateError):
            delete_document(tenant=self.tenant, document_id=doc.id)

        cancel_document(tenant=self.tenant, document_id=doc.id)
        result = delete_document(tenant=self.tenant, document_id=doc.id)

        self.assertEqual(result["number"], doc.number)
        self.assertFalse(CommercialDocument.objects.filter(pk=doc.id).exists())

    def test_draft_delete_removes_movements(self):
        doc = self._draft()
        self.assertTrue(StockMovement.objects.filter(source_id=str(doc.id)).exists())

        result = delete_document(tenant=self.tenant, document_id=doc.id)

        self.assertEqual(result["movements_deleted"], 1)
        self.assertFalse(StockMovement.objects.filter(source_id=str(doc.id)).exists())

    def test_other_tenant_cannot_see_document(self):
        doc = self._draft()
        with self.assertRaises(NotFoundError):
            validate_document(tenant=make_tenant(), document_id=doc.id)
