# documents/tests/test_conversion.py

from datetime import date
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from balances.services.balance_service import compute_balances
from documents.models import CommercialDocument
from documents.services.conversion import convert_provisional_to_official
from documents.services.exceptions import AlreadyConvertedError, NotFoundError
from payments.models import PaymentLine
from payments.services.allocation import apply_payment
from products.models import StockMovement
from tenants.tests.factories import (
    make_customer,
    make_document,
    make_invoice,
    make_product,
    make_tenant,
    product_line,
)

Kind = CommercialDocument.Kind
Status = CommercialDocument.Status


class ConversionTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        self.customer = make_customer(self.tenant, name="Acme")
        self.product = make_product(self.tenant, unit_price="100")
        self.provisional = make_document(
            self.tenant,
            kind=Kind.INTERNAL_INVOICE,
            customer=self.customer,
            date=date(2024, 1, 5),
            lines=[product_line(self.product, 2, tax_pct="19")],
        )

    def _convert(self):
        return convert_provisional_to_official(
            tenant=self.tenant, provisional_id=self.provisional.id, actor="boss@example.com"
        )

    def test_official_copy_is_validated_dated_today_and_totalled(self):
        official = self._convert()

        self.assertEqual(official.kind, Kind.INVOICE)
        self.assertEqual(official.status, Status.VALIDATED)
        self.assertEqual(official.date, timezone.localdate())
        self.assertEqual(official.total_amount, Decimal("238.00"))
        self.assertEqual(official.lines.count(), 1)
        self.assertIn(self.provisional, official.linked_documents.all())

    def test_provisional_is_archived_with_a_note(self):
        official = self._convert()

        self.provisional.refresh_from_db()
        self.assertTrue(self.provisional.archived)
        self.assertIn(f"Converted to official invoice {official.number}", self.provisional.internal_notes)
        self.assertIn("Payments transferred (0.00", self.provisional.internal_notes)

    def test_payments_follow_the_official_invoice(self):
        first = apply_payment(
            tenant=self.tenant,
            direction="CUSTOMER",
            counterparty_id=self.customer.id,
            payment_date=date(2024, 1, 10),
            lines=[{"invoice_id": self.provisional.id, "amount": Decimal("100")}],
        )
        second = apply_payment(
            tenant=self.tenant,
            direction="CUSTOMER",
            counterparty_id=self.customer.id,
            payment_date=date(2024, 1, 20),
            lines=[{"invoice_id": self.provisional.id, "amount": Decimal("38")}],
        )

        official = self._convert()

        self.assertFalse(PaymentLine.objects.filter(invoice=self.provisional).exists())
        line = second.lines.get()
        self.assertEqual(line.invoice_id, official.id)
        self.assertEqual(line.invoice_number, official.number)
        self.assertEqual(line.amount_paid_before, Decimal("100.00"))
        self.assertEqual(line.remaining_balance, Decimal("100.00"))
        self.assertEqual(first.lines.get().invoice_id, official.id)

        official.refresh_from_db()
        self.assertEqual(official.status, Status.PARTIALLY_PAID)
        self.provisional.refresh_from_db()
        self.assertIn("Payments transferred (138.00", self.provisional.internal_notes)

        # nothing counted twice in the balance
        balance = compute_balances(
            tenant=self.tenant, direction="CUSTOMER", counterparty_id=self.customer.id
        )[0]
        self.assertEqual(balance.balance_due, Decimal("100.00"))
        self.assertEqual([inv.invoice_id for inv in balance.open_invoices], [str(official.id)])

    def test_stock_moves_once_for_the_official_invoice(self):
        self.assertFalse(StockMovement.objects.exists())

        official = self._convert()

        movement = StockMovement.objects.get()
        self.assertEqual(movement.source_kind, Kind.INVOICE)
        self.assertEqual(movement.source_id, str(official.id))
        self.assertEqual(movement.quantity, Decimal("2"))

    def test_second_conversion_fails_without_side_effects(self):
        self._convert()

        with self.assertRaises(AlreadyConvertedError):
            self._convert()

        self.assertEqual(CommercialDocument.objects.filter(tenant=self.tenant, kind=Kind.INVOICE).count(), 1)
        self.assertEqual(StockMovement.objects.count(), 1)

    def test_number_continues_the_official_sequence(self):
        make_invoice(self.tenant, self.customer, "10", number="FAC-2024-0041")

        official = self._convert()

        self.assertEqual(official.number, "FAC-2024-0042")

    def test_number_falls_back_to_sequence(self):
        official = self._convert()
        self.assertEqual(official.number, f"INV-{timezone.localdate().year}-00001")

    def test_invoice_sequence_keeps_up_with_conversions(self):
        today = timezone.localdate()
        make_invoice(self.tenant, self.customer, "10", date=today)

        for _ in range(11):
            provisional = make_document(
                self.tenant,
                kind=Kind.INTERNAL_INVOICE,
                customer=self.customer,
                lines=[product_line(self.product, 1)],
            )
            convert_provisional_to_official(tenant=self.tenant, provisional_id=provisional.id)

        invoice = make_invoice(self.tenant, self.customer, "10", date=today)

        self.assertEqual(invoice.number, f"INV-{today.year}-00013")

    def test_only_internal_invoices_convert(self):
        invoice = make_invoice(self.tenant, self.customer, "10")
        with self.assertRaises(NotFoundError):
            convert_provisional_to_official(tenant=self.tenant, provisional_id=invoice.id)

        with self.assertRaises(NotFoundError):
            convert_provisional_to_official(tenant=make_tenant(), provisional_id=self.provisional.id)
