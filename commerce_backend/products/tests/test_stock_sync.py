# products/tests/test_stock_sync.py

from decimal import Decimal
from unittest import mock

from django.test import TestCase

from documents.models import CommercialDocument
from documents.services.document_service import update_document, validate_document
from products.models import StockMovement
from products.services import stock_sync
from products.services.line_diff import snapshot_lines
from products.services.stock_sync import stock_level, sync_movements_for_document
from tenants.tests.factories import (
    make_customer,
    make_document,
    make_product,
    make_supplier,
    make_tenant,
    product_line,
    service_line,
)

Kind = CommercialDocument.Kind
Status = CommercialDocument.Status
OUT = StockMovement.MovementType.OUT
IN = StockMovement.MovementType.IN


class StockSyncTests(TestCase):
    """
    GUARANTEES:
    - one movement per (tenant, product, source kind, source id)
    - movements follow the current lines, never the history
    """

    def setUp(self):
        self.tenant = make_tenant()
        self.customer = make_customer(self.tenant)
        self.supplier = make_supplier(self.tenant)
        self.product = make_product(self.tenant, unit_price="10")
        self.other = make_product(self.tenant, unit_price="5")

    def _movements(self, document):
        return StockMovement.objects.filter(
            tenant=self.tenant, source_kind=document.kind, source_id=str(document.id)
        )

    def _draft_invoice(self, lines):
        return make_document(
            self.tenant, kind=Kind.INVOICE, customer=self.customer, status=Status.DRAFT, lines=lines
        )

    def test_invoice_creates_one_out_movement_per_product(self):
        doc = self._draft_invoice([product_line(self.product, 3), product_line(self.other, 1)])

        movements = self._movements(doc)
        self.assertEqual(movements.count(), 2)
        self.assertEqual(set(movements.values_list("movement_type", flat=True)), {OUT})
        self.assertEqual(movements.get(product=self.product).quantity, Decimal("3"))

    def test_repeated_updates_never_duplicate(self):
        doc = self._draft_invoice([product_line(self.product, 3)])

        update_document(tenant=self.tenant, document_id=doc.id, lines=[product_line(self.product, 7)])
        update_document(tenant=self.tenant, document_id=doc.id, lines=[product_line(self.product, 4)])

        movements = self._movements(doc)
        self.assertEqual(movements.count(), 1)
        self.assertEqual(movements.get().quantity, Decimal("4"))

    def test_validation_after_draft_keeps_single_movement(self):
        doc = self._draft_invoice([product_line(self.product, 3)])
        validate_document(tenant=self.tenant, document_id=doc.id)

        self.assertEqual(self._movements(doc).count(), 1)

    def test_removed_or_zeroed_lines_lose_their_movement(self):
        doc = self._draft_invoice([product_line(self.product, 3), product_line(self.other, 2)])

        update_document(
            tenant=self.tenant,
            document_id=doc.id,
            lines=[product_line(self.product, 0), service_line("9")],
        )

        self.assertFalse(self._movements(doc).exists())

    def test_service_products_never_move_stock(self):
        service = make_product(self.tenant, is_stocked=False)
        doc = self._draft_invoice([product_line(service, 2), service_line("5")])

        self.assertFalse(self._movements(doc).exists())

    def test_product_becoming_non_stocked_drops_movement(self):
        doc = self._draft_invoice([product_line(self.product, 2)])
        self.product.is_stocked = False
        self.product.save()

        update_document(tenant=self.tenant, document_id=doc.id, lines=[product_line(self.product, 3)])

        self.assertFalse(self._movements(doc).exists())

    def test_purchase_invoice_moves_stock_in(self):
        doc = make_document(
            self.tenant,
            kind=Kind.PURCHASE_INVOICE,
            supplier=self.supplier,
            lines=[product_line(self.product, 10)],
        )

        self.assertEqual(self._movements(doc).get().movement_type, IN)
        self.assertEqual(stock_level(tenant=self.tenant, product=self.product), Decimal("10"))

    def test_quotes_have_no_stock_effect(self):
        doc = make_document(
            self.tenant, kind=Kind.QUOTE, customer=self.customer, lines=[product_line(self.product, 3)]
        )
        self.assertFalse(self._movements(doc).exists())

    def test_invoice_linked_to_delivered_note_is_skipped(self):
        delivery = make_document(
            self.tenant,
            kind=Kind.DELIVERY_NOTE,
            customer=self.customer,
            lines=[product_line(self.product, 3)],
        )
        invoice = make_document(
            self.tenant,
            kind=Kind.INVOICE,
            customer=self.customer,
            lines=[product_line(self.product, 3)],
            linked_document_ids=[delivery.id],
        )

        self.assertEqual(self._movements(delivery).count(), 1)
        self.assertFalse(self._movements(invoice).exists())
        self.assertEqual(stock_level(tenant=self.tenant, product=self.product), Decimal("-3"))

    def test_sync_is_idempotent(self):
        doc = self._draft_invoice([product_line(self.product, 3)])

        result = sync_movements_for_document(doc)

        self.assertEqual(result["unchanged"], 1)
        self.assertEqual(result["created"], 0)
        self.assertEqual(self._movements(doc).count(), 1)

    def test_update_mode_works_from_line_snapshots(self):
        doc = self._draft_invoice([product_line(self.product, 3)])
        before = snapshot_lines(doc.lines.all())
        doc.lines.all().delete()

        result = sync_movements_for_document(doc, previous_lines=before)

        self.assertEqual(result["deleted"], 1)
        self.assertFalse(self._movements(doc).exists())

    def test_one_failing_line_does_not_stop_the_others(self):
        doc = self._draft_invoice([product_line(self.product, 3), product_line(self.other, 2)])
        StockMovement.objects.all().delete()

        real = stock_sync._reconcile_product

        def flaky(**kwargs):
            if kwargs["product_id"] == str(self.product.id):
                raise RuntimeError("boom")
            return real(**kwargs)

        with mock.patch.object(stock_sync, "_reconcile_product", side_effect=flaky):
            with self.assertLogs("stock", level="ERROR"):
                result = sync_movements_for_document(doc)

        self.assertEqual(result["failed"], 1)
        self.assertEqual(result["created"], 1)
        self.assertEqual(self._movements(doc).get().product_id, self.other.id)


class ReturnTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        self.customer = make_customer(self.tenant)
        self.product = make_product(self.tenant, name="Widget", unit_price="10")
        self.delivery = make_document(
            self.tenant,
            kind=Kind.DELIVERY_NOTE,
            customer=self.customer,
            lines=[product_line(self.product, 10)],
        )

    def test_sales_return_moves_goods_back_and_annotates_the_delivery(self):
        ret = make_document(
            self.tenant,
            kind=Kind.SALES_RETURN,
            customer=self.customer,
            source_document_id=self.delivery.id,
            lines=[product_line(self.product, 4)],
        )

        movement = StockMovement.objects.get(source_kind=Kind.SALES_RETURN, source_id=str(ret.id))
        self.assertEqual(movement.movement_type, IN)
        self.assertEqual(movement.quantity, Decimal("4"))

        self.delivery.refresh_from_db()
        line = self.delivery.lines.get()
        self.assertEqual(line.quantity, Decimal("10"))
        self.assertEqual(line.delivered_quantity, Decimal("6"))
        self.assertIn(f"subject to return {ret.number}", self.delivery.internal_notes)
        self.assertIn("Widget: 4", self.delivery.internal_notes)
        self.assertIn(ret, self.delivery.linked_documents.all())

        self.assertEqual(stock_level(tenant=self.tenant, product=self.product), Decimal("-6"))

    def test_draft_return_touches_nothing_until_validated(self):
        ret = make_document(
            self.tenant,
            kind=Kind.SALES_RETURN,
            customer=self.customer,
            source_document_id=self.delivery.id,
            status=Status.DRAFT,
            lines=[product_line(self.product, 4)],
        )
        self.assertEqual(self.delivery.lines.get().delivered_quantity, Decimal("10"))

        validate_document(tenant=self.tenant, document_id=ret.id)

        self.assertEqual(self.delivery.lines.get().delivered_quantity, Decimal("6"))

    def test_delivered_quantity_never_goes_negative(self):
        make_document(
            self.tenant,
            kind=Kind.SALES_RETURN,
            customer=self.customer,
            source_document_id=self.delivery.id,
            lines=[product_line(self.product, 15)],
        )
        self.assertEqual(self.delivery.lines.get().delivered_quantity, Decimal("0"))
