# products/tests/test_api.py

from django.test import TestCase
from rest_framework.test import APIClient

from documents.models import CommercialDocument
from tenants.tests.factories import (
    make_customer,
    make_document,
    make_product,
    make_supplier,
    make_tenant,
    make_user,
    make_warehouse,
    product_line,
)
from users.models import User

Kind = CommercialDocument.Kind


class StockApiTests(TestCase):
    def setUp(self):
        self.tenant = make_tenant()
        self.product = make_product(self.tenant, sku="BOLT-8")
        self.warehouse = make_warehouse(self.tenant)

        make_document(
            self.tenant,
            kind=Kind.GOODS_RECEIPT,
            supplier=make_supplier(self.tenant),
            warehouse_id=self.warehouse.id,
            lines=[product_line(self.product, 10)],
        )
        make_document(
            self.tenant,
            kind=Kind.DELIVERY_NOTE,
            customer=make_customer(self.tenant),
            lines=[product_line(self.product, 4)],
        )

        self.client = APIClient()
        self.client.force_authenticate(user=make_user(self.tenant, role=User.Role.WAREHOUSE))

    def test_movements_list_and_filter(self):
        res = self.client.get("/api/stock/movements/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 2)

        res = self.client.get("/api/stock/movements/", {"source_kind": Kind.GOODS_RECEIPT})
        self.assertEqual(res.data["count"], 1)
        self.assertEqual(res.data["results"][0]["product_sku"], "BOLT-8")
        self.assertEqual(res.data["results"][0]["movement_type"], "IN")

    def test_level_overall_and_per_warehouse(self):
        res = self.client.get(f"/api/stock/levels/{self.product.id}/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["quantity"], "6.000")

        res = self.client.get(f"/api/stock/levels/{self.product.id}/", {"warehouse": str(self.warehouse.id)})
        self.assertEqual(res.data["quantity"], "10.000")

    def test_level_for_foreign_product_is_404(self):
        foreign = make_product(make_tenant())
        res = self.client.get(f"/api/stock/levels/{foreign.id}/")
        self.assertEqual(res.status_code, 404)

    def test_sales_has_no_stock_access(self):
        self.client.force_authenticate(user=make_user(self.tenant, role=User.Role.SALES))
        self.assertEqual(self.client.get("/api/stock/movements/").status_code, 403)
