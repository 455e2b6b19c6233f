# tenants/tests/factories.py

"""
Test data builders shared by the app test suites.

Documents are always created through the document service so totals,
numbering and stock stay what production would produce.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model

from documents.models import CommercialDocument
from documents.services.document_service import create_document
from partners.models import Customer, Supplier
from products.models import Product, Warehouse
from tenants.models import Tenant

User = get_user_model()

Kind = CommercialDocument.Kind
Status = CommercialDocument.Status


def make_tenant(code=None, **extra):
    code = code or f"T-{uuid.uuid4().hex[:6].upper()}"
    return Tenant.objects.create(name=f"Tenant {code}", code=code, **extra)


def make_user(tenant, role=None, email=None, **extra):
    return User.objects.create_user(
        email=email or f"{uuid.uuid4().hex[:8]}@example.com",
        password="password123",
        role=role or User.Role.ADMIN,
        tenant=tenant,
        **extra,
    )


def make_customer(tenant, name="Customer", **extra):
    return Customer.objects.create(tenant=tenant, name=name, **extra)


def make_supplier(tenant, name="Supplier", **extra):
    return Supplier.objects.create(tenant=tenant, name=name, **extra)


def make_product(tenant, sku=None, unit_price="10.000", is_stocked=True, **extra):
    sku = sku or f"SKU-{uuid.uuid4().hex[:6].upper()}"
    return Product.objects.create(
        tenant=tenant,
        sku=sku,
        name=extra.pop("name", f"Product {sku}"),
        unit_price=Decimal(unit_price),
        is_stocked=is_stocked,
        **extra,
    )


def make_warehouse(tenant, code="MAIN"):
    return Warehouse.objects.create(tenant=tenant, code=code, name=f"Warehouse {code}")


def service_line(amount, quantity="1", tax_pct="0"):
    return {
        "description": "Service",
        "quantity": Decimal(quantity),
        "unit_price": Decimal(str(amount)),
        "tax_pct": Decimal(tax_pct),
    }


def product_line(product, quantity, unit_price=None, tax_pct="0"):
    line = {
        "product_id": product.id,
        "quantity": Decimal(str(quantity)),
        "tax_pct": Decimal(tax_pct),
    }
    if unit_price is not None:
        line["unit_price"] = Decimal(str(unit_price))
    return line


def make_document(tenant, *, kind=Kind.INVOICE, customer=None, supplier=None, lines=(), status=Status.VALIDATED, **fields):
    fields.setdefault("stamp_duty", Decimal("0"))
    return create_document(
        tenant=tenant,
        actor="tests@example.com",
        kind=kind,
        status=status,
        customer_id=customer.id if customer else None,
        supplier_id=supplier.id if supplier else None,
        lines=list(lines),
        **fields,
    )


def make_invoice(tenant, customer, amount, *, kind=Kind.INVOICE, status=Status.VALIDATED, **fields):
    """Validated invoice of exactly `amount` (one untaxed service line)."""
    return make_document(
        tenant,
        kind=kind,
        customer=customer,
        status=status,
        lines=[service_line(amount)],
        **fields,
    )
