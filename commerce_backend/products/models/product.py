# products/models/product.py

import uuid
from decimal import Decimal

from django.db import models


class Product(models.Model):
    """
    Catalogue entry referenced by document lines.

    STOCK MODEL:
    - Product itself does NOT store stock.
    - Stock is the sum of StockMovement rows (IN minus OUT).
    - is_stocked=False marks a service: it never produces movements.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="products",
    )

    sku = models.CharField(max_length=128, db_index=True)
    name = models.CharField(max_length=255, db_index=True)

    unit_price = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0"))
    tax_pct = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))

    is_stocked = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "sku"],
                name="uniq_product_sku_per_tenant",
            ),
        ]

    def __str__(self):
        return f"{self.sku} | {self.name}"
