# products/models/stock_movement.py

"""
INVENTORY LEDGER ENTRY

One row = one inventory change caused by one document for one product.

GUARANTEES:
- At most one movement per (tenant, product, source_kind, source_id).
  It is created on first need and then updated in place by the stock
  synchronizer, never duplicated.
- quantity is always positive; direction lives in movement_type.
- Owned by the originating document: removed when the line or the document
  goes away.
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        IN = "IN", "Stock In"
        OUT = "OUT", "Stock Out"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="stock_movements",
    )
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.CASCADE,
        related_name="stock_movements",
    )
    warehouse = models.ForeignKey(
        "products.Warehouse",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    movement_type = models.CharField(max_length=3, choices=MovementType.choices)
    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    date = models.DateField()

    # Originating document: its kind and its id (string form of the UUID).
    source_kind = models.CharField(max_length=30)
    source_id = models.CharField(max_length=64)

    note = models.CharField(max_length=255, blank=True, default="")
    created_by = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "product", "source_kind", "source_id"],
                name="uniq_stock_movement_per_source_product",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="stock_movement_quantity_positive",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "source_kind", "source_id"]),
            models.Index(fields=["product", "date"]),
        ]

    def clean(self):
        if self.quantity is None or Decimal(self.quantity) <= 0:
            raise ValidationError("quantity must be greater than zero")

    def save(self, *args, **kwargs):
        self.full_clean(validate_constraints=False)
        return super().save(*args, **kwargs)

    @property
    def signed_quantity(self) -> Decimal:
        qty = Decimal(self.quantity or 0)
        return qty if self.movement_type == self.MovementType.IN else -qty

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | {self.movement_type} {self.quantity} | {self.source_kind}:{self.source_id}"
