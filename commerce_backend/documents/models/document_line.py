# documents/models/document_line.py

import uuid
from decimal import Decimal

from django.db import models


class DocumentLine(models.Model):
    """
    One line of a commercial document.

    quantity is signed (credit notes carry negative quantities). product is
    optional: service / free-text lines have none and never touch stock.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    document = models.ForeignKey(
        "documents.CommercialDocument",
        on_delete=models.CASCADE,
        related_name="lines",
    )
    position = models.PositiveIntegerField(default=0)

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="document_lines",
    )
    description = models.CharField(max_length=255, blank=True, default="")

    quantity = models.DecimalField(max_digits=14, decimal_places=3)
    unit_price = models.DecimalField(max_digits=14, decimal_places=3, default=Decimal("0"))
    discount_pct = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    tax_pct = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    levy_pct = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    # Delivery notes: what actually left (reduced by returns).
    delivered_quantity = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)

    class Meta:
        ordering = ["position", "id"]
        indexes = [
            models.Index(fields=["document", "position"]),
        ]

    def __str__(self):
        label = self.description or getattr(self.product, "name", "") or "line"
        return f"{label} x {self.quantity}"
