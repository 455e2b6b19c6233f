# payments/models/payment.py

import uuid
from decimal import Decimal

from django.db import models


class Payment(models.Model):
    """
    Money received from a customer (CUSTOMER) or paid to a supplier (SUPPLIER).

    The amount is split over PaymentLine rows: each line pays one invoice or
    is on-account (banked as counterparty credit).

    advance_used is the part of previously banked on-account credit this
    payment consumed to pay invoices; it is not fresh money.
    """

    class Direction(models.TextChoices):
        CUSTOMER = "CUSTOMER", "Customer payment (received)"
        SUPPLIER = "SUPPLIER", "Supplier payment (issued)"

    class Method(models.TextChoices):
        CASH = "CASH", "Cash"
        CHECK = "CHECK", "Check"
        TRANSFER = "TRANSFER", "Bank transfer"
        CARD = "CARD", "Card"
        BILL = "BILL", "Bill of exchange"
        OTHER = "OTHER", "Other"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="payments",
    )
    direction = models.CharField(max_length=10, choices=Direction.choices)

    customer = models.ForeignKey(
        "partners.Customer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )
    supplier = models.ForeignKey(
        "partners.Supplier",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payments",
    )

    number = models.CharField(max_length=64)
    payment_date = models.DateField()
    method = models.CharField(max_length=10, choices=Method.choices, default=Method.CASH)
    reference = models.CharField(max_length=255, blank=True, default="")

    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    is_on_account = models.BooleanField(default=False)
    advance_used = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    notes = models.TextField(blank=True, default="")
    created_by = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-payment_date", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "direction", "number"],
                name="uniq_payment_number_per_tenant_direction",
            ),
            models.CheckConstraint(
                condition=models.Q(advance_used__gte=0),
                name="payment_advance_used_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "direction", "payment_date"]),
        ]

    @property
    def counterparty(self):
        return self.customer if self.direction == self.Direction.CUSTOMER else self.supplier

    @property
    def counterparty_id(self):
        return self.customer_id if self.direction == self.Direction.CUSTOMER else self.supplier_id

    @property
    def fresh_amount(self) -> Decimal:
        """Money that actually changed hands with this payment."""
        return Decimal(self.total_amount or 0) - Decimal(self.advance_used or 0)

    def __str__(self):
        return f"{self.number} | {self.total_amount}"
