# payments/models/payment_line.py

import uuid
from decimal import Decimal

from django.db import models


class PaymentLine(models.Model):
    """
    One allocation of a payment.

    Invoice line: invoice set, is_on_account False. amount_paid_before and
    remaining_balance are the waterfall position of this line among all
    lines paying the same invoice (oldest payment first).

    On-account line: no invoice, contributes to the counterparty's credit.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.CASCADE,
        related_name="lines",
    )
    position = models.PositiveIntegerField(default=0)

    invoice = models.ForeignKey(
        "documents.CommercialDocument",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_lines",
    )
    invoice_number = models.CharField(max_length=64, blank=True, default="")
    invoice_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    amount_paid_before = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    remaining_balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    is_on_account = models.BooleanField(default=False)

    class Meta:
        ordering = ["position", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_line_amount_positive",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(is_on_account=True, invoice__isnull=True)
                    | models.Q(is_on_account=False, invoice__isnull=False)
                ),
                name="payment_line_invoice_xor_on_account",
            ),
        ]
        indexes = [
            models.Index(fields=["invoice"]),
        ]

    def __str__(self):
        target = self.invoice_number or "on account"
        return f"{target} | {self.amount}"
