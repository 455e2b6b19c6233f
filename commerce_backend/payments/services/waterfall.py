# payments/services/waterfall.py

"""
PAYMENT WATERFALL (sort-then-scan)

The authoritative way to derive "paid before" / "remaining" for every line
paying an invoice: sort the lines by payment date (oldest first, then
creation time, then line position) and accumulate.

Used by the payment allocator after every apply / edit / delete, and by the
conversion bridge to re-point lines from a provisional invoice to its
official replacement.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Sum

from documents.services.lifecycle import payment_status_for
from payments.models import PaymentLine


TWOPLACES = Decimal("0.01")


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def ordered_invoice_lines(invoice):
    return (
        PaymentLine.objects.select_related("payment")
        .filter(invoice=invoice)
        .order_by("payment__payment_date", "payment__created_at", "position", "id")
    )


def invoice_paid_amount(invoice) -> Decimal:
    """Sum of every payment line currently allocated to `invoice`."""
    paid = PaymentLine.objects.filter(invoice=invoice).aggregate(total=Sum("amount"))["total"]
    return _money(paid)


def recompute_invoice_waterfall(invoice, *, target=None) -> Decimal:
    """
    Rewrite amount_paid_before / remaining_balance of every line on `invoice`.

    With `target`, the lines are re-pointed to `target` (number and total
    snapshot included) while being recomputed against the target's total.
    Returns the cumulative amount paid.
    """
    total = _money((target or invoice).total_amount)
    cumulative = Decimal("0.00")

    for line in ordered_invoice_lines(invoice):
        line.amount_paid_before = cumulative
        cumulative = _money(cumulative + line.amount)
        line.remaining_balance = max(Decimal("0.00"), total - cumulative)

        fields = ["amount_paid_before", "remaining_balance"]
        if target is not None:
            line.invoice = target
            line.invoice_number = target.number
            line.invoice_total = total
            fields += ["invoice", "invoice_number", "invoice_total"]

        line.save(update_fields=fields)

    return cumulative


def refresh_invoice_status(invoice, *, paid=None):
    """Align the invoice status with what has been paid against it."""
    if invoice.status not in invoice.PAYABLE_STATUSES:
        return invoice

    paid = invoice_paid_amount(invoice) if paid is None else paid
    status = payment_status_for(total=invoice.total_amount, paid=paid)

    if status != invoice.status:
        invoice.status = status
        invoice.save(update_fields=["status", "updated_at"])

    return invoice
