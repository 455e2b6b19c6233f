# payments/services/allocation.py

"""
======================================================
PATH: payments/services/allocation.py
======================================================
PAYMENT ALLOCATOR

apply_payment / edit_payment / delete_payment, customer and supplier side.

Rules:
- A line either pays one invoice (amount > 0) or is on-account.
- Overpayment is rejected: paid before + this line may not exceed the invoice
  total (beyond PAYMENT_TOLERANCE) -> InconsistentAllocationError.
- advance_used may not exceed the counterparty's net advance balance.
- Deleting or editing a payment may not leave that balance negative.
- Every touched invoice gets its waterfall recomputed and its status
  refreshed (PAID / PARTIALLY_PAID / VALIDATED).

Each operation is one atomic unit: invoices are row-locked before their
paid amount is read, and any failure rolls the whole payment back.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from documents.models import CommercialDocument
from documents.services.exceptions import (
    DuplicateNumberError,
    InconsistentAllocationError,
    NotFoundError,
    ValidationFailedError,
)
from partners.models import Customer, Supplier
from payments.models import Payment, PaymentLine
from payments.services.waterfall import (
    recompute_invoice_waterfall,
    refresh_invoice_status,
)
from tenants.services.audit import log_action
from tenants.services.identifiers import normalize_identifier
from tenants.services.numbering import next_number


logger = logging.getLogger("payments")

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

Direction = Payment.Direction

NUMBERING_KEYS = {
    Direction.CUSTOMER: "payment_customer",
    Direction.SUPPLIER: "payment_supplier",
}


def _money(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _tolerance() -> Decimal:
    return Decimal(str(getattr(settings, "PAYMENT_TOLERANCE", "0.001")))


def _parse_amount(value, *, field_name: str) -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationFailedError(f"{field_name} is required")
    try:
        amount = _money(value)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationFailedError(f"{field_name} must be a number") from exc
    return amount


def _direction(value) -> str:
    direction = (value or "").upper().strip()
    if direction not in Direction.values:
        raise ValidationFailedError("direction must be CUSTOMER or SUPPLIER")
    return direction


def _counterparty_model(direction):
    return Customer if direction == Direction.CUSTOMER else Supplier


def _counterparty_filter(direction, counterparty) -> dict:
    key = "customer" if direction == Direction.CUSTOMER else "supplier"
    return {key: counterparty}


def _invoice_kinds(direction):
    if direction == Direction.CUSTOMER:
        return CommercialDocument.CUSTOMER_INVOICE_KINDS
    return CommercialDocument.SUPPLIER_INVOICE_KINDS


def get_counterparty(*, tenant, direction, counterparty_id):
    model = _counterparty_model(direction)
    pk = normalize_identifier(counterparty_id)
    counterparty = model.objects.filter(tenant=tenant, pk=pk).first() if pk else None
    if counterparty is None:
        logger.error(
            "Counterparty not found for payment",
            extra={"tenant_id": str(tenant.id), "direction": direction, "counterparty_id": str(counterparty_id)},
        )
        raise NotFoundError(f"{model.__name__} not found")
    return counterparty


def _parse_lines(lines) -> list[dict]:
    """
    Normalize raw line payloads to {"invoice_id", "amount", "on_account"}.
    """
    lines = list(lines or [])
    if not lines:
        raise ValidationFailedError("A payment needs at least one line")

    parsed = []
    for index, raw in enumerate(lines, start=1):
        on_account = bool(raw.get("on_account") or raw.get("is_on_account"))
        raw_invoice = raw.get("invoice_id") or raw.get("invoice")
        invoice_id = normalize_identifier(raw_invoice)

        if on_account and raw_invoice:
            raise ValidationFailedError(f"Line {index}: an on-account line cannot target an invoice")
        if not on_account and not invoice_id:
            raise ValidationFailedError(f"Line {index}: invoice_id is required unless the line is on-account")

        amount = _parse_amount(raw.get("amount"), field_name=f"Line {index} amount")
        if amount <= ZERO:
            raise ValidationFailedError(f"Line {index}: amount must be > 0")

        parsed.append({"invoice_id": invoice_id, "amount": amount, "on_account": on_account})

    return parsed


def _lock_invoices(*, tenant, direction, counterparty, invoice_ids) -> dict:
    """Row-lock and validate every invoice a payment wants to pay."""
    if not invoice_ids:
        return {}

    invoices = {
        str(inv.id): inv
        for inv in CommercialDocument.objects.select_for_update().filter(
            tenant=tenant, id__in=sorted(invoice_ids)
        )
    }

    for invoice_id in invoice_ids:
        invoice = invoices.get(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.kind not in _invoice_kinds(direction):
            raise ValidationFailedError(f"Document {invoice.number} is not a payable invoice")
        if invoice.counterparty_id != counterparty.id:
            raise ValidationFailedError(f"Invoice {invoice.number} belongs to another counterparty")
        if invoice.archived:
            raise ValidationFailedError(
                f"Invoice {invoice.number} is archived (converted); pay the official invoice instead"
            )
        if invoice.status not in CommercialDocument.PAYABLE_STATUSES:
            raise ValidationFailedError(
                f"Invoice {invoice.number} is {invoice.status}; only validated invoices can be paid"
            )
        if _money(invoice.total_amount) <= ZERO:
            raise ValidationFailedError(f"Invoice {invoice.number} has no positive total to pay")

    return invoices


def _paid_on_invoice(invoice, *, exclude_payment=None) -> Decimal:
    qs = PaymentLine.objects.filter(invoice=invoice)
    if exclude_payment is not None:
        qs = qs.exclude(payment=exclude_payment)
    return _money(qs.aggregate(total=Sum("amount"))["total"])


def net_advance_balance(*, tenant, direction, counterparty, exclude_payment=None) -> Decimal:
    """
    On-account credit still available: on-account contributions minus
    advance consumed. Informational; never deducted from invoice balances.
    """
    payments = Payment.objects.filter(tenant=tenant, direction=direction, **_counterparty_filter(direction, counterparty))
    if exclude_payment is not None:
        payments = payments.exclude(pk=exclude_payment.pk)

    contributed = PaymentLine.objects.filter(payment__in=payments, is_on_account=True).aggregate(
        total=Sum("amount")
    )["total"]
    used = payments.aggregate(total=Sum("advance_used"))["total"]
    return _money(contributed) - _money(used)


def _build_lines(*, payment, parsed, invoices) -> list[PaymentLine]:
    """Create the payment's lines with their waterfall position at creation."""
    tolerance = _tolerance()
    allocated_in_payment: dict[str, Decimal] = {}
    created = []

    for position, item in enumerate(parsed):
        if item["on_account"]:
            created.append(
                PaymentLine.objects.create(
                    payment=payment,
                    position=position,
                    amount=item["amount"],
                    is_on_account=True,
                )
            )
            continue

        invoice = invoices[item["invoice_id"]]
        total = _money(invoice.total_amount)
        paid_before = _paid_on_invoice(invoice, exclude_payment=payment) + allocated_in_payment.get(
            item["invoice_id"], ZERO
        )

        if paid_before + item["amount"] > total + tolerance:
            logger.error(
                "Payment line exceeds invoice balance",
                extra={
                    "invoice_id": item["invoice_id"],
                    "invoice_total": str(total),
                    "paid_before": str(paid_before),
                    "amount": str(item["amount"]),
                },
            )
            raise InconsistentAllocationError(
                f"Payment of {item['amount']} exceeds the remaining balance "
                f"{max(ZERO, total - paid_before)} of invoice {invoice.number}"
            )

        allocated_in_payment[item["invoice_id"]] = allocated_in_payment.get(item["invoice_id"], ZERO) + item["amount"]

        created.append(
            PaymentLine.objects.create(
                payment=payment,
                position=position,
                invoice=invoice,
                invoice_number=invoice.number,
                invoice_total=total,
                amount_paid_before=paid_before,
                amount=item["amount"],
                remaining_balance=max(ZERO, total - paid_before - item["amount"]),
            )
        )

    return created


def _check_advance(*, tenant, direction, counterparty, parsed, advance_used, exclude_payment=None):
    if advance_used < ZERO:
        raise ValidationFailedError("advance_used cannot be negative")
    if advance_used == ZERO:
        return

    invoice_total = sum((i["amount"] for i in parsed if not i["on_account"]), ZERO)
    if advance_used > invoice_total:
        raise ValidationFailedError("advance_used cannot exceed the amount allocated to invoices")

    available = net_advance_balance(
        tenant=tenant,
        direction=direction,
        counterparty=counterparty,
        exclude_payment=exclude_payment,
    )
    if advance_used > available + _tolerance():
        raise ValidationFailedError(
            f"advance_used {advance_used} exceeds the available on-account balance {available}"
        )


def _check_credit_kept(*, tenant, direction, counterparty, payment, parsed=(), advance_used=ZERO):
    """
    Refuse to drop on-account credit that later payments already consumed
    through advance_used. `parsed`/`advance_used` describe what `payment`
    becomes; empty means it goes away.
    """
    remaining = net_advance_balance(
        tenant=tenant,
        direction=direction,
        counterparty=counterparty,
        exclude_payment=payment,
    )
    remaining += sum((i["amount"] for i in parsed if i["on_account"]), ZERO) - advance_used
    if remaining < -_tolerance():
        logger.error(
            "On-account credit already consumed",
            extra={"payment_id": str(payment.id), "advance_balance_after": str(remaining)},
        )
        raise InconsistentAllocationError(
            f"Payment {payment.number} funds on-account credit already used by other payments "
            f"(balance would be {remaining})"
        )


def _settle_invoices(invoices):
    for invoice in invoices:
        paid = recompute_invoice_waterfall(invoice)
        refresh_invoice_status(invoice, paid=paid)


def _allocate_number(*, tenant, direction, payment_date) -> str:
    key = NUMBERING_KEYS[direction]
    for _ in range(10):
        number = next_number(tenant=tenant, key=key, on_date=payment_date)
        if not Payment.objects.filter(tenant=tenant, direction=direction, number=number).exists():
            return number
    raise DuplicateNumberError(f"Could not allocate a free payment number for sequence '{key}'")


@transaction.atomic
def apply_payment(
    *,
    tenant,
    direction,
    counterparty_id,
    lines,
    payment_date=None,
    method: str = Payment.Method.CASH,
    reference: str = "",
    advance_used=0,
    notes: str = "",
    number: str | None = None,
    actor: str = "",
) -> Payment:
    """
    CREATE PAYMENT (atomic)
    """
    direction = _direction(direction)

    logger.info(
        "Initiating payment",
        extra={
            "tenant_id": str(tenant.id),
            "direction": direction,
            "counterparty_id": str(counterparty_id),
            "line_count": len(lines or []),
        },
    )

    counterparty = get_counterparty(tenant=tenant, direction=direction, counterparty_id=counterparty_id)
    parsed = _parse_lines(lines)
    advance = _parse_amount(advance_used or 0, field_name="advance_used")

    if method not in Payment.Method.values:
        raise ValidationFailedError(f"Unknown payment method '{method}'")

    invoice_ids = {i["invoice_id"] for i in parsed if not i["on_account"]}
    invoices = _lock_invoices(tenant=tenant, direction=direction, counterparty=counterparty, invoice_ids=invoice_ids)

    _check_advance(tenant=tenant, direction=direction, counterparty=counterparty, parsed=parsed, advance_used=advance)

    pay_date = payment_date or timezone.localdate()
    number = (number or "").strip()
    if number:
        if Payment.objects.filter(tenant=tenant, direction=direction, number=number).exists():
            raise DuplicateNumberError(f"Payment number {number} already exists")
    else:
        number = _allocate_number(tenant=tenant, direction=direction, payment_date=pay_date)

    payment = Payment.objects.create(
        tenant=tenant,
        direction=direction,
        number=number,
        payment_date=pay_date,
        method=method,
        reference=reference or "",
        total_amount=sum((i["amount"] for i in parsed), ZERO),
        is_on_account=all(i["on_account"] for i in parsed),
        advance_used=advance,
        notes=notes or "",
        created_by=actor or "",
        **_counterparty_filter(direction, counterparty),
    )

    _build_lines(payment=payment, parsed=parsed, invoices=invoices)
    _settle_invoices(invoices.values())

    logger.info(
        "Payment recorded",
        extra={
            "payment_id": str(payment.id),
            "number": payment.number,
            "total_amount": str(payment.total_amount),
            "advance_used": str(payment.advance_used),
            "invoice_count": len(invoices),
        },
    )
    log_action(
        tenant=tenant,
        actor=actor,
        action="PAYMENT_CREATED",
        area="payments",
        message=f"Payment {payment.number} recorded ({payment.total_amount})",
        metadata={"payment_id": str(payment.id), "invoices": sorted(invoices)},
    )
    return payment


def get_payment(*, tenant, payment_id, lock=False) -> Payment:
    pk = normalize_identifier(payment_id)
    qs = Payment.objects.filter(tenant=tenant)
    if lock:
        qs = qs.select_for_update()
    payment = qs.filter(pk=pk).first() if pk else None
    if payment is None:
        raise NotFoundError("Payment not found")
    return payment


def _touched_invoices(payment) -> list:
    ids = payment.lines.filter(invoice__isnull=False).values_list("invoice_id", flat=True)
    return list(CommercialDocument.objects.select_for_update().filter(id__in=list(ids)).order_by("id"))


@transaction.atomic
def edit_payment(
    *,
    tenant,
    payment_id,
    lines,
    advance_used=None,
    payment_date=None,
    method=None,
    reference=None,
    notes=None,
    actor: str = "",
) -> Payment:
    """
    REWRITE PAYMENT LINES (atomic)

    The old allocation is dropped, the new one validated against what the
    other payments already cover, then every invoice touched before or after
    is recomputed.
    """
    payment = get_payment(tenant=tenant, payment_id=payment_id, lock=True)
    direction = payment.direction
    counterparty = payment.counterparty

    previous_invoices = _touched_invoices(payment)
    parsed = _parse_lines(lines)

    advance = payment.advance_used if advance_used is None else _parse_amount(advance_used, field_name="advance_used")

    invoice_ids = {i["invoice_id"] for i in parsed if not i["on_account"]}
    invoices = _lock_invoices(tenant=tenant, direction=direction, counterparty=counterparty, invoice_ids=invoice_ids)

    _check_advance(
        tenant=tenant,
        direction=direction,
        counterparty=counterparty,
        parsed=parsed,
        advance_used=advance,
        exclude_payment=payment,
    )
    _check_credit_kept(
        tenant=tenant,
        direction=direction,
        counterparty=counterparty,
        payment=payment,
        parsed=parsed,
        advance_used=advance,
    )

    if method is not None and method not in Payment.Method.values:
        raise ValidationFailedError(f"Unknown payment method '{method}'")

    payment.lines.all().delete()

    if payment_date is not None:
        payment.payment_date = payment_date
    if method is not None:
        payment.method = method
    if reference is not None:
        payment.reference = reference
    if notes is not None:
        payment.notes = notes
    payment.advance_used = advance
    payment.total_amount = sum((i["amount"] for i in parsed), ZERO)
    payment.is_on_account = all(i["on_account"] for i in parsed)
    payment.save()

    _build_lines(payment=payment, parsed=parsed, invoices=invoices)

    affected = {str(inv.id): inv for inv in previous_invoices}
    affected.update(invoices)
    _settle_invoices(affected.values())

    logger.info(
        "Payment edited",
        extra={
            "payment_id": str(payment.id),
            "total_amount": str(payment.total_amount),
            "invoice_count": len(affected),
        },
    )
    log_action(
        tenant=tenant,
        actor=actor,
        action="PAYMENT_UPDATED",
        area="payments",
        message=f"Payment {payment.number} re-allocated ({payment.total_amount})",
        metadata={"payment_id": str(payment.id), "invoices": sorted(affected)},
    )
    return payment


@transaction.atomic
def delete_payment(*, tenant, payment_id, actor: str = "") -> dict:
    """
    DELETE PAYMENT (atomic)

    Every invoice it touched falls back to what the remaining payments pay,
    and the on-account credit it created or consumed disappears with it.
    Credit another payment already spent cannot be deleted.
    """
    payment = get_payment(tenant=tenant, payment_id=payment_id, lock=True)
    invoices = _touched_invoices(payment)
    _check_credit_kept(tenant=tenant, direction=payment.direction, counterparty=payment.counterparty, payment=payment)

    result = {
        "payment_id": str(payment.id),
        "number": payment.number,
        "total_amount": str(payment.total_amount),
        "invoice_ids": [str(inv.id) for inv in invoices],
    }

    payment.delete()
    _settle_invoices(invoices)

    logger.info("Payment deleted", extra=result)
    log_action(
        tenant=tenant,
        actor=actor,
        action="PAYMENT_DELETED",
        area="payments",
        message=f"Payment {result['number']} deleted",
        metadata=result,
    )
    return result
