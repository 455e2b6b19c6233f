# balances/services/balance_service.py

"""
======================================================
PATH: balances/services/balance_service.py
======================================================
BALANCE & AGING AGGREGATOR (READ-ONLY)

What each customer owes us / what we owe each supplier, as of a date.

RULES:
- READ-ONLY: no writes, ever
- every non-archived counterparty of the tenant gets an entry, zero or not
- cancelled and archived (converted) documents never count
- remaining = invoice total - invoice-targeted payment lines (sign kept)
- only remaining > 0 is aged and itemized; every remaining feeds balance_due
- credit notes are subtracted after aging and are never aged themselves
- net advance is informational and NEVER subtracted from balance_due
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Sum
from django.utils import timezone

from documents.models import CommercialDocument
from documents.services.exceptions import NotFoundError, ValidationFailedError
from documents.services.terms import AGING_BUCKETS, _as_date, aging_bucket
from partners.models import Customer, Supplier
from payments.models import Payment, PaymentLine
from tenants.services.identifiers import normalize_identifier


logger = logging.getLogger("balances")

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")

Kind = CommercialDocument.Kind
Status = CommercialDocument.Status
Direction = Payment.Direction

INVOICE_KINDS = {
    Direction.CUSTOMER: CommercialDocument.CUSTOMER_INVOICE_KINDS,
    Direction.SUPPLIER: CommercialDocument.SUPPLIER_INVOICE_KINDS,
}
CREDIT_KINDS = {
    Direction.CUSTOMER: frozenset({Kind.CREDIT_NOTE}),
    Direction.SUPPLIER: frozenset({Kind.SUPPLIER_CREDIT_NOTE}),
}


def _q2(v) -> Decimal:
    return Decimal(str(v or "0.00")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _direction(value) -> str:
    direction = (value or Direction.CUSTOMER).upper().strip()
    if direction not in Direction.values:
        raise ValidationFailedError("direction must be CUSTOMER or SUPPLIER")
    return direction


def _partner_field(direction) -> str:
    return "customer" if direction == Direction.CUSTOMER else "supplier"


def _partner_model(direction):
    return Customer if direction == Direction.CUSTOMER else Supplier


# =====================================================
# RESULT TYPES
# =====================================================

@dataclass
class OpenInvoice:
    invoice_id: str
    number: str
    kind: str
    date: date
    due_date: date | None
    total: Decimal
    paid: Decimal
    remaining: Decimal
    bucket: str
    days_past_due: int

    def as_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "number": self.number,
            "kind": self.kind,
            "date": self.date.isoformat() if self.date else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "total": str(self.total),
            "paid": str(self.paid),
            "remaining": str(self.remaining),
            "bucket": self.bucket,
            "days_past_due": self.days_past_due,
        }


@dataclass
class CounterpartyBalance:
    counterparty_id: str
    name: str
    direction: str
    balance_due: Decimal = ZERO
    buckets: dict = field(default_factory=lambda: {bucket: ZERO for bucket in AGING_BUCKETS})
    open_invoices: list = field(default_factory=list)
    credit_notes_total: Decimal = ZERO
    net_advance_balance: Decimal = ZERO

    def as_dict(self) -> dict:
        return {
            "counterparty_id": self.counterparty_id,
            "name": self.name,
            "direction": self.direction,
            "balance_due": str(self.balance_due),
            "buckets": {bucket: str(amount) for bucket, amount in self.buckets.items()},
            "open_invoices": [inv.as_dict() for inv in self.open_invoices],
            "credit_notes_total": str(self.credit_notes_total),
            "net_advance_balance": str(self.net_advance_balance),
        }


def _sort_key(balance: CounterpartyBalance):
    """Positive descending, then zero, then negative least-negative first."""
    amount = balance.balance_due
    if amount > 0:
        return (0, -amount, balance.name)
    if amount == 0:
        return (1, ZERO, balance.name)
    return (2, -amount, balance.name)


# =====================================================
# QUERIES
# =====================================================

def _counterparties(*, tenant, direction, counterparty_id=None):
    model = _partner_model(direction)
    qs = model.objects.filter(tenant=tenant)

    if counterparty_id is not None:
        pk = normalize_identifier(counterparty_id)
        counterparty = qs.filter(pk=pk).first() if pk else None
        if counterparty is None:
            raise NotFoundError(f"{model.__name__} not found")
        return [counterparty]

    return list(qs.filter(is_archived=False).order_by("name", "created_at"))


def _documents(*, tenant, direction, kinds, counterparty_id=None):
    qs = (
        CommercialDocument.objects.filter(tenant=tenant, kind__in=kinds, archived=False)
        .exclude(status=Status.CANCELLED)
        .exclude(**{f"{_partner_field(direction)}__isnull": True})
        .order_by("date", "created_at")
    )
    if counterparty_id is not None:
        qs = qs.filter(**{f"{_partner_field(direction)}_id": counterparty_id})
    return qs


def _paid_per_invoice(invoice_ids) -> dict:
    rows = (
        PaymentLine.objects.filter(invoice_id__in=invoice_ids, is_on_account=False)
        .values("invoice_id")
        .annotate(total=Sum("amount"))
    )
    return {row["invoice_id"]: _q2(row["total"]) for row in rows}


def _net_advance_per_counterparty(*, tenant, direction, counterparty_id=None) -> dict:
    partner_field = _partner_field(direction)
    payments = Payment.objects.filter(tenant=tenant, direction=direction)
    if counterparty_id is not None:
        payments = payments.filter(**{f"{partner_field}_id": counterparty_id})

    contributed = (
        PaymentLine.objects.filter(payment__in=payments, is_on_account=True)
        .values(f"payment__{partner_field}_id")
        .annotate(total=Sum("amount"))
    )
    used = payments.values(f"{partner_field}_id").annotate(total=Sum("advance_used"))

    result = defaultdict(lambda: ZERO)
    for row in contributed:
        result[row[f"payment__{partner_field}_id"]] += _q2(row["total"])
    for row in used:
        result[row[f"{partner_field}_id"]] -= _q2(row["total"])
    return result


# =====================================================
# AGGREGATION
# =====================================================

def compute_balances(
    *,
    tenant,
    direction: str = Direction.CUSTOMER,
    counterparty_id=None,
    reference_date=None,
) -> list[CounterpartyBalance]:
    """
    One CounterpartyBalance per counterparty, sorted for presentation.

    With counterparty_id only that counterparty is returned (archived or not);
    an unknown id raises NotFoundError.
    """
    direction = _direction(direction)
    ref = _as_date(reference_date) or timezone.localdate()
    partner_field = _partner_field(direction)

    counterparties = _counterparties(tenant=tenant, direction=direction, counterparty_id=counterparty_id)
    scope_id = counterparties[0].pk if counterparty_id is not None else None

    balances: dict = {
        cp.pk: CounterpartyBalance(counterparty_id=str(cp.pk), name=cp.display_name, direction=direction)
        for cp in counterparties
    }

    def _entry(document) -> CounterpartyBalance:
        cp_id = getattr(document, f"{partner_field}_id")
        if cp_id not in balances:
            # archived counterparty still carrying documents
            cp = getattr(document, partner_field)
            balances[cp_id] = CounterpartyBalance(
                counterparty_id=str(cp_id), name=cp.display_name, direction=direction
            )
        return balances[cp_id]

    invoices = list(
        _documents(
            tenant=tenant,
            direction=direction,
            kinds=INVOICE_KINDS[direction],
            counterparty_id=scope_id,
        ).select_related(partner_field)
    )
    paid = _paid_per_invoice([inv.pk for inv in invoices])
    credit_per_counterparty = defaultdict(lambda: ZERO)

    for invoice in invoices:
        total = _q2(invoice.total_amount)
        if total < 0:
            # negative invoice behaves as a credit note
            credit_per_counterparty[getattr(invoice, f"{partner_field}_id")] += abs(total)
            _entry(invoice)
            continue

        entry = _entry(invoice)
        invoice_paid = paid.get(invoice.pk, ZERO)
        remaining = total - invoice_paid
        entry.balance_due += remaining

        if remaining <= 0:
            continue

        aging = aging_bucket(invoice.due_date, ref)
        entry.buckets[aging.bucket] += remaining
        entry.open_invoices.append(
            OpenInvoice(
                invoice_id=str(invoice.pk),
                number=invoice.number,
                kind=invoice.kind,
                date=invoice.date,
                due_date=invoice.due_date,
                total=total,
                paid=invoice_paid,
                remaining=remaining,
                bucket=aging.bucket,
                days_past_due=aging.days_past_due,
            )
        )

    credit_notes = _documents(
        tenant=tenant,
        direction=direction,
        kinds=CREDIT_KINDS[direction],
        counterparty_id=scope_id,
    ).select_related(partner_field)
    for note in credit_notes:
        _entry(note)
        credit_per_counterparty[getattr(note, f"{partner_field}_id")] += abs(_q2(note.total_amount))

    for cp_id, credit in credit_per_counterparty.items():
        entry = balances[cp_id]
        entry.credit_notes_total = _q2(credit)
        entry.balance_due -= credit

    advances = _net_advance_per_counterparty(tenant=tenant, direction=direction, counterparty_id=scope_id)
    for cp_id, entry in balances.items():
        entry.balance_due = _q2(entry.balance_due)
        entry.net_advance_balance = _q2(advances.get(cp_id, ZERO))

    result = sorted(balances.values(), key=_sort_key)

    logger.info(
        "Balances computed",
        extra={
            "tenant_id": str(tenant.id),
            "direction": direction,
            "counterparties": len(result),
            "reference_date": ref.isoformat(),
        },
    )
    return result


def balances_total(balances) -> Decimal:
    """What is actually owed: positive balances only."""
    return _q2(sum((b.balance_due for b in balances if b.balance_due > 0), ZERO))


# =====================================================
# STATEMENT
# =====================================================

def counterparty_statement(*, tenant, direction: str, counterparty_id, reference_date=None) -> dict:
    """
    Chronological account of one counterparty with a running balance.

    Invoices add their total, credit notes subtract their absolute value and
    payments subtract the fresh money they brought (total - advance used),
    so credit consumed from an earlier on-account payment is not counted twice.
    """
    direction = _direction(direction)
    ref = _as_date(reference_date) or timezone.localdate()
    partner_field = _partner_field(direction)
    counterparty = _counterparties(tenant=tenant, direction=direction, counterparty_id=counterparty_id)[0]

    entries = []

    documents = _documents(
        tenant=tenant,
        direction=direction,
        kinds=INVOICE_KINDS[direction] | CREDIT_KINDS[direction],
        counterparty_id=counterparty.pk,
    ).filter(date__lte=ref)
    for document in documents:
        amount = _q2(document.total_amount)
        if document.kind in CREDIT_KINDS[direction]:
            amount = -abs(amount)
        entries.append(
            {
                "date": document.date,
                "type": document.kind,
                "reference": document.number,
                "amount": amount,
                "_order": document.created_at,
            }
        )

    payments = Payment.objects.filter(
        tenant=tenant,
        direction=direction,
        payment_date__lte=ref,
        **{f"{partner_field}_id": counterparty.pk},
    )
    for payment in payments:
        entries.append(
            {
                "date": payment.payment_date,
                "type": "PAYMENT",
                "reference": payment.number,
                "amount": -_q2(payment.fresh_amount),
                "_order": payment.created_at,
            }
        )

    entries.sort(key=lambda e: (e["date"], e["_order"]))

    running = ZERO
    lines = []
    for entry in entries:
        running = _q2(running + entry["amount"])
        lines.append(
            {
                "date": entry["date"].isoformat(),
                "type": entry["type"],
                "reference": entry["reference"],
                "amount": str(entry["amount"]),
                "balance": str(running),
            }
        )

    return {
        "counterparty_id": str(counterparty.pk),
        "name": counterparty.display_name,
        "direction": direction,
        "reference_date": ref.isoformat(),
        "entries": lines,
        "closing_balance": str(running),
    }
