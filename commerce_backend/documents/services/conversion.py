# documents/services/conversion.py

"""
======================================================
PATH: documents/services/conversion.py
======================================================
DOCUMENT CONVERSION BRIDGE

Internal (provisional) invoice -> official invoice.

Guarantees (single transaction, provisional row locked):
- at most one official invoice per provisional one (AlreadyConvertedError)
- the official number follows the last official invoice number
- totals are recomputed from the copied lines, dated today, VALIDATED
- payment lines are re-pointed with a fresh waterfall, nothing is
  counted twice
- the provisional document ends archived with an audit note
- stock is synchronized for the official invoice
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from documents.models import CommercialDocument, DocumentLine
from documents.services.exceptions import (
    AlreadyConvertedError,
    DuplicateNumberError,
    NotFoundError,
)
from documents.services.terms import resolve_due_date
from documents.services.totals import apply_totals
from payments.services.waterfall import recompute_invoice_waterfall, refresh_invoice_status
from products.services.stock_sync import sync_movements_for_document
from tenants.services.audit import log_action
from tenants.services.identifiers import normalize_identifier
from tenants.services.numbering import advance_past, next_number, next_number_after


logger = logging.getLogger("documents")

Kind = CommercialDocument.Kind
Status = CommercialDocument.Status

LINE_FIELDS = (
    "position",
    "product_id",
    "description",
    "quantity",
    "unit_price",
    "discount_pct",
    "tax_pct",
    "levy_pct",
    "delivered_quantity",
)


def _number_taken(*, tenant, number) -> bool:
    return CommercialDocument.objects.filter(tenant=tenant, kind=Kind.INVOICE, number=number).exists()


def _official_number(*, tenant, on_date) -> str:
    """
    Increment the last official invoice number; fall back to the sequence
    when there is none or it has no numeric suffix.
    """
    last = (
        CommercialDocument.objects.filter(tenant=tenant, kind=Kind.INVOICE)
        .order_by("-created_at", "-number")
        .values_list("number", flat=True)
        .first()
    )

    candidate = next_number_after(last)
    while candidate and _number_taken(tenant=tenant, number=candidate):
        candidate = next_number_after(candidate)
    if candidate:
        return candidate

    for _ in range(10):
        candidate = next_number(tenant=tenant, key="invoice", on_date=on_date)
        if not _number_taken(tenant=tenant, number=candidate):
            return candidate

    raise DuplicateNumberError("Could not allocate a free official invoice number")


@transaction.atomic
def convert_provisional_to_official(*, tenant, provisional_id, actor: str = "") -> CommercialDocument:
    pk = normalize_identifier(provisional_id)
    provisional = (
        CommercialDocument.objects.select_for_update()
        .filter(tenant=tenant, kind=Kind.INTERNAL_INVOICE, pk=pk)
        .first()
        if pk
        else None
    )
    if provisional is None:
        raise NotFoundError("Internal invoice not found")

    already = provisional.linked_from.filter(kind=Kind.INVOICE).first()
    if already is not None:
        raise AlreadyConvertedError(
            f"Internal invoice {provisional.number} was already converted to {already.number}"
        )

    today = timezone.localdate()
    number = _official_number(tenant=tenant, on_date=today)
    advance_past(tenant=tenant, key="invoice", number=number)

    official = CommercialDocument(
        tenant=tenant,
        kind=Kind.INVOICE,
        number=number,
        status=Status.VALIDATED,
        date=today,
        customer_id=provisional.customer_id,
        warehouse_id=provisional.warehouse_id,
        global_discount_pct=provisional.global_discount_pct,
        levy_enabled=provisional.levy_enabled,
        levy_rate_pct=provisional.levy_rate_pct,
        stamp_duty=provisional.stamp_duty,
        payment_terms=provisional.payment_terms,
        currency=provisional.currency,
        notes=provisional.notes,
        created_by=actor or "",
    )

    lines = [
        DocumentLine(document=official, **{field: getattr(line, field) for field in LINE_FIELDS})
        for line in provisional.lines.all()
    ]

    apply_totals(official, lines)
    official.due_date = resolve_due_date(official.date, official.payment_terms)
    official.save()
    DocumentLine.objects.bulk_create(lines)
    official.linked_documents.add(provisional)

    transferred = recompute_invoice_waterfall(provisional, target=official)
    refresh_invoice_status(official, paid=transferred)

    note = (
        f"[Converted to official invoice {official.number} on {today.isoformat()}] - "
        f"Payments transferred ({transferred} {official.currency})"
    )
    provisional.internal_notes = f"{provisional.internal_notes}\n{note}".strip()
    provisional.archived = True
    provisional.save(update_fields=["internal_notes", "archived", "updated_at"])

    stock = sync_movements_for_document(official, actor=actor)

    logger.info(
        "Internal invoice converted",
        extra={
            "provisional_id": str(provisional.id),
            "official_id": str(official.id),
            "number": official.number,
            "payments_transferred": str(transferred),
            "stock_created": stock["created"],
        },
    )
    log_action(
        tenant=tenant,
        actor=actor,
        action="DOCUMENT_CONVERTED",
        area="documents",
        message=f"Internal invoice {provisional.number} converted to invoice {official.number}",
        metadata={
            "provisional_id": str(provisional.id),
            "official_id": str(official.id),
            "payments_transferred": str(transferred),
        },
    )
    return official
