# products/services/stock_sync.py

"""
======================================================
PATH: products/services/stock_sync.py
======================================================
STOCK LEDGER SYNCHRONIZER

Keeps StockMovement rows equal to the *current* lines of a document:
exactly one movement per (tenant, product, source kind, source id).

Modes:
- create  (previous_lines=None): one movement per stocked product line with
  a positive quantity, updated in place if it already exists.
- update  (previous_lines given): every product of the before/after diff is
  reconciled; removed, zeroed, unknown or now non-stocked products lose their
  movement, the others are updated in place or created.
- delete: every movement of the document goes.
- returns: IN movements plus the delivered-quantity adjustment on the
  originating delivery note (apply_return).

Failure semantics:
- Each product is reconciled in its own savepoint. A failure is logged with
  the document / product ids and does not stop the remaining lines; the next
  sync of the document reconciles it.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Q, Sum

from documents.models import CommercialDocument
from products.models import Product, StockMovement
from products.services.line_diff import diff_lines, snapshot_lines
from tenants.services.identifiers import normalize_identifier


logger = logging.getLogger("stock")

Kind = CommercialDocument.Kind

OUT_KINDS = frozenset({Kind.INVOICE, Kind.DELIVERY_NOTE, Kind.PURCHASE_RETURN})
IN_KINDS = frozenset({Kind.GOODS_RECEIPT, Kind.PURCHASE_INVOICE, Kind.SALES_RETURN})

# invoice kind -> dispatch document that may already have moved the goods
DISPATCH_KIND_FOR = {
    Kind.INVOICE: Kind.DELIVERY_NOTE,
    Kind.PURCHASE_INVOICE: Kind.GOODS_RECEIPT,
}

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
UNCHANGED = "unchanged"
SKIPPED = "skipped"
FAILED = "failed"


def movement_type_for(kind: str) -> str | None:
    if kind in OUT_KINDS:
        return StockMovement.MovementType.OUT
    if kind in IN_KINDS:
        return StockMovement.MovementType.IN
    return None


def _empty_result() -> dict:
    return {CREATED: 0, UPDATED: 0, DELETED: 0, UNCHANGED: 0, SKIPPED: 0, FAILED: 0}


def _movements_for(document):
    return StockMovement.objects.filter(
        tenant_id=document.tenant_id,
        source_kind=document.kind,
        source_id=str(document.id),
    )


def _covered_by_dispatch_document(document) -> bool:
    """
    True when the document is linked to a delivery note (goods receipt) that
    already produced movements: the physical flow is recorded there.
    """
    dispatch_kind = DISPATCH_KIND_FOR.get(document.kind)
    if not dispatch_kind:
        return False

    linked_ids = [
        str(pk)
        for pk in document.linked_documents.filter(kind=dispatch_kind).values_list("id", flat=True)
    ]
    if not linked_ids:
        return False

    return StockMovement.objects.filter(
        tenant_id=document.tenant_id,
        source_kind=dispatch_kind,
        source_id__in=linked_ids,
    ).exists()


def _find_product(document, product_id: str):
    return Product.objects.filter(tenant_id=document.tenant_id, pk=product_id).first()


def _reconcile_product(*, document, product_id, snap, movement_type, actor, create_mode) -> str:
    existing = _movements_for(document).filter(product_id=product_id).first()
    product = _find_product(document, product_id)

    if product is None:
        logger.warning(
            "Stock sync: product not found, line skipped",
            extra={
                "document_id": str(document.id),
                "document_kind": document.kind,
                "product_id": product_id,
            },
        )
        if existing is not None and not create_mode:
            existing.delete()
            return DELETED
        return SKIPPED

    quantity = snap.quantity if snap is not None else Decimal("0")

    if not product.is_stocked or quantity <= 0:
        if existing is not None:
            existing.delete()
            return DELETED
        return SKIPPED

    if existing is not None:
        if (
            existing.quantity == quantity
            and existing.date == document.date
            and existing.movement_type == movement_type
            and existing.warehouse_id == document.warehouse_id
        ):
            return UNCHANGED

        existing.quantity = quantity
        existing.date = document.date
        existing.movement_type = movement_type
        existing.warehouse_id = document.warehouse_id
        existing.save(update_fields=["quantity", "date", "movement_type", "warehouse", "updated_at"])
        return UPDATED

    StockMovement.objects.create(
        tenant_id=document.tenant_id,
        product=product,
        warehouse_id=document.warehouse_id,
        movement_type=movement_type,
        quantity=quantity,
        date=document.date,
        source_kind=document.kind,
        source_id=str(document.id),
        note=f"{document.get_kind_display()} {document.number}"[:255],
        created_by=actor or document.created_by or "",
    )
    return CREATED


def sync_movements_for_document(document, previous_lines=None, *, actor: str = "") -> dict:
    """
    Reconcile the document's movements with its current lines.

    previous_lines: lines (or a snapshot) as they were before the edit;
    None means the document is being created / validated.

    Returns counters per outcome; never raises for a single line.
    """
    result = _empty_result()

    movement_type = movement_type_for(document.kind)
    if movement_type is None:
        return result

    if document.status == CommercialDocument.Status.CANCELLED:
        result[DELETED] = delete_movements_for_document(document)
        return result

    if _covered_by_dispatch_document(document):
        logger.info(
            "Stock sync skipped: goods already moved by linked dispatch document",
            extra={"document_id": str(document.id), "document_kind": document.kind},
        )
        return result

    current = snapshot_lines(document.lines.all())
    create_mode = previous_lines is None

    if create_mode:
        product_ids = sorted(current)
    else:
        product_ids = diff_lines(previous_lines, current).product_ids

    for product_id in product_ids:
        try:
            with transaction.atomic():
                outcome = _reconcile_product(
                    document=document,
                    product_id=product_id,
                    snap=current.get(product_id),
                    movement_type=movement_type,
                    actor=actor,
                    create_mode=create_mode,
                )
        except Exception:
            logger.exception(
                "Stock sync failed for line",
                extra={
                    "document_id": str(document.id),
                    "document_kind": document.kind,
                    "product_id": product_id,
                },
            )
            outcome = FAILED

        result[outcome] += 1

    logger.info(
        "Stock sync completed",
        extra={
            "document_id": str(document.id),
            "document_kind": document.kind,
            "mode": "create" if create_mode else "update",
            "outcomes": dict(result),
        },
    )
    return result


def delete_movements_for_document(document) -> int:
    """Remove every movement sourced from `document`, whatever the product."""
    deleted, _ = _movements_for(document).delete()
    if deleted:
        logger.info(
            "Stock movements deleted with document",
            extra={"document_id": str(document.id), "document_kind": document.kind, "deleted": deleted},
        )
    return deleted


@transaction.atomic
def apply_return(return_document, *, actor: str = "") -> dict:
    """
    Book a return document.

    - movements for the return itself (IN for a sales return)
    - delivered quantities of the originating delivery note / goods receipt
      reduced product by product (never below zero)
    - an audit note appended to the originating document, which also gets
      the return linked
    """
    result = sync_movements_for_document(return_document, actor=actor)

    source = return_document.source_document
    if source is None:
        return result

    returned = snapshot_lines(return_document.lines.all())
    if not returned:
        return result

    adjusted = []
    for line in source.lines.select_for_update():
        product_id = normalize_identifier(line.product_id)
        snap = returned.get(product_id)
        if snap is None:
            continue

        delivered = line.delivered_quantity if line.delivered_quantity is not None else line.quantity
        line.delivered_quantity = max(Decimal("0"), Decimal(delivered) - snap.quantity)
        line.save(update_fields=["delivered_quantity"])
        adjusted.append(f"{line.description or snap.description or product_id}: {snap.quantity}")

    if adjusted:
        note = (
            f"[This {source.get_kind_display().lower()} was subject to return "
            f"{return_document.number} on {return_document.date.isoformat()} - "
            f"Returned quantities: {', '.join(adjusted)}]"
        )
        source.internal_notes = f"{source.internal_notes}\n{note}".strip()
        source.save(update_fields=["internal_notes", "updated_at"])

    source.linked_documents.add(return_document)

    logger.info(
        "Return applied to source document",
        extra={
            "return_id": str(return_document.id),
            "source_id": str(source.id),
            "lines_adjusted": len(adjusted),
        },
    )
    return result


def stock_level(*, tenant, product, warehouse=None) -> Decimal:
    """On-hand quantity: sum of IN minus sum of OUT movements."""
    qs = StockMovement.objects.filter(tenant=tenant, product=product)
    if warehouse is not None:
        qs = qs.filter(warehouse=warehouse)

    totals = qs.aggregate(
        qty_in=Sum("quantity", filter=Q(movement_type=StockMovement.MovementType.IN)),
        qty_out=Sum("quantity", filter=Q(movement_type=StockMovement.MovementType.OUT)),
    )
    return (totals["qty_in"] or Decimal("0")) - (totals["qty_out"] or Decimal("0"))
