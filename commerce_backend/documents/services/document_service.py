# documents/services/document_service.py

"""
======================================================
PATH: documents/services/document_service.py
======================================================
DOCUMENT SERVICE

The only write path for commercial documents:
create / update / validate / cancel / delete.

Every save:
1. validates input (ValidationFailedError, NotFoundError, DuplicateNumberError)
2. recomputes totals and due date (totals calculator + terms resolver)
3. hands the before/after lines to the stock synchronizer

Rules:
- Out of DRAFT only notes / internal notes may still be edited
  (ImmutableStateError otherwise).
- A validated document can be cancelled only while no payment references it.
- Deletion only from DRAFT or CANCELLED; movements go with the document.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from documents.models import CommercialDocument, DocumentLine
from documents.services.exceptions import (
    DuplicateNumberError,
    ImmutableStateError,
    NotFoundError,
    ValidationFailedError,
)
from documents.services.lifecycle import validate_transition
from documents.services.terms import _as_date, resolve_due_date
from documents.services.totals import apply_totals
from partners.models import Customer, Supplier
from products.models import Product, Warehouse
from products.services.line_diff import snapshot_lines
from products.services.stock_sync import (
    apply_return,
    delete_movements_for_document,
    sync_movements_for_document,
)
from tenants.services.audit import log_action
from tenants.services.identifiers import normalize_identifier
from tenants.services.numbering import advance_past, next_number


logger = logging.getLogger("documents")

Kind = CommercialDocument.Kind
Status = CommercialDocument.Status

CUSTOMER_REQUIRED_KINDS = frozenset(
    {Kind.DELIVERY_NOTE, Kind.INVOICE, Kind.INTERNAL_INVOICE, Kind.CREDIT_NOTE, Kind.SALES_RETURN}
)
SUPPLIER_REQUIRED_KINDS = frozenset(
    {Kind.GOODS_RECEIPT, Kind.PURCHASE_INVOICE, Kind.SUPPLIER_CREDIT_NOTE, Kind.PURCHASE_RETURN}
)

EDITABLE_AFTER_DRAFT = frozenset({"notes", "internal_notes"})

UPDATABLE_FIELDS = frozenset(
    {
        "number",
        "date",
        "customer_id",
        "supplier_id",
        "warehouse_id",
        "source_document_id",
        "global_discount_pct",
        "levy_enabled",
        "levy_rate_pct",
        "stamp_duty",
        "payment_terms",
        "currency",
        "notes",
        "internal_notes",
        "linked_document_ids",
    }
)

DECIMAL_FIELDS = ("global_discount_pct", "levy_rate_pct", "stamp_duty")


# =====================================================
# HELPERS
# =====================================================

def _to_decimal(value, *, field_name: str, default=None) -> Decimal:
    if value is None or value == "":
        if default is None:
            raise ValidationFailedError(f"{field_name} is required")
        return Decimal(str(default))
    if isinstance(value, bool):
        raise ValidationFailedError(f"{field_name} must be a number")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationFailedError(f"{field_name} must be a number") from exc


def _numbering_key(kind: str) -> str:
    return kind.lower()


def get_document(*, tenant, document_id, lock: bool = False, kind=None) -> CommercialDocument:
    pk = normalize_identifier(document_id)
    qs = CommercialDocument.objects.filter(tenant=tenant)
    if kind is not None:
        qs = qs.filter(kind=kind)
    if lock:
        qs = qs.select_for_update()
    document = qs.filter(pk=pk).first() if pk else None
    if document is None:
        raise NotFoundError("Document not found")
    return document


def _resolve_related(model, *, tenant, value, label):
    if value in (None, ""):
        return None
    pk = normalize_identifier(value)
    obj = model.objects.filter(tenant=tenant, pk=pk).first() if pk else None
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def _number_taken(*, tenant, kind, number, exclude_id=None) -> bool:
    qs = CommercialDocument.objects.filter(tenant=tenant, kind=kind, number=number)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.exists()


def allocate_document_number(*, tenant, kind, on_date=None) -> str:
    key = _numbering_key(kind)
    for _ in range(10):
        number = next_number(tenant=tenant, key=key, on_date=on_date)
        if not _number_taken(tenant=tenant, kind=kind, number=number):
            return number
    raise DuplicateNumberError(f"Could not allocate a free number for sequence '{key}'")


def build_lines(*, document, tenant, lines) -> list[DocumentLine]:
    """
    Unsaved DocumentLine objects for `lines` payloads.

    Product defaults (description, unit price, tax) fill what the payload
    leaves out. Negative quantities are refused on stock-moving kinds.
    """
    built = []
    allow_negative = document.kind in CommercialDocument.SIGNED_QUANTITY_KINDS

    for position, raw in enumerate(lines or []):
        label = f"Line {position + 1}"

        product = _resolve_related(
            Product,
            tenant=tenant,
            value=raw.get("product_id") or raw.get("product"),
            label=f"{label}: product",
        )

        quantity = _to_decimal(raw.get("quantity"), field_name=f"{label} quantity")
        if quantity < 0 and not allow_negative:
            raise ValidationFailedError(f"{label}: negative quantity is not allowed on {document.kind}")

        unit_price = _to_decimal(
            raw.get("unit_price"),
            field_name=f"{label} unit_price",
            default=product.unit_price if product else None,
        )
        discount_pct = _to_decimal(raw.get("discount_pct"), field_name=f"{label} discount_pct", default=0)
        tax_pct = _to_decimal(
            raw.get("tax_pct"),
            field_name=f"{label} tax_pct",
            default=product.tax_pct if product else 0,
        )
        if not (Decimal("0") <= discount_pct <= Decimal("100")):
            raise ValidationFailedError(f"{label}: discount_pct must be between 0 and 100")

        levy_pct = raw.get("levy_pct")
        if levy_pct not in (None, ""):
            levy_pct = _to_decimal(levy_pct, field_name=f"{label} levy_pct")
        else:
            levy_pct = None

        delivered = raw.get("delivered_quantity")
        if delivered not in (None, ""):
            delivered = _to_decimal(delivered, field_name=f"{label} delivered_quantity")
        elif document.kind == Kind.DELIVERY_NOTE:
            delivered = quantity
        else:
            delivered = None

        built.append(
            DocumentLine(
                document=document,
                position=position,
                product=product,
                description=(raw.get("description") or (product.name if product else "")).strip(),
                quantity=quantity,
                unit_price=unit_price,
                discount_pct=discount_pct,
                tax_pct=tax_pct,
                levy_pct=levy_pct,
                delivered_quantity=delivered,
            )
        )

    return built


def _apply_counterparty(document, *, tenant, customer_id, supplier_id):
    document.customer = _resolve_related(Customer, tenant=tenant, value=customer_id, label="Customer")
    document.supplier = _resolve_related(Supplier, tenant=tenant, value=supplier_id, label="Supplier")

    if document.kind in CUSTOMER_REQUIRED_KINDS and document.customer is None:
        raise ValidationFailedError(f"{document.kind} requires a customer")
    if document.kind in SUPPLIER_REQUIRED_KINDS and document.supplier is None:
        raise ValidationFailedError(f"{document.kind} requires a supplier")


def _set_linked_documents(document, *, tenant, linked_ids):
    if linked_ids is None:
        return
    linked = []
    for value in linked_ids:
        linked.append(
            _resolve_related(CommercialDocument, tenant=tenant, value=value, label="Linked document")
        )
    document.linked_documents.set(linked)


def _refresh_derived_fields(document, lines=None):
    apply_totals(document, lines)
    document.due_date = resolve_due_date(document.date, document.payment_terms)


# =====================================================
# CREATE
# =====================================================

@transaction.atomic
def create_document(
    *,
    tenant,
    kind,
    lines=(),
    actor: str = "",
    number: str | None = None,
    status: str = Status.DRAFT,
    date=None,
    customer_id=None,
    supplier_id=None,
    warehouse_id=None,
    source_document_id=None,
    global_discount_pct=None,
    levy_enabled: bool = False,
    levy_rate_pct=None,
    stamp_duty=None,
    payment_terms: str | None = None,
    currency: str | None = None,
    notes: str = "",
    internal_notes: str = "",
    linked_document_ids=None,
) -> CommercialDocument:
    """
    CREATE DOCUMENT (atomic)

    Documents are born DRAFT or directly VALIDATED. The number comes from the
    tenant sequence of the kind unless one is supplied.
    """
    if kind not in Kind.values:
        raise ValidationFailedError(f"Unknown document kind '{kind}'")
    if status not in (Status.DRAFT, Status.VALIDATED):
        raise ValidationFailedError("A document is created as DRAFT or VALIDATED")

    doc_date = _as_date(date) if date not in (None, "") else timezone.localdate()
    if doc_date is None:
        raise ValidationFailedError("date must be an ISO date (YYYY-MM-DD)")

    document = CommercialDocument(
        tenant=tenant,
        kind=kind,
        status=status,
        date=doc_date,
        notes=notes or "",
        internal_notes=internal_notes or "",
        currency=(currency or getattr(tenant, "currency", "") or settings.DEFAULT_CURRENCY),
        created_by=actor or "",
    )

    _apply_counterparty(document, tenant=tenant, customer_id=customer_id, supplier_id=supplier_id)
    document.warehouse = _resolve_related(Warehouse, tenant=tenant, value=warehouse_id, label="Warehouse")
    document.source_document = _resolve_related(
        CommercialDocument, tenant=tenant, value=source_document_id, label="Source document"
    )
    if kind in CommercialDocument.RETURN_KINDS and document.source_document is None:
        raise ValidationFailedError(f"{kind} requires the source document it returns goods from")

    document.global_discount_pct = _to_decimal(global_discount_pct, field_name="global_discount_pct", default=0)
    if not (Decimal("0") <= document.global_discount_pct <= Decimal("100")):
        raise ValidationFailedError("global_discount_pct must be between 0 and 100")

    document.levy_enabled = bool(levy_enabled)
    document.levy_rate_pct = _to_decimal(
        levy_rate_pct,
        field_name="levy_rate_pct",
        default=settings.DEFAULT_LEVY_RATE_PCT if document.levy_enabled else 0,
    )

    default_stamp = settings.DEFAULT_STAMP_DUTY if kind == Kind.INVOICE else 0
    document.stamp_duty = _to_decimal(stamp_duty, field_name="stamp_duty", default=default_stamp)

    counterparty = document.counterparty
    document.payment_terms = (
        payment_terms if payment_terms is not None else getattr(counterparty, "payment_terms", "")
    ) or ""

    number = (number or "").strip()
    if number:
        if _number_taken(tenant=tenant, kind=kind, number=number):
            raise DuplicateNumberError(f"{kind} number {number} already exists")
        advance_past(tenant=tenant, key=_numbering_key(kind), number=number)
    else:
        number = allocate_document_number(tenant=tenant, kind=kind, on_date=doc_date)
    document.number = number

    built = build_lines(document=document, tenant=tenant, lines=lines)
    if status == Status.VALIDATED and not built:
        raise ValidationFailedError("A validated document needs at least one line")

    _refresh_derived_fields(document, built)
    document.save()
    DocumentLine.objects.bulk_create(built)
    _set_linked_documents(document, tenant=tenant, linked_ids=linked_document_ids)

    if kind in CommercialDocument.RETURN_KINDS and status == Status.VALIDATED:
        apply_return(document, actor=actor)
    else:
        sync_movements_for_document(document, actor=actor)

    logger.info(
        "Document created",
        extra={
            "document_id": str(document.id),
            "document_kind": kind,
            "number": document.number,
            "total_amount": str(document.total_amount),
        },
    )
    log_action(
        tenant=tenant,
        actor=actor,
        action="DOCUMENT_CREATED",
        area="documents",
        message=f"{document.get_kind_display()} {document.number} created",
        metadata={"document_id": str(document.id), "kind": kind, "status": document.status},
    )
    return document


# =====================================================
# UPDATE
# =====================================================

@transaction.atomic
def update_document(*, tenant, document_id, changes=None, lines=None, actor: str = "") -> CommercialDocument:
    """
    UPDATE DOCUMENT (atomic)

    `lines`, when given, replaces every line. Stock is reconciled from the
    before/after line snapshots.
    """
    document = get_document(tenant=tenant, document_id=document_id, lock=True)
    changes = dict(changes or {})

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    if document.status != Status.DRAFT:
        frozen = set(changes) - EDITABLE_AFTER_DRAFT
        if frozen or lines is not None:
            raise ImmutableStateError(
                f"Document {document.number} is {document.status}; "
                "only notes and internal notes can still change"
            )

    previous_lines = snapshot_lines(document.lines.all())

    if "number" in changes:
        number = (changes.pop("number") or "").strip()
        if not number:
            raise ValidationFailedError("number cannot be blank")
        if _number_taken(tenant=tenant, kind=document.kind, number=number, exclude_id=document.pk):
            raise DuplicateNumberError(f"{document.kind} number {number} already exists")
        document.number = number

    if "date" in changes:
        doc_date = _as_date(changes.pop("date"))
        if doc_date is None:
            raise ValidationFailedError("date must be an ISO date (YYYY-MM-DD)")
        document.date = doc_date

    if "customer_id" in changes or "supplier_id" in changes:
        _apply_counterparty(
            document,
            tenant=tenant,
            customer_id=changes.pop("customer_id", document.customer_id),
            supplier_id=changes.pop("supplier_id", document.supplier_id),
        )

    if "warehouse_id" in changes:
        document.warehouse = _resolve_related(
            Warehouse, tenant=tenant, value=changes.pop("warehouse_id"), label="Warehouse"
        )

    if "source_document_id" in changes:
        document.source_document = _resolve_related(
            CommercialDocument, tenant=tenant, value=changes.pop("source_document_id"), label="Source document"
        )

    for field in DECIMAL_FIELDS:
        if field in changes:
            setattr(document, field, _to_decimal(changes.pop(field), field_name=field, default=0))

    if "levy_enabled" in changes:
        document.levy_enabled = bool(changes.pop("levy_enabled"))
        if document.levy_enabled and not document.levy_rate_pct:
            document.levy_rate_pct = Decimal(str(settings.DEFAULT_LEVY_RATE_PCT))

    linked_ids = changes.pop("linked_document_ids", None)

    for field in ("payment_terms", "currency", "notes", "internal_notes"):
        if field in changes:
            setattr(document, field, changes.pop(field) or "")

    if document.status == Status.DRAFT:
        built = None
        if lines is not None:
            built = build_lines(document=document, tenant=tenant, lines=lines)
            document.lines.all().delete()
            DocumentLine.objects.bulk_create(built)
        _refresh_derived_fields(document, built)

    document.save()
    _set_linked_documents(document, tenant=tenant, linked_ids=linked_ids)

    sync_movements_for_document(document, previous_lines=previous_lines, actor=actor)

    logger.info(
        "Document updated",
        extra={
            "document_id": str(document.id),
            "document_kind": document.kind,
            "lines_replaced": lines is not None,
        },
    )
    log_action(
        tenant=tenant,
        actor=actor,
        action="DOCUMENT_UPDATED",
        area="documents",
        message=f"{document.get_kind_display()} {document.number} updated",
        metadata={"document_id": str(document.id)},
    )
    return document


# =====================================================
# STATUS CHANGES
# =====================================================

@transaction.atomic
def validate_document(*, tenant, document_id, actor: str = "") -> CommercialDocument:
    """DRAFT -> VALIDATED, then stock (and return bookkeeping)."""
    document = get_document(tenant=tenant, document_id=document_id, lock=True)
    validate_transition(document=document, target_status=Status.VALIDATED)

    if not document.lines.exists():
        raise ValidationFailedError("A document without lines cannot be validated")

    document.status = Status.VALIDATED
    document.save(update_fields=["status", "updated_at"])

    if document.kind in CommercialDocument.RETURN_KINDS:
        apply_return(document, actor=actor)
    else:
        sync_movements_for_document(document, actor=actor)

    logger.info(
        "Document validated",
        extra={"document_id": str(document.id), "document_kind": document.kind, "number": document.number},
    )
    log_action(
        tenant=tenant,
        actor=actor,
        action="DOCUMENT_VALIDATED",
        area="documents",
        message=f"{document.get_kind_display()} {document.number} validated",
        metadata={"document_id": str(document.id)},
    )
    return document


@transaction.atomic
def cancel_document(*, tenant, document_id, actor: str = "") -> CommercialDocument:
    """Cancel a draft, or a validated document nothing has paid yet."""
    document = get_document(tenant=tenant, document_id=document_id, lock=True)
    validate_transition(document=document, target_status=Status.CANCELLED)

    if document.status != Status.DRAFT and document.payment_lines.exists():
        raise ImmutableStateError(
            f"Document {document.number} has payments allocated; delete them before cancelling"
        )

    document.status = Status.CANCELLED
    document.save(update_fields=["status", "updated_at"])
    delete_movements_for_document(document)

    logger.info(
        "Document cancelled",
        extra={"document_id": str(document.id), "document_kind": document.kind, "number": document.number},
    )
    log_action(
        tenant=tenant,
        actor=actor,
        action="DOCUMENT_CANCELLED",
        area="documents",
        message=f"{document.get_kind_display()} {document.number} cancelled",
        metadata={"document_id": str(document.id)},
    )
    return document


@transaction.atomic
def delete_document(*, tenant, document_id, actor: str = "") -> dict:
    """Delete a DRAFT or CANCELLED document together with its movements."""
    document = get_document(tenant=tenant, document_id=document_id, lock=True)

    if document.status not in (Status.DRAFT, Status.CANCELLED):
        raise ImmutableStateError(
            f"Document {document.number} is {document.status}; only draft or cancelled documents can be deleted"
        )
    if document.payment_lines.exists():
        raise ImmutableStateError(f"Document {document.number} is referenced by payments")

    result = {
        "document_id": str(document.id),
        "kind": document.kind,
        "number": document.number,
        "movements_deleted": delete_movements_for_document(document),
    }
    document.delete()

    logger.info("Document deleted", extra=result)
    log_action(
        tenant=tenant,
        actor=actor,
        action="DOCUMENT_DELETED",
        area="documents",
        message=f"{result['kind']} {result['number']} deleted",
        metadata=result,
    )
    return result
