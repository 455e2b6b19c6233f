# documents/models/document.py

import uuid
from decimal import Decimal

from django.db import models

from documents.services.exceptions import ImmutableStateError


class CommercialDocument(models.Model):
    """
    Quote, order, delivery note, invoice, credit note or return (sales or
    purchase side).

    GUARANTEES:
    - number is unique per (tenant, kind)
    - totals are only ever written by the totals calculator
    - once out of DRAFT, substantive fields are frozen; only status, notes,
      internal notes and the archived flag may still change
    - CANCELLED is terminal
    """

    class Kind(models.TextChoices):
        QUOTE = "QUOTE", "Quote"
        SALES_ORDER = "SALES_ORDER", "Sales order"
        DELIVERY_NOTE = "DELIVERY_NOTE", "Delivery note"
        INVOICE = "INVOICE", "Invoice"
        INTERNAL_INVOICE = "INTERNAL_INVOICE", "Internal invoice"
        CREDIT_NOTE = "CREDIT_NOTE", "Credit note"
        SALES_RETURN = "SALES_RETURN", "Sales return"
        PURCHASE_ORDER = "PURCHASE_ORDER", "Purchase order"
        GOODS_RECEIPT = "GOODS_RECEIPT", "Goods receipt"
        PURCHASE_INVOICE = "PURCHASE_INVOICE", "Purchase invoice"
        SUPPLIER_CREDIT_NOTE = "SUPPLIER_CREDIT_NOTE", "Supplier credit note"
        PURCHASE_RETURN = "PURCHASE_RETURN", "Purchase return"

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        VALIDATED = "VALIDATED", "Validated"
        PARTIALLY_PAID = "PARTIALLY_PAID", "Partially paid"
        PAID = "PAID", "Paid"
        CANCELLED = "CANCELLED", "Cancelled"

    SALES_KINDS = frozenset(
        {
            Kind.QUOTE,
            Kind.SALES_ORDER,
            Kind.DELIVERY_NOTE,
            Kind.INVOICE,
            Kind.INTERNAL_INVOICE,
            Kind.CREDIT_NOTE,
            Kind.SALES_RETURN,
        }
    )
    CUSTOMER_INVOICE_KINDS = frozenset({Kind.INVOICE, Kind.INTERNAL_INVOICE})
    SUPPLIER_INVOICE_KINDS = frozenset({Kind.PURCHASE_INVOICE})
    CREDIT_NOTE_KINDS = frozenset({Kind.CREDIT_NOTE, Kind.SUPPLIER_CREDIT_NOTE})
    RETURN_KINDS = frozenset({Kind.SALES_RETURN, Kind.PURCHASE_RETURN})
    # Kinds whose quantities may go negative (no stock effect, sign = credit).
    SIGNED_QUANTITY_KINDS = frozenset(
        {
            Kind.QUOTE,
            Kind.SALES_ORDER,
            Kind.INVOICE,
            Kind.INTERNAL_INVOICE,
            Kind.CREDIT_NOTE,
            Kind.SUPPLIER_CREDIT_NOTE,
            Kind.PURCHASE_ORDER,
        }
    )
    PAYABLE_STATUSES = frozenset({Status.VALIDATED, Status.PARTIALLY_PAID, Status.PAID})

    _EDITABLE_FIELDS_AFTER_DRAFT = ("status", "notes", "internal_notes", "archived", "updated_at")
    _IMMUTABLE_FIELDS_AFTER_DRAFT = (
        "kind",
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
        "base_amount",
        "levy_amount",
        "tax_amount",
        "total_amount",
        "payment_terms",
        "due_date",
        "currency",
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="documents",
    )

    kind = models.CharField(max_length=30, choices=Kind.choices)
    number = models.CharField(max_length=64)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    date = models.DateField()

    customer = models.ForeignKey(
        "partners.Customer",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="documents",
    )
    supplier = models.ForeignKey(
        "partners.Supplier",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="documents",
    )
    warehouse = models.ForeignKey(
        "products.Warehouse",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="documents",
    )
    # Return → delivery note / goods receipt it brings goods back from.
    source_document = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="returns",
    )

    # discount / levy configuration
    global_discount_pct = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    levy_enabled = models.BooleanField(default=False)
    levy_rate_pct = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    stamp_duty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("0"))

    # computed totals
    base_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    levy_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    payment_terms = models.CharField(max_length=100, blank=True, default="")
    due_date = models.DateField(null=True, blank=True)

    currency = models.CharField(max_length=10, default="TND")
    notes = models.TextField(blank=True, default="")
    internal_notes = models.TextField(blank=True, default="")
    archived = models.BooleanField(default=False)

    # invoice ← delivery note, credit note ← invoice, official ← internal invoice
    linked_documents = models.ManyToManyField(
        "self",
        symmetrical=False,
        blank=True,
        related_name="linked_from",
    )

    created_by = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-date", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "kind", "number"],
                name="uniq_document_number_per_tenant_kind",
            ),
            models.CheckConstraint(
                condition=models.Q(global_discount_pct__gte=0) & models.Q(global_discount_pct__lte=100),
                name="document_global_discount_pct_range",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "kind", "status"]),
            models.Index(fields=["tenant", "kind", "created_at"]),
            models.Index(fields=["tenant", "date"]),
        ]

    @property
    def counterparty(self):
        return self.customer if self.kind in self.SALES_KINDS else self.supplier

    @property
    def counterparty_id(self):
        return self.customer_id if self.kind in self.SALES_KINDS else self.supplier_id

    @property
    def is_credit_note(self) -> bool:
        return self.kind in self.CREDIT_NOTE_KINDS or Decimal(self.total_amount or 0) < 0

    def _validate_immutable(self, previous: "CommercialDocument"):
        if previous.status == self.Status.CANCELLED and self.status != previous.status:
            raise ImmutableStateError(
                f"Document {previous.number} is cancelled; status cannot change."
            )

        if previous.status == self.Status.DRAFT:
            return

        for field in self._IMMUTABLE_FIELDS_AFTER_DRAFT:
            if getattr(self, field) != getattr(previous, field):
                raise ImmutableStateError(
                    f"Document {previous.number} is {previous.status}. "
                    f"Field '{field.removesuffix('_id')}' cannot be changed."
                )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = CommercialDocument.objects.filter(pk=self.pk).first()
            if previous is not None:
                self._validate_immutable(previous)

        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.get_kind_display()} {self.number} | {self.total_amount}"
