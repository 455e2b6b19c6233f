# documents/api/serializers.py

from rest_framework import serializers

from documents.models import CommercialDocument, DocumentLine


class DocumentLineSerializer(serializers.ModelSerializer):
    """
    Output serializer (DB truth).
    """

    product_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = DocumentLine
        fields = [
            "id",
            "position",
            "product_id",
            "description",
            "quantity",
            "unit_price",
            "discount_pct",
            "tax_pct",
            "levy_pct",
            "delivered_quantity",
        ]
        read_only_fields = fields


class DocumentSerializer(serializers.ModelSerializer):
    lines = DocumentLineSerializer(many=True, read_only=True)
    customer_id = serializers.UUIDField(read_only=True, allow_null=True)
    supplier_id = serializers.UUIDField(read_only=True, allow_null=True)
    warehouse_id = serializers.UUIDField(read_only=True, allow_null=True)
    source_document_id = serializers.UUIDField(read_only=True, allow_null=True)
    counterparty_name = serializers.SerializerMethodField()
    linked_document_ids = serializers.SerializerMethodField()

    class Meta:
        model = CommercialDocument
        fields = [
            "id",
            "kind",
            "number",
            "status",
            "date",
            "due_date",
            "customer_id",
            "supplier_id",
            "counterparty_name",
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
            "currency",
            "notes",
            "internal_notes",
            "archived",
            "linked_document_ids",
            "lines",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_counterparty_name(self, obj) -> str:
        counterparty = obj.counterparty
        return counterparty.display_name if counterparty else ""

    def get_linked_document_ids(self, obj) -> list[str]:
        return [str(pk) for pk in obj.linked_documents.values_list("id", flat=True)]


class DocumentLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, max_length=255)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=3, required=False, allow_null=True)
    discount_pct = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, min_value=0, max_value=100
    )
    tax_pct = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    levy_pct = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    delivered_quantity = serializers.DecimalField(
        max_digits=14, decimal_places=3, required=False, allow_null=True
    )


class DocumentCreateSerializer(serializers.Serializer):
    """
    Input serializer (Swagger-visible). Totals and due date are always
    computed server-side.
    """

    kind = serializers.ChoiceField(choices=CommercialDocument.Kind.choices)
    status = serializers.ChoiceField(
        choices=[CommercialDocument.Status.DRAFT, CommercialDocument.Status.VALIDATED],
        required=False,
        default=CommercialDocument.Status.DRAFT,
    )
    number = serializers.CharField(required=False, allow_blank=True, max_length=64)
    date = serializers.DateField(required=False)
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    supplier_id = serializers.UUIDField(required=False, allow_null=True)
    warehouse_id = serializers.UUIDField(required=False, allow_null=True)
    source_document_id = serializers.UUIDField(required=False, allow_null=True)
    global_discount_pct = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, min_value=0, max_value=100
    )
    levy_enabled = serializers.BooleanField(required=False, default=False)
    levy_rate_pct = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, allow_null=True)
    stamp_duty = serializers.DecimalField(max_digits=12, decimal_places=3, required=False, allow_null=True)
    payment_terms = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    currency = serializers.CharField(required=False, allow_blank=True, max_length=10)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    internal_notes = serializers.CharField(required=False, allow_blank=True, default="")
    linked_document_ids = serializers.ListField(child=serializers.UUIDField(), required=False)
    lines = DocumentLineInputSerializer(many=True, required=False, default=list)


class DocumentUpdateSerializer(serializers.Serializer):
    """
    PATCH payload: only the keys sent are changed. `lines`, when sent,
    replaces every line of the document.
    """

    number = serializers.CharField(required=False, max_length=64)
    date = serializers.DateField(required=False)
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    supplier_id = serializers.UUIDField(required=False, allow_null=True)
    warehouse_id = serializers.UUIDField(required=False, allow_null=True)
    source_document_id = serializers.UUIDField(required=False, allow_null=True)
    global_discount_pct = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, min_value=0, max_value=100
    )
    levy_enabled = serializers.BooleanField(required=False)
    levy_rate_pct = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    stamp_duty = serializers.DecimalField(max_digits=12, decimal_places=3, required=False)
    payment_terms = serializers.CharField(required=False, allow_blank=True, max_length=100)
    currency = serializers.CharField(required=False, allow_blank=True, max_length=10)
    notes = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)
    linked_document_ids = serializers.ListField(child=serializers.UUIDField(), required=False)
    lines = DocumentLineInputSerializer(many=True, required=False)
