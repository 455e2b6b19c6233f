# payments/api/serializers.py

from rest_framework import serializers

from payments.models import Payment, PaymentLine


class PaymentLineSerializer(serializers.ModelSerializer):
    invoice_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = PaymentLine
        fields = [
            "id",
            "position",
            "invoice_id",
            "invoice_number",
            "invoice_total",
            "amount_paid_before",
            "amount",
            "remaining_balance",
            "is_on_account",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """
    Output serializer (DB truth).
    """

    lines = PaymentLineSerializer(many=True, read_only=True)
    counterparty_id = serializers.UUIDField(read_only=True)
    fresh_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "direction",
            "counterparty_id",
            "number",
            "payment_date",
            "method",
            "reference",
            "total_amount",
            "is_on_account",
            "advance_used",
            "fresh_amount",
            "notes",
            "lines",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentLineInputSerializer(serializers.Serializer):
    invoice_id = serializers.UUIDField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    on_account = serializers.BooleanField(required=False, default=False)


class PaymentCreateSerializer(serializers.Serializer):
    direction = serializers.ChoiceField(choices=Payment.Direction.choices)
    counterparty_id = serializers.UUIDField()
    payment_date = serializers.DateField(required=False)
    method = serializers.ChoiceField(choices=Payment.Method.choices, required=False, default=Payment.Method.CASH)
    reference = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    advance_used = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=0, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    number = serializers.CharField(required=False, allow_blank=True, max_length=64)
    lines = PaymentLineInputSerializer(many=True)


class PaymentEditSerializer(serializers.Serializer):
    """PUT payload: `lines` replaces the whole allocation."""

    payment_date = serializers.DateField(required=False)
    method = serializers.ChoiceField(choices=Payment.Method.choices, required=False)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=255)
    advance_used = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True)
    lines = PaymentLineInputSerializer(many=True)
