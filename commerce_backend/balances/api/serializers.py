# balances/api/serializers.py

from rest_framework import serializers


class BalanceQuerySerializer(serializers.Serializer):
    counterparty = serializers.UUIDField(required=False)
    date = serializers.DateField(required=False)


class OpenInvoiceSerializer(serializers.Serializer):
    invoice_id = serializers.UUIDField()
    number = serializers.CharField()
    kind = serializers.CharField()
    date = serializers.DateField()
    due_date = serializers.DateField(allow_null=True)
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    paid = serializers.DecimalField(max_digits=14, decimal_places=2)
    remaining = serializers.DecimalField(max_digits=14, decimal_places=2)
    bucket = serializers.CharField()
    days_past_due = serializers.IntegerField()


class CounterpartyBalanceSerializer(serializers.Serializer):
    counterparty_id = serializers.UUIDField()
    name = serializers.CharField()
    direction = serializers.CharField()
    balance_due = serializers.DecimalField(max_digits=14, decimal_places=2)
    buckets = serializers.DictField(child=serializers.DecimalField(max_digits=14, decimal_places=2))
    open_invoices = OpenInvoiceSerializer(many=True)
    credit_notes_total = serializers.DecimalField(max_digits=14, decimal_places=2)
    net_advance_balance = serializers.DecimalField(max_digits=14, decimal_places=2)


class BalanceReportSerializer(serializers.Serializer):
    reference_date = serializers.DateField()
    total = serializers.DecimalField(max_digits=14, decimal_places=2)
    count = serializers.IntegerField()
    results = CounterpartyBalanceSerializer(many=True)
