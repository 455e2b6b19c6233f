# payments/api/filters.py

import django_filters

from payments.models import Payment


class PaymentFilter(django_filters.FilterSet):
    direction = django_filters.ChoiceFilter(choices=Payment.Direction.choices)
    method = django_filters.ChoiceFilter(choices=Payment.Method.choices)
    customer = django_filters.UUIDFilter(field_name="customer_id")
    supplier = django_filters.UUIDFilter(field_name="supplier_id")
    invoice = django_filters.UUIDFilter(field_name="lines__invoice_id", distinct=True)
    date_from = django_filters.DateFilter(field_name="payment_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="payment_date", lookup_expr="lte")

    class Meta:
        model = Payment
        fields = ["direction", "method"]
