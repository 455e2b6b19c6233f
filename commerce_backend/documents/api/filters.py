# documents/api/filters.py

import django_filters
from django.db.models import Q

from documents.models import CommercialDocument


class DocumentFilter(django_filters.FilterSet):
    kind = django_filters.ChoiceFilter(choices=CommercialDocument.Kind.choices)
    status = django_filters.ChoiceFilter(choices=CommercialDocument.Status.choices)
    date_from = django_filters.DateFilter(field_name="date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="date", lookup_expr="lte")
    customer = django_filters.UUIDFilter(field_name="customer_id")
    supplier = django_filters.UUIDFilter(field_name="supplier_id")
    archived = django_filters.BooleanFilter()
    search = django_filters.CharFilter(method="filter_search")

    class Meta:
        model = CommercialDocument
        fields = ["kind", "status", "archived"]

    def filter_search(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(number__icontains=value)
            | Q(customer__name__icontains=value)
            | Q(supplier__name__icontains=value)
            | Q(notes__icontains=value)
        )
