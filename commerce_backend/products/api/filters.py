# products/api/filters.py

import django_filters

from products.models import StockMovement


class StockMovementFilter(django_filters.FilterSet):
    product = django_filters.UUIDFilter(field_name="product_id")
    warehouse = django_filters.UUIDFilter(field_name="warehouse_id")
    movement_type = django_filters.ChoiceFilter(choices=StockMovement.MovementType.choices)
    source_kind = django_filters.CharFilter()
    source_id = django_filters.CharFilter()
    date_from = django_filters.DateFilter(field_name="date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="date", lookup_expr="lte")

    class Meta:
        model = StockMovement
        fields = ["movement_type", "source_kind", "source_id"]
