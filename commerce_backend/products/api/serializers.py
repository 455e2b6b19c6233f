# products/api/serializers.py

from rest_framework import serializers

from products.models import StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(read_only=True)
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    warehouse_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product_id",
            "product_sku",
            "product_name",
            "warehouse_id",
            "movement_type",
            "quantity",
            "signed_quantity",
            "date",
            "source_kind",
            "source_id",
            "note",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class StockLevelSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    sku = serializers.CharField()
    name = serializers.CharField()
    warehouse_id = serializers.UUIDField(allow_null=True)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
