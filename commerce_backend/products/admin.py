# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Admin rules:

- Products and warehouses are plain catalogue data.
- StockMovement rows are owned by the document that produced them and are
  rewritten by the stock synchronizer only: read-only here.
"""

from __future__ import annotations

from django.contrib import admin

from products.models import Product, StockMovement, Warehouse


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "tenant", "unit_price", "tax_pct", "is_stocked", "is_active")
    list_filter = ("tenant", "is_stocked", "is_active")
    search_fields = ("sku", "name")


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "tenant", "is_default")
    list_filter = ("tenant",)
    search_fields = ("code", "name")


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("date", "product", "movement_type", "quantity", "source_kind", "source_id")
    list_filter = ("tenant", "movement_type", "source_kind")
    search_fields = ("product__sku", "product__name", "source_id", "note")
    readonly_fields = [f.name for f in StockMovement._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
