# documents/admin.py

"""
Documents are edited through the API (document service), which owns totals,
numbering and stock. The admin is a read-only window on them.
"""

from django.contrib import admin

from documents.models import CommercialDocument, DocumentLine


class DocumentLineInline(admin.TabularInline):
    model = DocumentLine
    extra = 0
    can_delete = False
    readonly_fields = (
        "position",
        "product",
        "description",
        "quantity",
        "unit_price",
        "discount_pct",
        "tax_pct",
        "levy_pct",
        "delivered_quantity",
    )

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(CommercialDocument)
class CommercialDocumentAdmin(admin.ModelAdmin):
    list_display = ("number", "kind", "status", "date", "counterparty", "total_amount", "archived")
    list_filter = ("tenant", "kind", "status", "archived")
    search_fields = ("number", "customer__name", "supplier__name")
    date_hierarchy = "date"
    inlines = [DocumentLineInline]
    readonly_fields = [f.name for f in CommercialDocument._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
