# partners/admin.py

from django.contrib import admin

from partners.models import Customer, Supplier


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("display_name", "tenant", "payment_terms", "is_archived")
    list_filter = ("tenant", "is_archived")
    search_fields = ("name", "first_name", "last_name", "code")


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ("display_name", "tenant", "payment_terms", "is_archived")
    list_filter = ("tenant", "is_archived")
    search_fields = ("name", "code")
