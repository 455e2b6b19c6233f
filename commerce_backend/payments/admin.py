# payments/admin.py

from django.contrib import admin

from payments.models import Payment, PaymentLine


class PaymentLineInline(admin.TabularInline):
    model = PaymentLine
    extra = 0
    can_delete = False
    readonly_fields = (
        "position",
        "invoice",
        "invoice_number",
        "invoice_total",
        "amount_paid_before",
        "amount",
        "remaining_balance",
        "is_on_account",
    )

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("number", "direction", "payment_date", "counterparty", "total_amount", "advance_used")
    list_filter = ("tenant", "direction", "method", "is_on_account")
    search_fields = ("number", "reference", "customer__name", "supplier__name")
    inlines = [PaymentLineInline]
    # allocations go through the payment allocator (API) only
    readonly_fields = [f.name for f in Payment._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
