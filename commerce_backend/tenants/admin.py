# tenants/admin.py

from django.contrib import admin

from tenants.models import AuditLog, NumberSequence, Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "currency", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("code", "name")


@admin.register(NumberSequence)
class NumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("tenant", "key", "template", "last_value", "updated_at")
    list_filter = ("tenant",)
    search_fields = ("key",)


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "tenant", "area", "action", "actor_email")
    list_filter = ("tenant", "area", "action")
    search_fields = ("message", "actor_email")
    readonly_fields = [f.name for f in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
