# tenants/apps.py

"""
TENANTS APP CONFIG

Tenant records plus the per-tenant collaborators every engine service uses:
- document/payment numbering sequences
- audit log
"""

from django.apps import AppConfig


class TenantsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "tenants"
    verbose_name = "Tenants"
