# documents/apps.py

"""
DOCUMENTS APP CONFIG

Commercial documents (quotes → invoices, purchase side, returns) and the
engine pieces that act on them: totals, payment terms / aging, lifecycle,
provisional → official conversion.
"""

from django.apps import AppConfig


class DocumentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "documents"
    verbose_name = "Commercial Documents"
