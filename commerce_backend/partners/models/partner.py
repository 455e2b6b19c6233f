# partners/models/partner.py

import uuid

from django.db import models


class Partner(models.Model):
    """
    Shared shape of customers and suppliers (the document counterparties).

    Archived partners keep their history but drop out of balance reports.
    """

    UNKNOWN_LABEL = "Unknown"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey("tenants.Tenant", on_delete=models.CASCADE)

    code = models.CharField(max_length=50, blank=True, default="")
    name = models.CharField(max_length=255, blank=True, default="")
    first_name = models.CharField(max_length=100, blank=True, default="")
    last_name = models.CharField(max_length=100, blank=True, default="")

    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")

    payment_terms = models.CharField(max_length=100, blank=True, default="")

    is_archived = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ["name"]

    @property
    def display_name(self) -> str:
        if (self.name or "").strip():
            return self.name.strip()
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.UNKNOWN_LABEL

    def __str__(self):
        return self.display_name


class Customer(Partner):
    UNKNOWN_LABEL = "Unknown customer"

    class Meta(Partner.Meta):
        indexes = [models.Index(fields=["tenant", "is_archived"])]


class Supplier(Partner):
    UNKNOWN_LABEL = "Unknown supplier"

    class Meta(Partner.Meta):
        indexes = [models.Index(fields=["tenant", "is_archived"])]
