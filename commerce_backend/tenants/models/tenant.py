# tenants/models/tenant.py

import uuid

from django.db import models


class Tenant(models.Model):
    """
    One company using the platform.

    Every document, movement, payment and partner row hangs off a tenant;
    services always receive the tenant explicitly and filter by it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    code = models.CharField(max_length=50, unique=True)

    currency = models.CharField(max_length=10, default="TND")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code})"
