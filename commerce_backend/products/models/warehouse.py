# products/models/warehouse.py

import uuid

from django.db import models


class Warehouse(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="warehouses",
    )
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=255)
    is_default = models.BooleanField(default=False)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "code"],
                name="uniq_warehouse_code_per_tenant",
            ),
        ]

    def __str__(self):
        return f"{self.code} | {self.name}"
