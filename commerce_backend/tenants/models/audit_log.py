# tenants/models/audit_log.py

import uuid

from django.db import models


class AuditLog(models.Model):
    """Append-only trail of business actions (who did what, where)."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="audit_logs",
    )
    actor_email = models.CharField(max_length=255, blank=True, default="")
    action = models.CharField(max_length=50)
    area = models.CharField(max_length=50)
    message = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["tenant", "area", "created_at"]),
        ]

    def __str__(self):
        return f"{self.action} [{self.area}] by {self.actor_email or 'system'}"
