# tenants/models/number_sequence.py

import uuid

from django.db import models


class NumberSequence(models.Model):
    """
    Per-tenant counter behind a numbering template.

    Template tokens: {YYYY} {YY} {MM} {DD} {SEQ:n}
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="number_sequences",
    )
    key = models.CharField(max_length=50)
    template = models.CharField(max_length=100)
    last_value = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "key"],
                name="uniq_number_sequence_per_tenant_key",
            ),
        ]

    def __str__(self):
        return f"{self.key}: {self.template} @ {self.last_value}"
