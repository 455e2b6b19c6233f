# tenants/services/audit.py

"""
AUDIT LOGGER

log_action() is fire-and-forget: a failing audit write is logged and never
breaks the business operation that triggered it. The insert runs in its own
savepoint so a database error cannot poison the caller's transaction.
"""

from __future__ import annotations

import logging

from django.db import DatabaseError, transaction

from tenants.models import AuditLog


logger = logging.getLogger("audit")


def log_action(*, tenant, actor: str, action: str, area: str, message: str = "", metadata=None):
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                tenant=tenant,
                actor_email=(actor or "").strip(),
                action=action,
                area=area,
                message=message or "",
                metadata=metadata or {},
            )
    except (DatabaseError, TypeError, ValueError):
        logger.exception(
            "Audit log write failed",
            extra={
                "tenant_id": str(getattr(tenant, "id", "")),
                "action": action,
                "area": area,
            },
        )
        return None
