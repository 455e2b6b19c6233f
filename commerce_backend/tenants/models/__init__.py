from .tenant import Tenant
from .number_sequence import NumberSequence
from .audit_log import AuditLog

__all__ = ["Tenant", "NumberSequence", "AuditLog"]
