"""
DOCUMENT LIFECYCLE DOMAIN RULES

The ONLY allowed status transitions for commercial documents, plus the
payment-driven status of invoices.

DESIGN PRINCIPLES:
- No database writes
- No stock or payment side effects
- Single source of truth
"""

from decimal import Decimal

from django.conf import settings

from documents.models import CommercialDocument
from documents.services.exceptions import ImmutableStateError


Status = CommercialDocument.Status

# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Status.CANCELLED,
}

ALLOWED_TRANSITIONS = {
    Status.DRAFT: {
        Status.VALIDATED,
        Status.CANCELLED,
    },
    # VALIDATED -> CANCELLED only while no payment references the document
    # (enforced by the document service).
    Status.VALIDATED: {
        Status.PARTIALLY_PAID,
        Status.PAID,
        Status.CANCELLED,
    },
    Status.PARTIALLY_PAID: {
        Status.VALIDATED,
        Status.PAID,
    },
    Status.PAID: {
        Status.VALIDATED,
        Status.PARTIALLY_PAID,
    },
}


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, document: CommercialDocument, target_status: str):
    if not can_transition(from_status=document.status, to_status=target_status):
        raise ImmutableStateError(
            f"Document {document.number} cannot transition from "
            f"'{document.status}' to '{target_status}'"
        )


def payment_status_for(*, total, paid) -> str:
    """Invoice status implied by the amount paid against its total."""
    tolerance = Decimal(str(getattr(settings, "PAYMENT_TOLERANCE", "0.001")))
    total = Decimal(str(total or 0))
    paid = Decimal(str(paid or 0))

    if total > 0 and paid >= total - tolerance:
        return Status.PAID
    if paid > 0:
        return Status.PARTIALLY_PAID
    return Status.VALIDATED
