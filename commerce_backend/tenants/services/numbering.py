# tenants/services/numbering.py

"""
NUMBERING SERVICE

Per-tenant sequences rendered through a small template language:

    {YYYY} {YY} {MM} {DD}   date parts of the numbering date
    {SEQ:n}                 counter, zero padded to n digits ({SEQ} = no padding)

The counter row is locked while it is incremented, so two requests can never
hand out the same number for the same (tenant, key).
"""

from __future__ import annotations

import logging
import re

from django.db import transaction
from django.utils import timezone

from tenants.models import NumberSequence


logger = logging.getLogger("numbering")


DEFAULT_TEMPLATES = {
    "quote": "QUO-{YYYY}-{SEQ:4}",
    "sales_order": "SO-{YYYY}-{SEQ:4}",
    "delivery_note": "DN-{YYYY}-{SEQ:4}",
    "invoice": "INV-{YYYY}-{SEQ:5}",
    "internal_invoice": "{SEQ:4}",
    "credit_note": "CN-{YYYY}-{SEQ:4}",
    "sales_return": "RET-{YYYY}-{SEQ:4}",
    "purchase_order": "PO-{YYYY}-{SEQ:4}",
    "goods_receipt": "GR-{YYYY}-{SEQ:4}",
    "purchase_invoice": "PINV-{YYYY}-{SEQ:5}",
    "supplier_credit_note": "SCN-{YYYY}-{SEQ:4}",
    "purchase_return": "RETP-{YYYY}-{SEQ:4}",
    "payment_customer": "PAY-{YYYY}-{SEQ:5}",
    "payment_supplier": "SPAY-{YYYY}-{SEQ:5}",
}

FALLBACK_TEMPLATE = "{SEQ:5}"

_TOKEN_RE = re.compile(r"\{(YYYY|YY|MM|DD|SEQ)(?::(\d+))?\}")
_TRAILING_DIGITS_RE = re.compile(r"(\d+)$")


def default_template(key: str) -> str:
    return DEFAULT_TEMPLATES.get(key, f"{key.upper()}-{FALLBACK_TEMPLATE}")


def render_template(template: str, value: int, on_date) -> str:
    def _sub(match):
        token, width = match.group(1), match.group(2)
        if token == "YYYY":
            return f"{on_date.year:04d}"
        if token == "YY":
            return f"{on_date.year % 100:02d}"
        if token == "MM":
            return f"{on_date.month:02d}"
        if token == "DD":
            return f"{on_date.day:02d}"
        return str(value).zfill(int(width)) if width else str(value)

    return _TOKEN_RE.sub(_sub, template)


@transaction.atomic
def next_number(*, tenant, key: str, on_date=None) -> str:
    """
    Allocate the next number of the (tenant, key) sequence.

    The sequence row is created on first use with the default template.
    """
    seq, created = NumberSequence.objects.get_or_create(
        tenant=tenant,
        key=key,
        defaults={"template": default_template(key)},
    )
    seq = NumberSequence.objects.select_for_update().get(pk=seq.pk)
    seq.last_value += 1
    seq.save(update_fields=["last_value", "updated_at"])

    number = render_template(seq.template, seq.last_value, on_date or timezone.localdate())

    logger.info(
        "Number allocated",
        extra={
            "tenant_id": str(tenant.id),
            "sequence_key": key,
            "sequence_created": created,
            "number": number,
        },
    )
    return number


def next_number_after(previous: str | None) -> str | None:
    """
    Increment the trailing numeric run of `previous`, keeping prefix and padding.

    "INV-2024-00041" -> "INV-2024-00042", "A99" -> "A100".
    Returns None when there is no previous number or it has no numeric suffix.
    """
    previous = (previous or "").strip()
    match = _TRAILING_DIGITS_RE.search(previous)
    if not match:
        return None

    digits = match.group(1)
    incremented = str(int(digits) + 1).zfill(len(digits))
    return previous[: match.start()] + incremented


def template_pattern(template: str):
    """Regex matching any number `template` can render; the SEQ part is group "seq"."""
    parts = []
    pos = 0
    named = False
    for match in _TOKEN_RE.finditer(template):
        parts.append(re.escape(template[pos : match.start()]))
        token = match.group(1)
        if token == "SEQ":
            parts.append(r"\d+" if named else r"(?P<seq>\d+)")
            named = True
        elif token == "YYYY":
            parts.append(r"\d{4}")
        else:
            parts.append(r"\d{2}")
        pos = match.end()
    parts.append(re.escape(template[pos:]))
    return re.compile("".join(parts))


@transaction.atomic
def advance_past(*, tenant, key: str, number: str) -> bool:
    """
    Move the (tenant, key) counter up to `number` when `number` has the
    sequence's shape but was handed out outside next_number (manual numbers,
    converted invoices). Returns True when the counter moved.
    """
    seq, _ = NumberSequence.objects.get_or_create(
        tenant=tenant,
        key=key,
        defaults={"template": default_template(key)},
    )
    match = template_pattern(seq.template).fullmatch((number or "").strip())
    if not match or "seq" not in match.groupdict():
        return False

    value = int(match.group("seq"))
    seq = NumberSequence.objects.select_for_update().get(pk=seq.pk)
    if value <= seq.last_value:
        return False

    seq.last_value = value
    seq.save(update_fields=["last_value", "updated_at"])

    logger.info(
        "Sequence advanced",
        extra={"tenant_id": str(tenant.id), "sequence_key": key, "number": number},
    )
    return True
