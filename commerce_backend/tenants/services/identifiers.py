# tenants/services/identifiers.py

"""
Canonical identifier parsing.

Every reference coming from a request, a line payload or a model instance
(products, documents, invoices, counterparties) goes through
normalize_identifier() so lookups only ever compare one string form.
"""

from __future__ import annotations

import uuid


def normalize_identifier(value) -> str | None:
    """
    UUID / str / model instance -> lower-case canonical UUID string.

    Returns None for empty or unparsable values.
    """
    if value is None:
        return None

    if isinstance(value, uuid.UUID):
        return str(value)

    if not isinstance(value, (str, bytes, int)):
        pk = getattr(value, "pk", None)
        if pk is None:
            return None
        return normalize_identifier(pk)

    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")

    text = str(value).strip()
    if not text:
        return None

    try:
        return str(uuid.UUID(text))
    except ValueError:
        return None
