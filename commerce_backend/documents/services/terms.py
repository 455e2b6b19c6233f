# documents/services/terms.py

"""
DUE-DATE & AGING RESOLVER

resolve_due_date() turns a free-form payment terms string into a due date.
Rules are tried in order on the trimmed, case-insensitive text:

    "<N> day(s)" / "<N> jour(s)"         -> date + N days
    "end of month [+ N]" / "fin de mois" -> last day of the month, + N days
    cash / on receipt / comptant ...     -> date (due immediately)
    anything else, or no terms           -> date + DEFAULT_PAYMENT_DUE_DAYS

aging_bucket() classifies an amount by days past due. Both are pure and
never raise.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from django.conf import settings


BUCKET_0_30 = "0-30"
BUCKET_31_60 = "31-60"
BUCKET_61_90 = "61-90"
BUCKET_OVER_90 = ">90"

AGING_BUCKETS = (BUCKET_0_30, BUCKET_31_60, BUCKET_61_90, BUCKET_OVER_90)

# days_past_due reported for an amount without a due date
MISSING_DUE_DATE_DAYS = 999

_DAYS_RE = re.compile(r"(\d+)\s*(?:days?|jours?|j\b)", re.IGNORECASE)
_END_OF_MONTH_RE = re.compile(
    r"(?:end\s+of\s+(?:the\s+)?month|fin\s+de\s+mois|\beom\b)\s*(?:\+\s*(\d+))?",
    re.IGNORECASE,
)
_IMMEDIATE_RE = re.compile(
    r"cash|on\s+receipt|upon\s+receipt|immediate|comptant|r[ée]ception",
    re.IGNORECASE,
)


def _as_date(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def default_due_days() -> int:
    return int(getattr(settings, "DEFAULT_PAYMENT_DUE_DAYS", 30))


def end_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def resolve_due_date(document_date, payment_terms=None) -> date | None:
    """Due date for `document_date` under `payment_terms` (None if no date)."""
    doc_date = _as_date(document_date)
    if doc_date is None:
        return None

    terms = (payment_terms or "").strip().lower()
    if not terms:
        return doc_date + timedelta(days=default_due_days())

    match = _DAYS_RE.search(terms)
    if match:
        return doc_date + timedelta(days=int(match.group(1)))

    match = _END_OF_MONTH_RE.search(terms)
    if match:
        extra = int(match.group(1)) if match.group(1) else 0
        return end_of_month(doc_date) + timedelta(days=extra)

    if _IMMEDIATE_RE.search(terms):
        return doc_date

    return doc_date + timedelta(days=default_due_days())


@dataclass(frozen=True)
class AgingResult:
    bucket: str
    days_past_due: int


def aging_bucket(due_date, reference_date) -> AgingResult:
    """
    Bucket of an amount due on `due_date`, seen from `reference_date`.

    Not-yet-due amounts (negative days) land in "0-30"; a missing due date
    counts as maximally overdue.
    """
    due = _as_date(due_date)
    ref = _as_date(reference_date) or date.today()

    if due is None:
        return AgingResult(bucket=BUCKET_OVER_90, days_past_due=MISSING_DUE_DATE_DAYS)

    days = (ref - due).days

    if days <= 30:
        bucket = BUCKET_0_30
    elif days <= 60:
        bucket = BUCKET_31_60
    elif days <= 90:
        bucket = BUCKET_61_90
    else:
        bucket = BUCKET_OVER_90

    return AgingResult(bucket=bucket, days_past_due=days)
