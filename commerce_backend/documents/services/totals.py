# documents/services/totals.py

"""
TOTALS CALCULATOR

Cascading discount / levy / tax model, order matters:

1. line base        = unit_price x (1 - line_discount/100) x quantity
2. base (HT)        = sum(line base) x (1 - global_discount/100)
3. levy             = base x levy_rate/100 (computed on the discounted base)
4. tax, per line    = (line base x global factor + line levy share) x line tax/100
5. grand total      = base + levy + tax + stamp duty
6. document totals are rounded to 2 dp after summation, never per line

Pure: no I/O, never raises on missing numbers (they count as zero), and
re-running it on unchanged inputs reproduces the same totals.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings


TWOPLACES = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def _dec(v) -> Decimal:
    if v is None or v == "":
        return ZERO
    try:
        return Decimal(str(v))
    except (InvalidOperation, ValueError, TypeError):
        return ZERO


def _money(v) -> Decimal:
    return _dec(v).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _line_value(line, name):
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


@dataclass(frozen=True)
class DocumentTotals:
    base_amount: Decimal
    levy_amount: Decimal
    tax_amount: Decimal
    stamp_duty: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict:
        return {
            "base_amount": str(self.base_amount),
            "levy_amount": str(self.levy_amount),
            "tax_amount": str(self.tax_amount),
            "stamp_duty": str(self.stamp_duty),
            "total_amount": str(self.total_amount),
        }


def default_levy_rate() -> Decimal:
    return _dec(getattr(settings, "DEFAULT_LEVY_RATE_PCT", "1"))


def compute_totals(
    lines,
    *,
    global_discount_pct=0,
    levy_enabled: bool = False,
    levy_rate_pct=None,
    stamp_duty=0,
) -> DocumentTotals:
    """
    Totals for `lines` (model instances or mappings exposing quantity,
    unit_price, discount_pct, tax_pct and optionally levy_pct).

    levy_pct on a line overrides the document levy rate for that line's
    levy share; the document levy is the sum of the shares, which equals
    base x rate when no line overrides it.

    With no lines every amount is 0 but stamp_duty is echoed back, so
    total_amount != base + levy + tax + stamp in that one case.
    """
    lines = list(lines or [])
    stamp = _dec(stamp_duty)

    if not lines:
        return DocumentTotals(
            base_amount=_money(0),
            levy_amount=_money(0),
            tax_amount=_money(0),
            stamp_duty=stamp,
            total_amount=_money(0),
        )

    global_factor = 1 - _dec(global_discount_pct) / HUNDRED

    doc_levy_rate = ZERO
    if levy_enabled:
        doc_levy_rate = default_levy_rate() if levy_rate_pct in (None, "") else _dec(levy_rate_pct)

    sum_line_base = ZERO
    levy_total = ZERO
    tax_total = ZERO

    for line in lines:
        quantity = _dec(_line_value(line, "quantity"))
        unit_price = _dec(_line_value(line, "unit_price"))
        discount = _dec(_line_value(line, "discount_pct"))
        tax_pct = _dec(_line_value(line, "tax_pct"))

        line_base = unit_price * (1 - discount / HUNDRED) * quantity
        sum_line_base += line_base

        line_after_global = line_base * global_factor

        line_levy = ZERO
        if levy_enabled:
            override = _line_value(line, "levy_pct")
            rate = doc_levy_rate if override in (None, "") else _dec(override)
            line_levy = line_after_global * rate / HUNDRED
        levy_total += line_levy

        tax_total += (line_after_global + line_levy) * tax_pct / HUNDRED

    base_amount = _money(sum_line_base * global_factor)
    levy_amount = _money(levy_total)
    tax_amount = _money(tax_total)

    return DocumentTotals(
        base_amount=base_amount,
        levy_amount=levy_amount,
        tax_amount=tax_amount,
        stamp_duty=stamp,
        total_amount=_money(base_amount + levy_amount + tax_amount + stamp),
    )


def apply_totals(document, lines=None):
    """
    Write computed totals onto `document` (not saved).

    `lines` defaults to the document's persisted lines; pass unsaved line
    objects when the document is being built.
    """
    if lines is None:
        lines = list(document.lines.all()) if document.pk and not document._state.adding else []

    totals = compute_totals(
        lines,
        global_discount_pct=document.global_discount_pct,
        levy_enabled=document.levy_enabled,
        levy_rate_pct=document.levy_rate_pct if document.levy_enabled else None,
        stamp_duty=document.stamp_duty,
    )

    document.base_amount = totals.base_amount
    document.levy_amount = totals.levy_amount
    document.tax_amount = totals.tax_amount
    document.total_amount = totals.total_amount
    return document
