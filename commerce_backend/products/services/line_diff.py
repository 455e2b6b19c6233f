# products/services/line_diff.py

"""
Line snapshots and their diff, keyed by product.

Pure functions: the stock synchronizer derives every create / update /
delete from a (before, after) pair of snapshots and never reads movement
history to guess what changed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from tenants.services.identifiers import normalize_identifier


@dataclass(frozen=True)
class LineSnapshot:
    product_id: str
    quantity: Decimal
    description: str = ""


@dataclass(frozen=True)
class LineDiff:
    added: dict = field(default_factory=dict)
    removed: dict = field(default_factory=dict)
    changed: dict = field(default_factory=dict)
    unchanged: dict = field(default_factory=dict)

    @property
    def product_ids(self) -> list[str]:
        """Every product present before or after, in a stable order."""
        return sorted({*self.added, *self.removed, *self.changed, *self.unchanged})

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.changed)


def _get(line, name):
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def _quantity(value) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except (InvalidOperation, ValueError):
        return Decimal("0")


def snapshot_lines(lines) -> dict[str, LineSnapshot]:
    """
    Product-keyed view of document lines.

    Lines without a (parsable) product are service lines and are left out.
    Several lines for the same product add up to one snapshot.
    """
    snapshot: dict[str, LineSnapshot] = {}

    for line in lines or []:
        product_id = normalize_identifier(_get(line, "product_id") or _get(line, "product"))
        if not product_id:
            continue

        qty = _quantity(_get(line, "quantity"))
        description = _get(line, "description") or ""

        existing = snapshot.get(product_id)
        if existing is not None:
            qty += existing.quantity
            description = existing.description or description

        snapshot[product_id] = LineSnapshot(
            product_id=product_id,
            quantity=qty,
            description=description,
        )

    return snapshot


def _as_snapshot(lines) -> dict[str, LineSnapshot]:
    if isinstance(lines, Mapping) and all(isinstance(v, LineSnapshot) for v in lines.values()):
        return dict(lines)
    return snapshot_lines(lines)


def diff_lines(before, after) -> LineDiff:
    """
    Compare two line sets (raw lines or snapshots) by product id.

    changed maps product id -> (before snapshot, after snapshot).
    """
    old = _as_snapshot(before)
    new = _as_snapshot(after)

    added = {pid: snap for pid, snap in new.items() if pid not in old}
    removed = {pid: snap for pid, snap in old.items() if pid not in new}
    changed = {}
    unchanged = {}

    for pid in old.keys() & new.keys():
        if old[pid].quantity != new[pid].quantity:
            changed[pid] = (old[pid], new[pid])
        else:
            unchanged[pid] = new[pid]

    return LineDiff(added=added, removed=removed, changed=changed, unchanged=unchanged)
