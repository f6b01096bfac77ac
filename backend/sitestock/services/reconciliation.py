# Overview: Reconciliation rules for stocktake sessions (pure functions, no database access).

"""
Diff policy and approval gate shared by the editor, the approval summary and
the inventory reports.

SIGN CONVENTION (reports depend on it):
    diff = counted - system
    None -> MISSING (no count yet)
    0    -> NEUTRAL
    > 0  -> SURPLUS (found more than expected)
    < 0  -> SHRINK  (found less than expected)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from sitestock.errors import ApprovalBlocked, InvalidQuantity
from sitestock.numbers import parse_decimal


DIFF_MISSING = "MISSING"
DIFF_NEUTRAL = "NEUTRAL"
DIFF_SURPLUS = "SURPLUS"
DIFF_SHRINK = "SHRINK"


def diff_quantity(system_qty: Optional[Decimal], counted_qty: Optional[Decimal]) -> Optional[Decimal]:
    """counted - system, or None while the line has not been counted."""
    if counted_qty is None or system_qty is None:
        return None
    return Decimal(counted_qty) - Decimal(system_qty)


def classify_diff(diff: Optional[Decimal]) -> str:
    if diff is None:
        return DIFF_MISSING
    if diff == 0:
        return DIFF_NEUTRAL
    if diff > 0:
        return DIFF_SURPLUS
    return DIFF_SHRINK


def normalize_counted_qty(value: Any) -> Optional[Decimal]:
    """
    Turn raw editor input into a counted quantity.

    Accepts numbers and strings with a decimal comma or point ("12,5" -> 12.5).
    Blank, unparsable and non-finite input means "not counted yet" (None).
    Raises InvalidQuantity for negative counts.
    """
    qty = parse_decimal(value)
    if qty is not None and qty < 0:
        raise InvalidQuantity(qty)
    return qty


@dataclass(frozen=True)
class LineTotals:
    total: int
    counted: int
    missing: int
    surplus: int
    shrink: int
    neutral: int
    net_diff: Decimal


def summarize_lines(items: Iterable) -> LineTotals:
    """Aggregate counts per diff class over session lines (objects with system_qty/counted_qty)."""
    total = counted = surplus = shrink = neutral = 0
    net_diff = Decimal("0")

    for item in items:
        total += 1
        diff = diff_quantity(item.system_qty, item.counted_qty)
        kind = classify_diff(diff)
        if kind == DIFF_MISSING:
            continue
        counted += 1
        net_diff += diff
        if kind == DIFF_SURPLUS:
            surplus += 1
        elif kind == DIFF_SHRINK:
            shrink += 1
        else:
            neutral += 1

    return LineTotals(
        total=total,
        counted=counted,
        missing=total - counted,
        surplus=surplus,
        shrink=shrink,
        neutral=neutral,
        net_diff=net_diff,
    )


def check_approval_gate(session_id, is_draft: bool, items: Iterable) -> None:
    """
    Raise ApprovalBlocked unless the session may be approved:
    it is a draft, has at least one line and no line is missing a count.
    """
    if not is_draft:
        raise ApprovalBlocked(session_id, ApprovalBlocked.NOT_DRAFT)

    totals = summarize_lines(items)
    if totals.total == 0:
        raise ApprovalBlocked(session_id, ApprovalBlocked.EMPTY_SESSION)
    if totals.missing:
        raise ApprovalBlocked(session_id, ApprovalBlocked.MISSING_COUNTS, missing_count=totals.missing)


def can_approve(is_draft: bool, items: Iterable) -> bool:
    try:
        check_approval_gate(None, is_draft, items)
    except ApprovalBlocked:
        return False
    return True
