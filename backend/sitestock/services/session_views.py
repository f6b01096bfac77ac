# Overview: Read models for the stocktake editor and the approval summary screens.

"""
Both views are computed from the same session lines and the same diff
policy (reconciliation.py), so the editor, the summary and the approval
gate can never disagree about what is missing.
"""

from __future__ import annotations

from sitestock.numbers import qty_to_json
from .inventory_session_service import get_session_details
from .permission_service import Actor
from .reconciliation import (
    DIFF_NEUTRAL,
    DIFF_SHRINK,
    DIFF_SURPLUS,
    classify_diff,
    summarize_lines,
)


def _line_dict(item) -> dict:
    diff = item.diff_qty
    material = item.material
    return {
        "material_id": item.material_id,
        "title": material.title if material else None,
        "unit": material.unit if material else None,
        "system_qty": qty_to_json(item.system_qty),
        "counted_qty": qty_to_json(item.counted_qty),
        "diff_qty": qty_to_json(diff),
        "diff_class": classify_diff(diff),
        "note": item.note,
    }


def editor_state(actor: Actor, session_id) -> dict:
    """Everything the count editor renders. Approved and deleted sessions are read-only."""
    session, items = get_session_details(actor, session_id)
    totals = summarize_lines(items)

    return {
        "session": session.to_dict(),
        "read_only": not session.is_draft,
        "lines": [_line_dict(item) for item in items],
        "total": totals.total,
        "counted": totals.counted,
        "missing": totals.missing,
    }


def approval_summary(actor: Actor, session_id) -> dict:
    session, items = get_session_details(actor, session_id)
    totals = summarize_lines(items)
    lines = [_line_dict(item) for item in items]

    has_items = totals.total > 0
    return {
        "session": session.to_dict(),
        "lines": lines,
        "missing_count": totals.missing,
        "has_items": has_items,
        "can_approve": has_items and totals.missing == 0 and session.is_draft,
        "surplus_lines": [line for line in lines if line["diff_class"] == DIFF_SURPLUS],
        "shrink_lines": [line for line in lines if line["diff_class"] == DIFF_SHRINK],
        "neutral_lines": [line for line in lines if line["diff_class"] == DIFF_NEUTRAL],
        "net_diff": qty_to_json(totals.net_diff),
    }
