# Overview: Service-layer operations for stocktake reporting; session list, shrink, audit and consistency reports.

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import case, func, or_

from ..extensions import db
from ..models import InventorySession, InventorySessionItem, Material, User
from sitestock.errors import InvalidSessionDate
from sitestock.numbers import qty_to_json
from sitestock.time_utils import parse_iso_date, to_iso_date
from . import session_store
from .permission_service import Actor, INVENTORY_READ, REPORTS_INVENTORY_READ
from .reconciliation import diff_quantity


MAX_PAGE_SIZE = 200
MAX_SERIES_DAYS = 366
CENT = Decimal("0.01")


def _clamp_limit(limit) -> int:
    if limit is None:
        return 50
    return min(max(int(limit), 1), MAX_PAGE_SIZE)


def _parse_day(value) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise InvalidSessionDate(value)


def _session_row(session: InventorySession, username: str | None) -> dict:
    row = session.to_dict()
    row["created_by_username"] = username
    return row


def list_sessions(
    actor: Actor,
    date_from=None,
    date_to=None,
    q: str | None = None,
    approved: bool | None = None,
    include_deleted: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[dict], int]:
    """
    Stocktake sessions of the actor's organization, newest first.

    q matches the description or the creator's username (case-insensitive).
    Returns (rows, total) where total ignores limit/offset.
    """
    actor.require(REPORTS_INVENTORY_READ, INVENTORY_READ)

    start = _parse_day(date_from)
    end = _parse_day(date_to)
    limit = _clamp_limit(limit)
    offset = max(int(offset or 0), 0)

    query = (
        db.session.query(InventorySession, User.username)
        .outerjoin(User, User.id == InventorySession.created_by_user_id)
        .filter(InventorySession.org_id == actor.org_id)
    )

    if not include_deleted:
        query = query.filter(InventorySession.deleted_at.is_(None))
    if approved is not None:
        query = query.filter(InventorySession.approved.is_(bool(approved)))
    if start:
        query = query.filter(InventorySession.session_date >= start)
    if end:
        query = query.filter(InventorySession.session_date <= end)

    needle = (q or "").strip().lower()
    if needle:
        query = query.filter(
            or_(
                func.lower(InventorySession.description).contains(needle, autoescape=True),
                func.lower(User.username).contains(needle, autoescape=True),
            )
        )

    total = query.count()
    rows = (
        query.order_by(InventorySession.session_date.desc(), InventorySession.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [_session_row(session, username) for session, username in rows], total


def _line_value(qty: Decimal | None, unit_price) -> Decimal | None:
    if qty is None or unit_price is None:
        return None
    return qty * Decimal(unit_price)


def _money_to_json(value) -> float | None:
    """SQL sums come back as float on SQLite; round them to cents."""
    if value is None:
        return None
    return float(Decimal(str(value)).quantize(CENT))


def _approved_lines(actor: Actor):
    """Lines of the tenant's approved, non-deleted sessions (joined with session and material)."""
    return (
        db.session.query(InventorySessionItem, InventorySession, Material)
        .join(InventorySession, InventorySession.id == InventorySessionItem.session_id)
        .join(Material, Material.id == InventorySessionItem.material_id)
        .filter(
            InventorySession.org_id == actor.org_id,
            InventorySession.approved.is_(True),
            InventorySession.deleted_at.is_(None),
        )
    )


def inventory_deltas(actor: Actor, location_id=None, limit: int = 50) -> list[dict]:
    """
    Lines of approved stocktakes where the count differed from the system.

    loss_qty = max(0, system - counted); loss_value = loss_qty * unit_price
    (None for unpriced materials). Largest loss value first. Ordering and
    limit run in the database.
    """
    actor.require(REPORTS_INVENTORY_READ, INVENTORY_READ)
    limit = _clamp_limit(limit)

    system_qty = InventorySessionItem.system_qty
    counted_qty = InventorySessionItem.counted_qty
    loss_qty = case((system_qty > counted_qty, system_qty - counted_qty), else_=0)
    loss_value = loss_qty * Material.unit_price

    query = _approved_lines(actor).filter(
        counted_qty.isnot(None),
        counted_qty != system_qty,
    )
    if location_id is not None:
        query = query.filter(InventorySession.inventory_location_id == location_id)

    query = query.order_by(
        func.coalesce(loss_value, 0).desc(),
        loss_qty.desc(),
        InventorySession.session_date.desc(),
        InventorySessionItem.id.asc(),
    ).limit(limit)

    rows = []
    for item, session, material in query.all():
        system = Decimal(item.system_qty)
        counted = Decimal(item.counted_qty)
        loss = max(Decimal("0"), system - counted)

        rows.append({
            "session_id": session.id,
            "session_date": to_iso_date(session.session_date),
            "inventory_location_id": session.inventory_location_id,
            "material_id": material.id,
            "title": material.title,
            "unit": material.unit,
            "system_qty": qty_to_json(system),
            "counted_qty": qty_to_json(counted),
            "diff_qty": qty_to_json(diff_quantity(system, counted)),
            "loss_qty": qty_to_json(loss),
            "unit_price": qty_to_json(material.unit_price),
            "loss_value": qty_to_json(_line_value(loss, material.unit_price)),
        })
    return rows


def session_audit(
    actor: Actor,
    date_from=None,
    date_to=None,
    location_id=None,
    limit: int = 50,
) -> dict:
    """
    Value impact of approved stocktakes, newest first.

    Per line: delta_value_est = (counted - system) * unit_price (None when
    unpriced). Per session: loss_value_est sums the negative line values
    (as a positive amount), gain_value_est the positive ones, and
    shrink_value_est = loss - gain.

    Returns {"sessions": [...], "items_by_session": {session_id: [...]}};
    lines are sorted by absolute value impact, largest first.
    """
    actor.require(REPORTS_INVENTORY_READ, INVENTORY_READ)
    start = _parse_day(date_from)
    end = _parse_day(date_to)
    limit = _clamp_limit(limit)

    query = (
        db.session.query(InventorySession, User)
        .outerjoin(User, User.id == InventorySession.created_by_user_id)
        .filter(
            InventorySession.org_id == actor.org_id,
            InventorySession.approved.is_(True),
            InventorySession.deleted_at.is_(None),
        )
    )
    if start:
        query = query.filter(InventorySession.session_date >= start)
    if end:
        query = query.filter(InventorySession.session_date <= end)
    if location_id is not None:
        query = query.filter(InventorySession.inventory_location_id == location_id)

    sessions = (
        query.order_by(InventorySession.session_date.desc(), InventorySession.id.desc())
        .limit(limit)
        .all()
    )
    if not sessions:
        return {"sessions": [], "items_by_session": {}}

    session_ids = [session.id for session, _ in sessions]
    lines = (
        db.session.query(InventorySessionItem, Material)
        .join(Material, Material.id == InventorySessionItem.material_id)
        .filter(InventorySessionItem.session_id.in_(session_ids))
        .all()
    )

    items_by_session = {session_id: [] for session_id in session_ids}
    totals = {session_id: {"loss": Decimal("0"), "gain": Decimal("0")} for session_id in session_ids}

    for item, material in lines:
        delta = diff_quantity(item.system_qty, item.counted_qty)
        value = _line_value(delta, material.unit_price)
        if value is not None:
            if value < 0:
                totals[item.session_id]["loss"] += -value
            else:
                totals[item.session_id]["gain"] += value

        items_by_session[item.session_id].append({
            "session_id": item.session_id,
            "material_id": material.id,
            "title": material.title,
            "unit": material.unit,
            "system_qty": qty_to_json(item.system_qty),
            "counted_qty": qty_to_json(item.counted_qty),
            "unit_price": qty_to_json(material.unit_price),
            "delta_value_est": qty_to_json(value),
        })

    for rows in items_by_session.values():
        rows.sort(key=lambda r: (-abs(r["delta_value_est"] or 0), r["title"]))

    session_rows = []
    for session, user in sessions:
        loss = totals[session.id]["loss"]
        gain = totals[session.id]["gain"]
        session_rows.append({
            "session_id": session.id,
            "session_date": to_iso_date(session.session_date),
            "inventory_location_id": session.inventory_location_id,
            "created_by": session.created_by_user_id,
            "person": user.display_name if user else None,
            "shrink_value_est": qty_to_json(loss - gain),
            "loss_value_est": qty_to_json(loss),
            "gain_value_est": qty_to_json(gain),
        })

    return {"sessions": session_rows, "items_by_session": items_by_session}


def shrink_series(actor: Actor, date_from, date_to, location_id=None) -> list[dict]:
    """
    Daily estimated shrink value of approved stocktakes over [date_from, date_to].

    One point per day: shrink_value_est = sum((system - counted) * unit_price)
    over the priced lines of that day's sessions, None on days without any.
    Ranges longer than MAX_SERIES_DAYS keep the most recent days.
    """
    actor.require(REPORTS_INVENTORY_READ, INVENTORY_READ)
    start = _parse_day(date_from)
    end = _parse_day(date_to)
    if start is None:
        raise InvalidSessionDate(date_from)
    if end is None:
        raise InvalidSessionDate(date_to)
    if end < start:
        return []
    start = max(start, end - timedelta(days=MAX_SERIES_DAYS - 1))

    shrink_value = func.sum(
        (InventorySessionItem.system_qty - InventorySessionItem.counted_qty) * Material.unit_price
    )
    query = (
        _approved_lines(actor)
        .with_entities(InventorySession.session_date, shrink_value)
        .filter(
            InventorySession.session_date >= start,
            InventorySession.session_date <= end,
            InventorySessionItem.counted_qty.isnot(None),
            Material.unit_price.isnot(None),
        )
        .group_by(InventorySession.session_date)
    )
    if location_id is not None:
        query = query.filter(InventorySession.inventory_location_id == location_id)

    by_day = {day: value for day, value in query.all()}

    points = []
    day = start
    while day <= end:
        points.append({"bucket": to_iso_date(day), "shrink_value_est": _money_to_json(by_day.get(day))})
        day += timedelta(days=1)
    return points


def approved_sessions_missing_counts(actor: Actor) -> list[dict]:
    """
    Consistency check over stored data: approved sessions that still have
    lines without a counted quantity. Always empty when every approval went
    through the gate.
    """
    actor.require(REPORTS_INVENTORY_READ, INVENTORY_READ)

    rows = session_store.approved_sessions_missing_counts(actor.org_id)
    return [{"session_id": session_id, "missing_count": count} for _, session_id, count in rows]
