# Overview: Stocktake session lifecycle; the reconciliation engine.

"""
Stocktake (inventory session) reconciliation engine.

LIFECYCLE:
1. DRAFT: session bound to one storage location; lines added/removed,
   counted quantities entered
2. APPROVED: gated commit; counted quantities overwrite live stock (terminal)
3. DELETED: soft delete of a draft (terminal)

Every operation takes the caller's Actor, checks INVENTORY_MANAGE before
touching state, scopes lookups to actor.org_id and runs as one unit of work:
commit on success, rollback on any failure. Backing-store errors are logged
with the operation name and ids and re-raised as StoreFailure.

Concurrent edits of one draft by two users are last-write-wins per line.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventorySession, InventorySessionItem, Material
from sitestock.errors import (
    InvalidSessionDate,
    InventorySessionError,
    MaterialNotEligible,
    PermissionDenied,
    SessionAlreadyApproved,
    SessionItemNotFound,
    SessionNotFound,
    StoreFailure,
)
from sitestock.time_utils import parse_iso_date, today, utcnow
from . import session_store, stock_service
from .concurrency import run_with_retry
from .location_service import get_location
from .permission_service import Actor, INVENTORY_MANAGE, INVENTORY_READ, REPORTS_INVENTORY_READ
from .reconciliation import check_approval_gate, normalize_counted_qty


StockAdjuster = Callable[[InventorySession, list, int], Any]


@dataclass(frozen=True)
class AddItemOutcome:
    item: InventorySessionItem
    inserted: bool  # False when the line already existed


@dataclass(frozen=True)
class BulkAddResult:
    attempted: int
    inserted: int
    skipped: int

    def to_dict(self) -> dict:
        return {"attempted": self.attempted, "inserted": self.inserted, "skipped": self.skipped}


def _log_store_failure(operation: str, context: dict) -> None:
    current_app.logger.exception("Inventory session %s failed (%s)", operation, context)


def _run(operation: str, func, **context):
    """
    Run func and its commit as one unit of work.

    A lock or deadlock error in either replays the whole unit; a commit is
    never retried on its own.
    """
    def _unit():
        result = func()
        db.session.commit()
        return result

    try:
        return run_with_retry(_unit)
    except InventorySessionError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        _log_store_failure(operation, context)
        raise StoreFailure(operation, **context) from exc


def _require_access(actor: Actor) -> None:
    if not actor.has_inventory_access:
        raise PermissionDenied(INVENTORY_MANAGE)


def _load_session(actor: Actor, session_id, *, for_update: bool = False) -> InventorySession:
    session = session_store.get_session(session_id, actor.org_id, for_update=for_update)
    if session is None:
        raise SessionNotFound(session_id)
    return session


def _load_draft_session(actor: Actor, session_id, *, for_update: bool = False) -> InventorySession:
    session = _load_session(actor, session_id, for_update=for_update)
    if not session.is_draft:
        raise SessionAlreadyApproved(session.id, session.state)
    return session


def _eligible_material(session: InventorySession, material_id) -> Material:
    """Re-fetch the material; client-side state is never trusted."""
    material = db.session.query(Material).filter_by(id=material_id, org_id=session.org_id).first()
    if material is None:
        raise MaterialNotEligible(session.id, material_id, "not_found")
    if material.is_deleted:
        raise MaterialNotEligible(session.id, material_id, "deleted")
    if material.inventory_location_id != session.inventory_location_id:
        raise MaterialNotEligible(session.id, material_id, "wrong_location")
    return material


def _coerce_session_date(value) -> date:
    if value is None:
        return today()
    if isinstance(value, date):
        return value
    try:
        parsed = parse_iso_date(str(value))
    except ValueError:
        raise InvalidSessionDate(value)
    return parsed or today()


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def open_session(
    actor: Actor,
    location_id,
    session_date: date | str | None = None,
    description: str | None = None,
) -> InventorySession:
    """
    Open a draft session bound to a storage location.

    Raises:
        PermissionDenied, InvalidLocation, InvalidSessionDate, StoreFailure
    """
    _require_access(actor)
    day = _coerce_session_date(session_date)
    text = _clean_text(description)

    def _op():
        location = get_location(actor, location_id)
        return session_store.create_session(
            org_id=actor.org_id,
            location_id=location.id,
            user_id=actor.user_id,
            session_date=day,
            description=text,
        )

    return _run("open_session", _op, location_id=location_id, user_id=actor.user_id)


def add_item(actor: Actor, session_id, material_id) -> AddItemOutcome:
    """
    Add a material line, snapshotting its current stock as system_qty.

    Adding a material twice is not an error: the existing line is
    returned with inserted=False.

    Raises:
        PermissionDenied, SessionNotFound, SessionAlreadyApproved,
        MaterialNotEligible, StoreFailure
    """
    _require_access(actor)

    def _op():
        session = _load_draft_session(actor, session_id)
        material = _eligible_material(session, material_id)
        item, created = session_store.upsert_item(session, material)
        return AddItemOutcome(item=item, inserted=created)

    return _run("add_item", _op, session_id=session_id, material_id=material_id)


def add_all_eligible_items(actor: Actor, session_id) -> BulkAddResult:
    """
    Add every non-deleted material of the session's location.

    Best effort, not a transaction: inserts are committed chunk by chunk,
    existing lines are skipped, and a failed insert never cancels its
    siblings. Safe to re-run.
    """
    _require_access(actor)
    config = current_app.config
    chunk_size = max(1, int(config.get("INVENTORY_BULK_CHUNK_SIZE", 40)))
    max_materials = int(config.get("INVENTORY_BULK_MAX_MATERIALS", 5000))

    def _op():
        session = _load_draft_session(actor, session_id)

        materials = (
            db.session.query(Material)
            .filter(
                Material.org_id == session.org_id,
                Material.inventory_location_id == session.inventory_location_id,
                Material.deleted_at.is_(None),
            )
            .order_by(Material.title.asc())
            .limit(max_materials)
            .all()
        )

        attempted = inserted = 0
        for start in range(0, len(materials), chunk_size):
            for material in materials[start:start + chunk_size]:
                attempted += 1
                try:
                    _, created = session_store.upsert_item(session, material)
                except SQLAlchemyError:
                    current_app.logger.warning(
                        "Skipped material %s while adding all items to inventory session %s",
                        material.id, session.id, exc_info=True,
                    )
                    continue
                if created:
                    inserted += 1
            db.session.commit()

        return BulkAddResult(attempted=attempted, inserted=inserted, skipped=attempted - inserted)

    return _run("add_all_eligible_items", _op, session_id=session_id)


def remove_item(actor: Actor, session_id, material_id) -> bool:
    """Remove a line from a draft. Returns False (no-op) when it is not there."""
    _require_access(actor)

    def _op():
        session = _load_draft_session(actor, session_id)
        return session_store.delete_item(session.id, material_id)

    return _run("remove_item", _op, session_id=session_id, material_id=material_id)


_UNSET = object()


def update_item(actor: Actor, session_id, material_id, *, counted_qty=_UNSET, note=_UNSET) -> InventorySessionItem:
    """
    Update the counted quantity and/or the note of a line in one unit of work.

    counted_qty is normalized first ("12,5" -> 12.5; blank or unparsable ->
    None, i.e. not counted yet). Only the raw count is stored; the diff is
    derived on read. Fields left unset are not touched.

    Raises:
        PermissionDenied, InvalidQuantity, SessionNotFound,
        SessionAlreadyApproved, SessionItemNotFound, StoreFailure
    """
    _require_access(actor)
    changes = {}
    if counted_qty is not _UNSET:
        changes["counted_qty"] = normalize_counted_qty(counted_qty)
    if note is not _UNSET:
        changes["note"] = _clean_text(note)

    def _op():
        session = _load_draft_session(actor, session_id)
        item = session_store.get_item(session.id, material_id)
        if item is None:
            raise SessionItemNotFound(session.id, material_id)
        for field, value in changes.items():
            setattr(item, field, value)
        db.session.flush()
        return item

    return _run("update_item", _op, session_id=session_id, material_id=material_id)


def set_counted_qty(actor: Actor, session_id, material_id, value) -> InventorySessionItem:
    """Store the counted quantity of a line (see update_item)."""
    return update_item(actor, session_id, material_id, counted_qty=value)


def set_item_note(actor: Actor, session_id, material_id, note: str | None) -> InventorySessionItem:
    return update_item(actor, session_id, material_id, note=note)


def approve(actor: Actor, session_id, stock_adjuster: StockAdjuster | None = None) -> InventorySession:
    """
    Approve the session and overwrite live stock with the counted quantities.

    Gate: draft, at least one line, no missing count (ApprovalBlocked
    otherwise). The approval flag and the stock writes share one
    transaction with the session row locked; any failure rolls both back
    and the session stays a draft. Check the session is still a draft
    before retrying.

    Raises:
        PermissionDenied, SessionNotFound, ApprovalBlocked, StoreFailure
    """
    _require_access(actor)
    adjuster = stock_adjuster or stock_service.apply_counted_quantities

    def _op():
        session = _load_session(actor, session_id, for_update=True)
        items = session_store.list_items(session.id)
        check_approval_gate(session.id, session.is_draft, items)

        try:
            session_store.set_session_approved(session, actor.user_id, utcnow())
            adjuster(session, items, actor.user_id)
            db.session.flush()
        except (InventorySessionError, SQLAlchemyError):
            raise
        except Exception as exc:
            db.session.rollback()
            context = {"session_id": session_id, "user_id": actor.user_id}
            _log_store_failure("approve", context)
            raise StoreFailure("approve", **context) from exc

        return session

    return _run("approve", _op, session_id=session_id, user_id=actor.user_id)


def delete_session(actor: Actor, session_id) -> InventorySession:
    """
    Soft-delete a draft session. Approved sessions cannot be deleted.

    Raises:
        PermissionDenied, SessionNotFound, SessionAlreadyApproved, StoreFailure
    """
    _require_access(actor)

    def _op():
        session = _load_draft_session(actor, session_id, for_update=True)
        return session_store.mark_session_deleted(session, utcnow())

    return _run("delete_session", _op, session_id=session_id)


def get_session_details(actor: Actor, session_id) -> tuple[InventorySession, list[InventorySessionItem]]:
    """
    Session meta and lines (ordered by material title).

    Meta is returned even when the session has no lines.
    """
    actor.require(INVENTORY_MANAGE, INVENTORY_READ, REPORTS_INVENTORY_READ)

    try:
        session = _load_session(actor, session_id)
        items = session_store.list_items(session.id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        _log_store_failure("get_session_details", {"session_id": session_id})
        raise StoreFailure("get_session_details", session_id=session_id) from exc

    return session, items
