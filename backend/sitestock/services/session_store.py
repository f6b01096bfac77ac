# Overview: Persistence of stocktake sessions and their lines.

"""
Session Store: the only module that reads and writes InventorySession and
InventorySessionItem rows. It never commits; the caller owns the unit of work.

(session_id, material_id) uniqueness is enforced by the database
(uq_inventory_session_items_session_material).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventorySession, InventorySessionItem, Material
from .concurrency import lock_for_update


def create_session(
    org_id: int,
    location_id: int,
    user_id: int,
    session_date: date,
    description: str | None,
) -> InventorySession:
    session = InventorySession(
        org_id=org_id,
        inventory_location_id=location_id,
        created_by_user_id=user_id,
        session_date=session_date,
        description=description,
        approved=False,
    )
    db.session.add(session)
    db.session.flush()  # Get ID
    return session


def get_session(session_id, org_id: int, *, for_update: bool = False) -> InventorySession | None:
    """Session of the organization (soft-deleted ones included), or None."""
    query = db.session.query(InventorySession).filter(
        InventorySession.id == session_id,
        InventorySession.org_id == org_id,
    )
    if for_update:
        query = lock_for_update(query)
    return query.first()


def list_items(session_id) -> list[InventorySessionItem]:
    """Lines ordered by material title."""
    return (
        db.session.query(InventorySessionItem)
        .join(Material, Material.id == InventorySessionItem.material_id)
        .filter(InventorySessionItem.session_id == session_id)
        .order_by(Material.title.asc(), InventorySessionItem.id.asc())
        .all()
    )


def get_item(session_id, material_id) -> InventorySessionItem | None:
    return db.session.query(InventorySessionItem).filter_by(
        session_id=session_id,
        material_id=material_id,
    ).first()


def upsert_item(session: InventorySession, material: Material) -> tuple[InventorySessionItem, bool]:
    """
    Insert the line with the material's current stock as system_qty.

    Returns (item, created). An existing line is returned untouched, also
    when a concurrent insert wins the unique constraint.
    """
    existing = get_item(session.id, material.id)
    if existing:
        return existing, False

    item = InventorySessionItem(
        session_id=session.id,
        material_id=material.id,
        system_qty=material.stock_qty if material.stock_qty is not None else Decimal("0"),
        counted_qty=None,
    )

    try:
        with db.session.begin_nested():
            db.session.add(item)
    except IntegrityError:
        return get_item(session.id, material.id), False

    return item, True


def delete_item(session_id, material_id) -> bool:
    """Delete the line. Returns False if it did not exist."""
    item = get_item(session_id, material_id)
    if not item:
        return False
    db.session.delete(item)
    db.session.flush()
    return True


def set_session_approved(session: InventorySession, approver_id: int, timestamp: datetime) -> InventorySession:
    session.approved = True
    session.approved_at = timestamp
    session.approved_by_user_id = approver_id
    db.session.flush()
    return session


def mark_session_deleted(session: InventorySession, timestamp: datetime) -> InventorySession:
    session.deleted_at = timestamp
    db.session.flush()
    return session


def approved_sessions_missing_counts(org_id: int | None = None) -> list[tuple[int, int, int]]:
    """
    (org_id, session_id, missing_count) for approved sessions that still
    hold uncounted lines, across all organizations unless org_id is given.
    """
    query = (
        db.session.query(InventorySession.org_id, InventorySession.id, func.count(InventorySessionItem.id))
        .join(InventorySessionItem, InventorySessionItem.session_id == InventorySession.id)
        .filter(
            InventorySession.approved.is_(True),
            InventorySessionItem.counted_qty.is_(None),
        )
    )
    if org_id is not None:
        query = query.filter(InventorySession.org_id == org_id)

    return (
        query.group_by(InventorySession.org_id, InventorySession.id)
        .order_by(InventorySession.org_id.asc(), InventorySession.id.asc())
        .all()
    )
