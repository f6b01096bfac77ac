# Overview: Typeahead search of materials eligible for a stocktake session.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Material
from sitestock.errors import SessionNotFound
from . import session_store
from .permission_service import Actor, INVENTORY_MANAGE


@dataclass(frozen=True)
class MaterialOption:
    id: int
    title: str
    unit: str | None

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "unit": self.unit}


def search_materials(actor: Actor, session_id, query_text: str | None, limit: int | None = None) -> list[MaterialOption]:
    """
    Non-deleted materials of the session's location whose title contains
    query_text (case-insensitive), ordered by title.

    The location always comes from the session row. LIKE wildcards typed by
    the user match literally.
    """
    actor.require(INVENTORY_MANAGE)

    session = session_store.get_session(session_id, actor.org_id)
    if session is None:
        raise SessionNotFound(session_id)

    if limit is None:
        limit = current_app.config.get("MATERIAL_SEARCH_LIMIT", 20)
    limit = max(1, int(limit))

    query = db.session.query(Material.id, Material.title, Material.unit).filter(
        Material.org_id == actor.org_id,
        Material.inventory_location_id == session.inventory_location_id,
        Material.deleted_at.is_(None),
    )

    needle = (query_text or "").strip()
    if needle:
        query = query.filter(func.lower(Material.title).contains(needle.lower(), autoescape=True))

    rows = query.order_by(Material.title.asc(), Material.id.asc()).limit(limit).all()
    return [MaterialOption(id=row.id, title=row.title, unit=row.unit) for row in rows]
