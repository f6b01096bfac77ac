# Overview: Location directory; read-only lookup of storage locations a stocktake can be scoped to.

from __future__ import annotations

from ..extensions import db
from ..models import InventoryLocation, Material
from sitestock.errors import InvalidLocation
from .permission_service import Actor, INVENTORY_MANAGE, MATERIALS_READ


def find_location(org_id: int, location_id) -> InventoryLocation | None:
    """Active location of the organization, or None."""
    return db.session.query(InventoryLocation).filter(
        InventoryLocation.id == location_id,
        InventoryLocation.org_id == org_id,
        InventoryLocation.deleted_at.is_(None),
    ).first()


def get_location(actor: Actor, location_id) -> InventoryLocation:
    """
    Return the location or raise InvalidLocation.

    Locations of other organizations are reported exactly like missing ones.
    """
    actor.require(MATERIALS_READ, INVENTORY_MANAGE)

    location = find_location(actor.org_id, location_id)
    if location is None:
        raise InvalidLocation(location_id)
    return location


def list_locations(
    actor: Actor,
    include_deleted: bool = False,
    only_with_materials: bool = True,
) -> list[InventoryLocation]:
    """
    Locations of the actor's organization, ordered by label.

    only_with_materials keeps locations holding at least one non-deleted material.
    """
    actor.require(MATERIALS_READ, INVENTORY_MANAGE)

    query = db.session.query(InventoryLocation).filter(InventoryLocation.org_id == actor.org_id)

    if not include_deleted:
        query = query.filter(InventoryLocation.deleted_at.is_(None))

    if only_with_materials:
        stocked = db.session.query(Material.inventory_location_id).filter(
            Material.org_id == actor.org_id,
            Material.deleted_at.is_(None),
        )
        query = query.filter(InventoryLocation.id.in_(stocked))

    return query.order_by(InventoryLocation.label.asc()).all()
