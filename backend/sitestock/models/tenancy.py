from __future__ import annotations

from ..extensions import db
from sitestock.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: every tenant (account) is an Organization.

    All locations, materials, stocktake sessions and users belong to exactly
    one organization. No data may cross organization boundaries.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryLocation(db.Model):
    """
    Storage location (warehouse, container, site store) within an organization.

    A stocktake session is scoped to exactly one location. Locations are
    soft-deleted (deleted_at) so historical sessions keep their reference.
    """
    __tablename__ = "inventory_locations"
    __table_args__ = (
        db.UniqueConstraint("org_id", "label", name="uq_inventory_locations_org_label"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    label = db.Column(db.String(120), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    organization = db.relationship("Organization", backref=db.backref("locations", lazy=True))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<InventoryLocation id={self.id} label={self.label!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "label": self.label,
            "deleted_at": to_utc_z(self.deleted_at),
        }
