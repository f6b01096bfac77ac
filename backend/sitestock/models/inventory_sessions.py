from __future__ import annotations

from ..extensions import db
from sitestock.numbers import qty_to_json
from sitestock.services.reconciliation import diff_quantity, classify_diff
from sitestock.time_utils import to_iso_date, to_utc_z


SESSION_STATE_DRAFT = "DRAFT"
SESSION_STATE_APPROVED = "APPROVED"
SESSION_STATE_DELETED = "DELETED"


class InventorySession(db.Model):
    """
    Stocktake session: one counting attempt scoped to one storage location.

    LIFECYCLE:
    1. DRAFT: lines are added/removed and counted quantities entered
    2. APPROVED: counted quantities overwrote live stock (terminal)
    3. DELETED: soft-deleted while still a draft (terminal)

    inventory_location_id is fixed at creation. Every line's material
    belonged to that location when it was added.
    """
    __tablename__ = "inventory_sessions"
    __table_args__ = (
        db.Index("ix_inventory_sessions_org_date", "org_id", "session_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    inventory_location_id = db.Column(
        db.Integer, db.ForeignKey("inventory_locations.id"), nullable=False, index=True
    )

    session_date = db.Column(db.Date, nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    approved = db.Column(db.Boolean, nullable=False, default=False, index=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    location = db.relationship("InventoryLocation")
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    @property
    def state(self) -> str:
        if self.approved:
            return SESSION_STATE_APPROVED
        if self.deleted_at is not None:
            return SESSION_STATE_DELETED
        return SESSION_STATE_DRAFT

    @property
    def is_draft(self) -> bool:
        return self.state == SESSION_STATE_DRAFT

    def __repr__(self) -> str:
        return f"<InventorySession id={self.id} state={self.state}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "inventory_location_id": self.inventory_location_id,
            "location_label": self.location.label if self.location else None,
            "session_date": to_iso_date(self.session_date),
            "description": self.description,
            "state": self.state,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "approved": self.approved,
            "approved_at": to_utc_z(self.approved_at),
            "approved_by_user_id": self.approved_by_user_id,
            "deleted_at": to_utc_z(self.deleted_at),
        }


class InventorySessionItem(db.Model):
    """
    One material's count within a session.

    system_qty is the material's stock at the moment the line was added and
    is never recomputed. diff_qty is derived on read, never stored.
    """
    __tablename__ = "inventory_session_items"
    __table_args__ = (
        db.UniqueConstraint("session_id", "material_id", name="uq_inventory_session_items_session_material"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("inventory_sessions.id"), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), nullable=False, index=True)

    system_qty = db.Column(db.Numeric(14, 3), nullable=False)
    counted_qty = db.Column(db.Numeric(14, 3), nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    session = db.relationship("InventorySession", backref=db.backref("items", lazy=True))
    material = db.relationship("Material")

    @property
    def diff_qty(self):
        return diff_quantity(self.system_qty, self.counted_qty)

    def to_dict(self) -> dict:
        diff = self.diff_qty
        return {
            "id": self.id,
            "session_id": self.session_id,
            "material_id": self.material_id,
            "material_title": self.material.title if self.material else None,
            "material_unit": self.material.unit if self.material else None,
            "system_qty": qty_to_json(self.system_qty),
            "counted_qty": qty_to_json(self.counted_qty),
            "diff_qty": qty_to_json(diff),
            "diff_class": classify_diff(diff),
            "note": self.note,
        }
