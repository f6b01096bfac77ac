from __future__ import annotations

from ..extensions import db
from sitestock.numbers import qty_to_json
from sitestock.time_utils import to_utc_z


class Material(db.Model):
    """
    Material master: one stock-keeping line held in one storage location.

    stock_qty is the live stock level. Only the stocktake approval commit
    (stock_service.apply_counted_quantities) overwrites it from this module.
    """
    __tablename__ = "materials"
    __table_args__ = (
        db.Index("ix_materials_location_title", "inventory_location_id", "title"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    inventory_location_id = db.Column(
        db.Integer, db.ForeignKey("inventory_locations.id"), nullable=False, index=True
    )

    title = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=True)

    stock_qty = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    # Weighted unit price used to estimate shrink value in reports
    unit_price = db.Column(db.Numeric(14, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    location = db.relationship("InventoryLocation", backref=db.backref("materials", lazy=True))

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Material id={self.id} title={self.title!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "inventory_location_id": self.inventory_location_id,
            "title": self.title,
            "unit": self.unit,
            "stock_qty": qty_to_json(self.stock_qty),
            "unit_price": qty_to_json(self.unit_price),
            "deleted_at": to_utc_z(self.deleted_at),
        }


class StockAdjustment(db.Model):
    """
    Append-only ledger of stock overwrites made by stocktake approvals.

    IMMUTABLE: Never update or delete. One row per session line at approval.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.Index("ix_stock_adjustments_material_created", "material_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("inventory_sessions.id"), nullable=False, index=True)

    previous_qty = db.Column(db.Numeric(14, 3), nullable=False)
    new_qty = db.Column(db.Numeric(14, 3), nullable=False)
    delta_qty = db.Column(db.Numeric(14, 3), nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    material = db.relationship("Material")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material_id": self.material_id,
            "session_id": self.session_id,
            "previous_qty": qty_to_json(self.previous_qty),
            "new_qty": qty_to_json(self.new_qty),
            "delta_qty": qty_to_json(self.delta_qty),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
