# Overview: Stock adjustment procedure invoked by the stocktake approval commit.

from __future__ import annotations

from ..extensions import db
from ..models import InventorySession, InventorySessionItem, Material, StockAdjustment
from sitestock.time_utils import utcnow


class StockAdjustmentError(Exception):
    """Raised when counted quantities cannot be applied."""
    pass


def apply_counted_quantities(
    session: InventorySession,
    items: list[InventorySessionItem],
    user_id: int,
) -> list[StockAdjustment]:
    """
    Overwrite each material's live stock with the line's counted quantity.

    Runs inside the caller's transaction and never commits: the approval
    flag and these writes become visible together or not at all. One
    StockAdjustment ledger row is appended per line.
    """
    adjustments = []
    now = utcnow()

    for item in items:
        if item.counted_qty is None:
            raise StockAdjustmentError(f"Material {item.material_id} has no counted quantity")

        material = db.session.query(Material).filter_by(
            id=item.material_id,
            org_id=session.org_id,
        ).with_for_update().first()
        if material is None:
            raise StockAdjustmentError(f"Material {item.material_id} not found")

        previous_qty = material.stock_qty
        material.stock_qty = item.counted_qty

        adjustment = StockAdjustment(
            org_id=session.org_id,
            material_id=material.id,
            session_id=session.id,
            previous_qty=previous_qty,
            new_qty=item.counted_qty,
            delta_qty=item.counted_qty - previous_qty,
            created_by_user_id=user_id,
            created_at=now,
        )
        db.session.add(adjustment)
        adjustments.append(adjustment)

    db.session.flush()
    return adjustments
