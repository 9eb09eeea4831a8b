# Overview: Append-only audit trail of stock corrections.

"""
Adjustment Ledger Invariants (authoritative)

- append_adjustment is the only mutation. Rows are never updated or deleted
  (the ORM listeners on StockAdjustment refuse both).
- Entries are written inside the same DB transaction as the stock overwrite
  they explain, so a reader never sees one without the other.
- Read order is creation order: created_at, then id.
- OutletStock and Product.stock_quantity are overwritten on every
  reconciliation; the reason a quantity changed is reconstructable from this
  log alone.
"""
from __future__ import annotations

from ..extensions import db
from ..models import StockAdjustment
from ..models.opname import ADJUSTMENT_REASON_STOCK_OPNAME


def append_adjustment(
    *,
    product_id: int,
    previous_stock: int,
    new_stock: int,
    adjustment: int,
    opname_id: int | None = None,
    outlet_id: int | None = None,
    reason: str = ADJUSTMENT_REASON_STOCK_OPNAME,
    created_by_user_id: int | None = None,
) -> StockAdjustment:
    entry = StockAdjustment(
        opname_id=opname_id,
        product_id=product_id,
        outlet_id=outlet_id,
        previous_stock=previous_stock,
        new_stock=new_stock,
        adjustment=adjustment,
        reason=reason,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def list_adjustments(opname_id: int) -> list[StockAdjustment]:
    return (
        db.session.query(StockAdjustment)
        .filter_by(opname_id=opname_id)
        .order_by(StockAdjustment.created_at.asc(), StockAdjustment.id.asc())
        .all()
    )


def list_product_adjustments(product_id: int, *, outlet_id: int | None = None) -> list[StockAdjustment]:
    """Correction history of one product, optionally narrowed to one outlet."""
    query = db.session.query(StockAdjustment).filter_by(product_id=product_id)
    if outlet_id is not None:
        query = query.filter_by(outlet_id=outlet_id)
    return query.order_by(StockAdjustment.created_at.asc(), StockAdjustment.id.asc()).all()
