# Overview: Outlet-scoped stock ledger; the only writer of OutletStock rows.

"""
Outlet Stock Ledger Invariants (authoritative)

- One OutletStock row per (outlet_id, product_id). Every read and write is keyed
  by both ids, so touching outlet A can never change outlet B.
- quantity >= 0 at all times. adjust_outlet_stock reads the row under lock and
  only writes when current + delta >= 0; a rejected adjustment leaves the row
  exactly as it was.
- set_outlet_stock is an absolute, idempotent upsert (used by opname completion).
- Baselines: initializing stock creates 0-quantity rows only where no row
  exists; existing rows are never overwritten.
- Missing rows read as 0.

Transactions: functions here flush but never commit. The caller owns the
transaction boundary (routes, CLI, or the opname committer).
"""
from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import Outlet, OutletStock, Product
from ..results import ErrorKind, Result
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_int
from .concurrency import RETRY_ON_DUPLICATE, lock_for_update, run_with_retry


def _locked_row(outlet_id: int, product_id: int) -> OutletStock | None:
    return lock_for_update(
        db.session.query(OutletStock).filter_by(outlet_id=outlet_id, product_id=product_id)
    ).first()


def missing_reference(outlet_id: int, product_id: int) -> Result | None:
    """NOT_FOUND Result when either id does not resolve, else None."""
    if db.session.get(Outlet, outlet_id) is None:
        return Result.fail(ErrorKind.NOT_FOUND, f"Outlet {outlet_id} not found")
    if db.session.get(Product, product_id) is None:
        return Result.fail(ErrorKind.NOT_FOUND, f"Product {product_id} not found")
    return None


def get_outlet_stock(outlet_id: int, product_id: int) -> int:
    """Quantity of product at outlet; 0 when no row exists."""
    quantity = db.session.query(OutletStock.quantity).filter_by(
        outlet_id=outlet_id,
        product_id=product_id,
    ).scalar()
    return int(quantity or 0)


def set_outlet_stock(outlet_id: int, product_id: int, quantity: int) -> OutletStock:
    """
    Absolute upsert of one (outlet, product) quantity.

    Raises:
        ValidationError: If quantity is negative or not an integer
    """
    quantity = coerce_int(quantity, "quantity", min_value=0)

    row = _locked_row(outlet_id, product_id)
    if row is None:
        row = OutletStock(outlet_id=outlet_id, product_id=product_id, quantity=quantity)
        db.session.add(row)
    elif row.quantity != quantity:
        row.quantity = quantity
        row.updated_at = utcnow()
    db.session.flush()
    return row


def update_outlet_stock(outlet_id: int, product_id: int, quantity) -> Result[OutletStock]:
    """Result-returning wrapper of set_outlet_stock for API callers."""
    try:
        quantity = coerce_int(quantity, "quantity", min_value=0)
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    def _op():
        missing = missing_reference(outlet_id, product_id)
        if missing:
            return missing
        return Result.ok(set_outlet_stock(outlet_id, product_id, quantity))

    return run_with_retry(_op, retry_on=RETRY_ON_DUPLICATE)


def adjust_outlet_stock(outlet_id: int, product_id: int, delta) -> Result[OutletStock]:
    """
    Apply a signed delta to one outlet's quantity.

    Returns:
        Result.ok(OutletStock) with the new quantity, or
        Result.fail(INSUFFICIENT_STOCK) when current + delta < 0 (row untouched), or
        Result.fail(VALIDATION / NOT_FOUND)
    """
    try:
        delta = coerce_int(delta, "delta")
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    missing = missing_reference(outlet_id, product_id)
    if missing:
        return missing

    def _op():
        row = _locked_row(outlet_id, product_id)
        current = row.quantity if row is not None else 0
        new_quantity = current + delta

        if new_quantity < 0:
            return Result.fail(
                ErrorKind.INSUFFICIENT_STOCK,
                f"Insufficient stock at outlet {outlet_id} for product {product_id}: "
                f"on hand {current}, requested change {delta}",
            )

        if row is None:
            row = OutletStock(outlet_id=outlet_id, product_id=product_id, quantity=new_quantity)
            db.session.add(row)
        else:
            row.quantity = new_quantity
            row.updated_at = utcnow()

        db.session.flush()
        return Result.ok(row)

    return run_with_retry(_op, retry_on=RETRY_ON_DUPLICATE)


def initialize_for_outlets(outlet_ids: Iterable[int], product_id: int) -> list[OutletStock]:
    """
    Create a 0-quantity row for each outlet that has none for this product.

    Existing rows are left untouched. Returns only the rows created.
    """
    outlet_ids = list(dict.fromkeys(outlet_ids))
    if not outlet_ids:
        return []

    existing = {
        oid for (oid,) in db.session.query(OutletStock.outlet_id).filter(
            OutletStock.product_id == product_id,
            OutletStock.outlet_id.in_(outlet_ids),
        )
    }
    created = []
    for outlet_id in outlet_ids:
        if outlet_id in existing:
            continue
        row = OutletStock(outlet_id=outlet_id, product_id=product_id, quantity=0)
        db.session.add(row)
        created.append(row)
    db.session.flush()
    return created


def initialize_product_stock(product_id: int) -> Result[list[OutletStock]]:
    """Seed 0 baselines for a product across every active outlet."""
    from .outlet_service import list_active_outlet_ids

    def _op():
        if db.session.get(Product, product_id) is None:
            return Result.fail(ErrorKind.NOT_FOUND, f"Product {product_id} not found")
        return Result.ok(initialize_for_outlets(sorted(list_active_outlet_ids()), product_id))

    return run_with_retry(_op)


def initialize_outlet_stock(outlet_id: int) -> list[OutletStock]:
    """Seed 0 baselines at a (new) outlet for every active product."""
    stocked = {
        pid for (pid,) in db.session.query(OutletStock.product_id).filter_by(outlet_id=outlet_id)
    }
    created = []
    for (product_id,) in db.session.query(Product.id).filter_by(is_active=True).order_by(Product.id):
        if product_id in stocked:
            continue
        row = OutletStock(outlet_id=outlet_id, product_id=product_id, quantity=0)
        db.session.add(row)
        created.append(row)
    db.session.flush()
    return created


def list_outlet_stock(outlet_id: int) -> list[OutletStock]:
    return (
        db.session.query(OutletStock)
        .filter_by(outlet_id=outlet_id)
        .order_by(OutletStock.product_id.asc())
        .all()
    )


def get_product_stock_by_outlet(product_id: int) -> list[dict]:
    """Per-outlet breakdown of one product, active outlets only."""
    rows = (
        db.session.query(OutletStock, Outlet)
        .join(Outlet, Outlet.id == OutletStock.outlet_id)
        .filter(OutletStock.product_id == product_id, Outlet.is_active.is_(True))
        .order_by(Outlet.code.asc())
        .all()
    )
    return [
        {
            "outlet_id": outlet.id,
            "outlet_code": outlet.code,
            "outlet_name": outlet.name,
            "quantity": stock.quantity,
        }
        for stock, outlet in rows
    ]
