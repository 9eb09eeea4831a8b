# backend/stockledger/services/opname_service.py
"""
Physical count (stock opname) sessions.

LIFECYCLE:
1. in_progress: session created, products being scanned
2. completed: variances applied via the reconciliation committer
3. cancelled: closed with no effect on any stock

Every function returns a Result. record_count and cancel_opname flush and
leave the commit to the caller; complete_opname owns its transaction because
completion must land as a whole or not at all.
"""
from __future__ import annotations

import random
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Outlet, StockOpname, StockOpnameItem
from ..models.opname import (
    OPNAME_STATUS_CANCELLED,
    OPNAME_STATUS_COMPLETED,
    OPNAME_STATUS_IN_PROGRESS,
)
from ..results import ErrorKind, Result
from ..time_utils import utcnow, parse_iso_datetime
from ..validation import ValidationError, coerce_int, coerce_optional_text
from . import catalog_service, reconciliation_service
from .concurrency import RETRY_ON_DUPLICATE, lock_for_update, run_with_retry
from .discrepancy import summarize_discrepancies


OPNAME_STATUSES = (OPNAME_STATUS_IN_PROGRESS, OPNAME_STATUS_COMPLETED, OPNAME_STATUS_CANCELLED)


def generate_opname_number(now: datetime | None = None) -> str:
    """OPN-YYYYMMDD-XXXX with a random 4-digit suffix."""
    now = now or utcnow()
    return f"OPN-{now:%Y%m%d}-{random.randint(0, 9999):04d}"


def _allocate_opname_number() -> str | None:
    attempts = current_app.config.get("OPNAME_NUMBER_ATTEMPTS", 10)
    for _ in range(attempts):
        candidate = generate_opname_number()
        taken = db.session.query(StockOpname.id).filter_by(opname_number=candidate).first()
        if not taken:
            return candidate
    return None


def _load_in_progress(opname_id: int) -> tuple[StockOpname | None, Result | None]:
    opname = lock_for_update(db.session.query(StockOpname).filter_by(id=opname_id)).first()
    if opname is None:
        return None, Result.fail(ErrorKind.NOT_FOUND, f"Stock opname {opname_id} not found")
    if not opname.is_in_progress:
        return opname, Result.fail(
            ErrorKind.SESSION_NOT_IN_PROGRESS,
            f"Stock opname {opname.opname_number} is {opname.status}, not in progress",
        )
    return opname, None


def create_opname(
    user_id,
    outlet_id=None,
    notes: str | None = None,
) -> Result[StockOpname]:
    """
    Open a new count session (status: in_progress).

    Args:
        user_id: Actor creating the session
        outlet_id: Optional outlet scope; scoped sessions also overwrite
            that outlet's ledger on completion
        notes: Optional free text
    """
    try:
        user_id = coerce_int(user_id, "user_id")
        if outlet_id is not None:
            outlet_id = coerce_int(outlet_id, "outlet_id")
        notes = coerce_optional_text(notes, "notes")
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    def _op():
        if outlet_id is not None:
            outlet = db.session.get(Outlet, outlet_id)
            if outlet is None:
                return Result.fail(ErrorKind.NOT_FOUND, f"Outlet {outlet_id} not found")
            if not outlet.is_active:
                return Result.fail(ErrorKind.VALIDATION, f"Outlet {outlet.code} is inactive")

        opname_number = _allocate_opname_number()
        if opname_number is None:
            return Result.fail(ErrorKind.COMMIT_FAILURE, "Could not allocate a unique opname number")

        opname = StockOpname(
            opname_number=opname_number,
            outlet_id=outlet_id,
            status=OPNAME_STATUS_IN_PROGRESS,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(opname)
        db.session.flush()  # Get ID
        return Result.ok(opname)

    return run_with_retry(_op)


def _find_item(opname_id: int, product_id: int) -> StockOpnameItem | None:
    return db.session.query(StockOpnameItem).filter_by(opname_id=opname_id, product_id=product_id).first()


def record_count(opname_id: int, product_id, actual_stock) -> Result[StockOpnameItem]:
    """
    Record the physically counted quantity of one product.

    First scan of a product snapshots its aggregate stock as system_stock.
    Rescans overwrite actual_stock only; the snapshot is kept.
    """
    try:
        product_id = coerce_int(product_id, "product_id")
        actual_stock = coerce_int(actual_stock, "actual_stock", min_value=0)
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    def _op():
        opname, failure = _load_in_progress(opname_id)
        if failure:
            return failure

        if catalog_service.get_product(product_id) is None:
            return Result.fail(ErrorKind.NOT_FOUND, f"Product {product_id} not found")

        item = _find_item(opname.id, product_id)

        if item is not None:
            item.actual_stock = actual_stock
        else:
            item = StockOpnameItem(
                opname=opname,
                product_id=product_id,
                system_stock=catalog_service.get_current_stock(product_id),
                actual_stock=actual_stock,
            )
            db.session.add(item)

        db.session.flush()
        return Result.ok(item)

    return run_with_retry(_op, retry_on=RETRY_ON_DUPLICATE)


def complete_opname(opname_id: int, user_id) -> Result[StockOpname]:
    """
    Apply the count and close the session (status: completed).

    Commits on success. Once reconciliation has run, any failure rolls back
    everything written during the attempt and the session stays in_progress.
    An unknown or closed session returns without touching the transaction.
    """
    try:
        user_id = coerce_int(user_id, "user_id")
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    def _op():
        opname, failure = _load_in_progress(opname_id)
        if failure:
            return failure

        outcome = reconciliation_service.commit_opname(opname, user_id)
        if not outcome.success:
            db.session.rollback()
            return outcome

        db.session.commit()
        report = outcome.value
        current_app.logger.info(
            "Completed opname %s: %s adjustment(s), %s matching item(s)",
            opname.opname_number,
            len(report.adjustments),
            len(report.skipped_product_ids),
        )
        return Result.ok(opname)

    try:
        return run_with_retry(_op)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to commit stock opname %s", opname_id)
        return Result.fail(ErrorKind.COMMIT_FAILURE, f"Stock opname {opname_id} could not be completed: {exc}")


def cancel_opname(opname_id: int, user_id, reason: str | None = None) -> Result[StockOpname]:
    """
    Close a session without touching any stock (status: cancelled).

    Items are kept for the record; they are never applied.
    """
    try:
        user_id = coerce_int(user_id, "user_id")
        reason = coerce_optional_text(reason, "reason")
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    def _op():
        opname, failure = _load_in_progress(opname_id)
        if failure:
            return failure

        opname.status = OPNAME_STATUS_CANCELLED
        opname.cancelled_at = utcnow()
        opname.cancelled_by_user_id = user_id
        opname.cancellation_reason = reason
        db.session.flush()

        current_app.logger.info("Cancelled opname %s", opname.opname_number)
        return Result.ok(opname)

    return run_with_retry(_op)


def get_opname(opname_id: int) -> Result[StockOpname]:
    opname = db.session.get(StockOpname, opname_id)
    if opname is None:
        return Result.fail(ErrorKind.NOT_FOUND, f"Stock opname {opname_id} not found")
    return Result.ok(opname)


def list_opnames(
    *,
    status: str | None = None,
    outlet_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int = 100,
) -> Result[list[StockOpname]]:
    """Newest first. Date bounds are inclusive ISO-8601 strings."""
    if status is not None and status not in OPNAME_STATUSES:
        return Result.fail(ErrorKind.VALIDATION, f"Invalid status: {status}")

    try:
        start = parse_iso_datetime(start_date)
        end = parse_iso_datetime(end_date, end_of_day=True)
        limit = coerce_int(limit, "limit", min_value=1)
    except ValueError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    query = db.session.query(StockOpname)
    if status:
        query = query.filter_by(status=status)
    if outlet_id is not None:
        query = query.filter_by(outlet_id=outlet_id)
    if start is not None:
        query = query.filter(StockOpname.created_at >= start)
    if end is not None:
        query = query.filter(StockOpname.created_at <= end)

    opnames = query.order_by(StockOpname.created_at.desc(), StockOpname.id.desc()).limit(limit).all()
    return Result.ok(opnames)


def get_opname_summary(opname_id: int) -> Result[dict]:
    """
    Discrepancy statistics shown before an operator completes or cancels.

    Includes items whose product stock moved since they were first scanned.
    """
    result = get_opname(opname_id)
    if not result.success:
        return result

    opname = result.value
    summary = summarize_discrepancies((i.actual_stock, i.system_stock) for i in opname.items)

    drifted = []
    if opname.is_in_progress:
        drifted = [
            {"product_id": pid, "system_stock": snap, "current_stock": now}
            for pid, snap, now in reconciliation_service.find_drifted_items(opname)
        ]

    return Result.ok({
        "opname": opname.to_dict(),
        "summary": summary.to_dict(),
        "drifted_items": drifted,
    })
