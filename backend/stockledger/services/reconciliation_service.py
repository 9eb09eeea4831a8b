# Overview: Applies a finished physical count to the stock books.

"""
Reconciliation commit (authoritative)

For every item of an in_progress opname:
- discrepancy == 0: skipped, nothing is written.
- discrepancy != 0, as one unit:
    a. append StockAdjustment{previous: system_stock, new: actual_stock,
       adjustment: discrepancy, reason: "stock_opname"}
    b. Product.stock_quantity = actual_stock      (absolute, never a delta)
    c. OutletStock(outlet, product) = actual_stock (outlet-scoped sessions only)
Only after every item succeeded is the opname marked completed.

commit_opname only flushes. opname_service.complete_opname wraps it in a
single DB transaction and rolls everything back when it reports failure, so
readers never observe an aggregate change without its adjustment row.

Baseline drift: system_stock is the snapshot taken at first scan. If the
product's aggregate moved since then (a sale during the count), the item is
reported as drifted. OPNAME_BASELINE_DRIFT_POLICY decides: "flag" commits and
logs, "reject" fails the commit.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..models import StockAdjustment, StockOpname
from ..models.opname import OPNAME_STATUS_COMPLETED
from ..results import ErrorKind, Result
from ..time_utils import utcnow
from . import adjustment_ledger, catalog_service, outlet_stock_service
from .catalog_service import ProductNotFound


DRIFT_POLICY_FLAG = "flag"
DRIFT_POLICY_REJECT = "reject"


@dataclass
class CommitReport:
    opname_id: int
    adjustments: list[StockAdjustment] = field(default_factory=list)
    skipped_product_ids: list[int] = field(default_factory=list)
    drifted_product_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "opname_id": self.opname_id,
            "adjustments": [a.to_dict() for a in self.adjustments],
            "skipped_product_ids": list(self.skipped_product_ids),
            "drifted_product_ids": list(self.drifted_product_ids),
        }


def find_drifted_items(opname: StockOpname) -> list[tuple[int, int, int]]:
    """
    Items whose product aggregate no longer equals the snapshot.

    Returns:
        list of (product_id, system_stock, current_stock)
    """
    drifted = []
    for item in opname.items:
        try:
            current = catalog_service.get_current_stock(item.product_id)
        except ProductNotFound:
            continue
        if current != item.system_stock:
            drifted.append((item.product_id, item.system_stock, current))
    return drifted


def commit_opname(opname: StockOpname, user_id: int) -> Result[CommitReport]:
    """
    Apply all discrepant items of opname and mark it completed.

    The caller must hold the opname row lock and own the transaction.
    """
    if not opname.is_in_progress:
        return Result.fail(
            ErrorKind.SESSION_NOT_IN_PROGRESS,
            f"Stock opname {opname.opname_number} is {opname.status}",
        )

    report = CommitReport(opname_id=opname.id)
    items = sorted(opname.items, key=lambda i: i.id)

    for item in items:
        if catalog_service.get_product(item.product_id) is None:
            return Result.fail(
                ErrorKind.COMMIT_FAILURE,
                f"Product {item.product_id} on opname {opname.opname_number} no longer exists",
            )

    drifted = find_drifted_items(opname)
    report.drifted_product_ids = [product_id for product_id, _, _ in drifted]
    if drifted:
        policy = current_app.config.get("OPNAME_BASELINE_DRIFT_POLICY", DRIFT_POLICY_FLAG)
        details = ", ".join(
            f"product {pid}: snapshot {snap}, now {now}" for pid, snap, now in drifted
        )
        if policy == DRIFT_POLICY_REJECT:
            current_app.logger.warning(
                "Rejecting opname %s: stock changed since first scan (%s)", opname.opname_number, details
            )
            return Result.fail(
                ErrorKind.COMMIT_FAILURE,
                f"Stock changed since counting started ({details}); rescan or cancel the opname",
            )
        current_app.logger.warning(
            "Opname %s committing against stale snapshots (%s)", opname.opname_number, details
        )

    for item in items:
        if item.discrepancy == 0:
            report.skipped_product_ids.append(item.product_id)
            continue

        entry = adjustment_ledger.append_adjustment(
            opname_id=opname.id,
            product_id=item.product_id,
            outlet_id=opname.outlet_id,
            previous_stock=item.system_stock,
            new_stock=item.actual_stock,
            adjustment=item.discrepancy,
            created_by_user_id=user_id,
        )
        report.adjustments.append(entry)

        catalog_service.set_stock(item.product_id, item.actual_stock)

        if opname.outlet_id is not None:
            outlet_stock_service.set_outlet_stock(opname.outlet_id, item.product_id, item.actual_stock)

    opname.status = OPNAME_STATUS_COMPLETED
    opname.completed_at = utcnow()

    return Result.ok(report)
