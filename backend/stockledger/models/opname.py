from __future__ import annotations

from sqlalchemy import event, inspect
from sqlalchemy.ext.hybrid import hybrid_property

from ..extensions import db
from ..services.discrepancy import calculate_discrepancy
from ..time_utils import to_utc_z


OPNAME_STATUS_IN_PROGRESS = "in_progress"
OPNAME_STATUS_COMPLETED = "completed"
OPNAME_STATUS_CANCELLED = "cancelled"

OPNAME_TERMINAL_STATUSES = frozenset({OPNAME_STATUS_COMPLETED, OPNAME_STATUS_CANCELLED})

ADJUSTMENT_REASON_STOCK_OPNAME = "stock_opname"


class ImmutableRecordError(RuntimeError):
    """Raised when code tries to rewrite an append-only or terminal record."""


class StockOpname(db.Model):
    """
    Physical count (stock opname) session.

    LIFECYCLE:
    1. in_progress: session open, items being scanned
    2. completed: variances applied to stock, adjustments written
    3. cancelled: closed without touching any stock

    Both terminal states are final. Items and status only change while
    in_progress; a flush that moves a terminal session anywhere else raises.

    outlet_id is optional: an outlet-scoped session also overwrites that
    outlet's OutletStock rows on completion, an unscoped one only touches the
    product aggregate.
    """
    __tablename__ = "stock_opnames"
    __table_args__ = (
        db.UniqueConstraint("opname_number", name="uq_stock_opnames_number"),
        db.Index("ix_stock_opnames_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # OPN-YYYYMMDD-XXXX
    opname_number = db.Column(db.String(32), nullable=False)

    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=OPNAME_STATUS_IN_PROGRESS, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=False, index=True)
    cancelled_by_user_id = db.Column(db.Integer, nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    outlet = db.relationship("Outlet")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_in_progress(self) -> bool:
        return self.status == OPNAME_STATUS_IN_PROGRESS

    def __repr__(self) -> str:
        return f"<StockOpname id={self.id} number={self.opname_number!r} status={self.status}>"

    def to_dict(self, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "opname_number": self.opname_number,
            "outlet_id": self.outlet_id,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "cancellation_reason": self.cancellation_reason,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class StockOpnameItem(db.Model):
    """
    One counted product within an opname.

    system_stock is the product's aggregate stock captured the first time the
    product is scanned in this session and is never refreshed. Rescans only
    overwrite actual_stock. discrepancy is derived (actual - system) and has no
    column and no setter.
    """
    __tablename__ = "stock_opname_items"
    __table_args__ = (
        db.UniqueConstraint("opname_id", "product_id", name="uq_stock_opname_items_opname_product"),
        db.CheckConstraint("actual_stock >= 0", name="ck_stock_opname_items_actual_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    opname_id = db.Column(db.Integer, db.ForeignKey("stock_opnames.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    system_stock = db.Column(db.Integer, nullable=False)
    actual_stock = db.Column(db.Integer, nullable=False)

    scanned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    opname = db.relationship(
        "StockOpname",
        backref=db.backref("items", lazy=True, order_by="StockOpnameItem.id"),
    )
    product = db.relationship("Product")

    @hybrid_property
    def discrepancy(self) -> int:
        return calculate_discrepancy(self.actual_stock, self.system_stock)

    @discrepancy.expression
    def discrepancy(cls):
        return cls.actual_stock - cls.system_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "opname_id": self.opname_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "barcode": self.product.barcode if self.product else None,
            "system_stock": self.system_stock,
            "actual_stock": self.actual_stock,
            "discrepancy": self.discrepancy,
            "scanned_at": to_utc_z(self.scanned_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """
    Append-only audit record of one stock correction.

    Written once per discrepant item when an opname completes, inside the same
    DB transaction as the stock overwrites it explains. Never updated, never
    deleted: the ORM refuses both (see listeners below).
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.Index("ix_stock_adjustments_opname_created", "opname_id", "created_at"),
        db.Index("ix_stock_adjustments_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    opname_id = db.Column(db.Integer, db.ForeignKey("stock_opnames.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)

    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    adjustment = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(64), nullable=False, default=ADJUSTMENT_REASON_STOCK_OPNAME)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "opname_id": self.opname_id,
            "product_id": self.product_id,
            "outlet_id": self.outlet_id,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "adjustment": self.adjustment,
            "reason": self.reason,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockAdjustment, "before_update")
def _refuse_adjustment_update(mapper, connection, target):
    raise ImmutableRecordError(f"StockAdjustment {target.id} is append-only")


@event.listens_for(StockAdjustment, "before_delete")
def _refuse_adjustment_delete(mapper, connection, target):
    raise ImmutableRecordError(f"StockAdjustment {target.id} is append-only")


@event.listens_for(StockOpname, "before_update")
def _refuse_terminal_transition(mapper, connection, target):
    history = inspect(target).attrs.status.history
    previous = history.deleted[0] if history.deleted else target.status
    if previous in OPNAME_TERMINAL_STATUSES and target.status != previous:
        raise ImmutableRecordError(
            f"StockOpname {target.id} is {previous}; status cannot change to {target.status}"
        )
