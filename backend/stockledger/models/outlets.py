from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Outlet(db.Model):
    """
    Physical or logical sales location.

    Source of truth for which outlets exist. Stock rows reference outlets by id
    only; deactivating an outlet keeps its stock rows but excludes it from new
    product baselines and stock breakdowns.
    """
    __tablename__ = "outlets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Outlet id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OutletStock(db.Model):
    """
    Per-outlet quantity of one product.

    INVARIANTS:
    - One row per (outlet_id, product_id); every pair owns its own row so a
      write to outlet A can never touch outlet B.
    - quantity >= 0, enforced by the service layer and by a check constraint.

    Rows are created lazily on first write, or seeded to 0 for every active
    outlet when a product (or an outlet) is introduced.
    """
    __tablename__ = "outlet_stock"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "product_id", name="uq_outlet_stock_outlet_product"),
        db.CheckConstraint("quantity >= 0", name="ck_outlet_stock_quantity_non_negative"),
        db.Index("ix_outlet_stock_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    outlet = db.relationship("Outlet")
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<OutletStock outlet_id={self.outlet_id} product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }
