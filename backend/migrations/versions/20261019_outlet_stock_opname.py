"""Outlets, outlet stock ledger, products and stock opname tables

Revision ID: 20261019_outlet_stock_opname
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_outlet_stock_opname"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, with_updated: bool = True):
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]
    if with_updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False)
        )
    return cols


def upgrade():
    op.create_table(
        "outlets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_outlets"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_outlets_code", "outlets", ["code"], unique=True)
    op.create_index("ix_outlets_is_active", "outlets", ["is_active"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("barcode", sa.String(length=64), nullable=True),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        sa.PrimaryKeyConstraint("id", name="pk_products"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_barcode", "products", ["barcode"], unique=True)
    op.create_index("ix_products_name", "products", ["name"], unique=False)
    op.create_index("ix_products_is_active", "products", ["is_active"], unique=False)

    op.create_table(
        "outlet_stock",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("outlet_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("quantity >= 0", name="ck_outlet_stock_quantity_non_negative"),
        sa.ForeignKeyConstraint(["outlet_id"], ["outlets.id"], name="fk_outlet_stock_outlet_id_outlets"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], name="fk_outlet_stock_product_id_products"),
        sa.PrimaryKeyConstraint("id", name="pk_outlet_stock"),
        sa.UniqueConstraint("outlet_id", "product_id", name="uq_outlet_stock_outlet_product"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_outlet_stock_outlet_id", "outlet_stock", ["outlet_id"], unique=False)
    op.create_index("ix_outlet_stock_product", "outlet_stock", ["product_id"], unique=False)

    op.create_table(
        "stock_opnames",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("opname_number", sa.String(length=32), nullable=False),
        sa.Column("outlet_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="in_progress"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=False),
        sa.Column("cancelled_by_user_id", sa.Integer(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["outlet_id"], ["outlets.id"], name="fk_stock_opnames_outlet_id_outlets"),
        sa.PrimaryKeyConstraint("id", name="pk_stock_opnames"),
        sa.UniqueConstraint("opname_number", name="uq_stock_opnames_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_opnames_outlet_id", "stock_opnames", ["outlet_id"], unique=False)
    op.create_index("ix_stock_opnames_status", "stock_opnames", ["status"], unique=False)
    op.create_index("ix_stock_opnames_created_at", "stock_opnames", ["created_at"], unique=False)
    op.create_index("ix_stock_opnames_created_by_user_id", "stock_opnames", ["created_by_user_id"], unique=False)
    op.create_index("ix_stock_opnames_status_created", "stock_opnames", ["status", "created_at"], unique=False)

    op.create_table(
        "stock_opname_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("opname_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("system_stock", sa.Integer(), nullable=False),
        sa.Column("actual_stock", sa.Integer(), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("actual_stock >= 0", name="ck_stock_opname_items_actual_non_negative"),
        sa.ForeignKeyConstraint(["opname_id"], ["stock_opnames.id"], name="fk_stock_opname_items_opname_id_stock_opnames"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], name="fk_stock_opname_items_product_id_products"),
        sa.PrimaryKeyConstraint("id", name="pk_stock_opname_items"),
        sa.UniqueConstraint("opname_id", "product_id", name="uq_stock_opname_items_opname_product"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_opname_items_opname_id", "stock_opname_items", ["opname_id"], unique=False)
    op.create_index("ix_stock_opname_items_product_id", "stock_opname_items", ["product_id"], unique=False)

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("opname_id", sa.Integer(), nullable=True),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("outlet_id", sa.Integer(), nullable=True),
        sa.Column("previous_stock", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("adjustment", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=64), nullable=False, server_default="stock_opname"),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(["opname_id"], ["stock_opnames.id"], name="fk_stock_adjustments_opname_id_stock_opnames"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], name="fk_stock_adjustments_product_id_products"),
        sa.ForeignKeyConstraint(["outlet_id"], ["outlets.id"], name="fk_stock_adjustments_outlet_id_outlets"),
        sa.PrimaryKeyConstraint("id", name="pk_stock_adjustments"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_adjustments_opname_id", "stock_adjustments", ["opname_id"], unique=False)
    op.create_index("ix_stock_adjustments_outlet_id", "stock_adjustments", ["outlet_id"], unique=False)
    op.create_index("ix_stock_adjustments_opname_created", "stock_adjustments", ["opname_id", "created_at"], unique=False)
    op.create_index("ix_stock_adjustments_product_created", "stock_adjustments", ["product_id", "created_at"], unique=False)


def downgrade():
    op.drop_table("stock_adjustments")
    op.drop_table("stock_opname_items")
    op.drop_table("stock_opnames")
    op.drop_table("outlet_stock")
    op.drop_table("products")
    op.drop_table("outlets")
