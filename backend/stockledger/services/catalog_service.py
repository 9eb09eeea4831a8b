# Overview: Product catalog; aggregate stock reads and writes used by the opname core.

"""
Aggregate stock (Product.stock_quantity) is store-wide and shared with the
sales and purchase-order flows. Writers go through set_stock, which locks the
product row and relies on Product.version_id for optimistic conflicts.
set_stock only flushes so it joins the caller's transaction.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..results import ErrorKind, Result
from ..validation import ValidationError, coerce_int, coerce_optional_text
from .concurrency import lock_for_update, run_with_retry
from . import outlet_stock_service
from .outlet_service import list_active_outlet_ids


class ProductNotFound(LookupError):
    """Raised by the low-level stock accessors when a product id does not resolve."""


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def find_product_by_barcode(barcode: str) -> Product | None:
    if not barcode:
        return None
    return db.session.query(Product).filter_by(barcode=barcode.strip()).first()


def get_current_stock(product_id: int) -> int:
    stock = db.session.query(Product.stock_quantity).filter_by(id=product_id).scalar()
    if stock is None:
        raise ProductNotFound(f"Product {product_id} not found")
    return int(stock)


def set_stock(product_id: int, quantity: int) -> Product:
    """Absolute overwrite of the aggregate quantity inside the caller's transaction."""
    quantity = coerce_int(quantity, "stock_quantity", min_value=0)

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise ProductNotFound(f"Product {product_id} not found")
    product.stock_quantity = quantity
    db.session.flush()
    return product


def create_product(
    name: str,
    *,
    barcode: str | None = None,
    stock_quantity=0,
    min_stock=0,
) -> Result[Product]:
    """
    Create a product and seed a 0 baseline at every active outlet.
    """
    try:
        name = coerce_optional_text(name, "name", max_length=255)
        barcode = coerce_optional_text(barcode, "barcode", max_length=64)
        stock_quantity = coerce_int(stock_quantity, "stock_quantity", min_value=0)
        min_stock = coerce_int(min_stock, "min_stock", min_value=0)
    except ValidationError as e:
        return Result.fail(ErrorKind.VALIDATION, str(e))

    if not name:
        return Result.fail(ErrorKind.VALIDATION, "Product name is required")

    def _op():
        if barcode and find_product_by_barcode(barcode):
            return Result.fail(ErrorKind.VALIDATION, f"Barcode {barcode} already assigned")

        product = Product(
            name=name,
            barcode=barcode,
            stock_quantity=stock_quantity,
            min_stock=min_stock,
        )
        db.session.add(product)
        db.session.flush()

        outlet_stock_service.initialize_for_outlets(sorted(list_active_outlet_ids()), product.id)
        return Result.ok(product)

    return run_with_retry(_op)
