# Overview: Flask API routes for the product catalog and per-product stock views.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..decorators import require_actor
from ..services import adjustment_ledger, catalog_service, outlet_stock_service
from .responses import result_error_response


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _not_found(product_id):
    return jsonify({"error": "not_found", "message": f"Product {product_id} not found"}), 404


@products_bp.post("")
@require_actor
def create_product_route():
    """
    Create a product and seed 0 stock at every active outlet.

    Request body:
    {
        "name": str,
        "barcode": str (optional),
        "stock_quantity": int (optional),
        "min_stock": int (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        result = catalog_service.create_product(
            data.get("name"),
            barcode=data.get("barcode"),
            stock_quantity=data.get("stock_quantity", 0),
            min_stock=data.get("min_stock", 0),
        )
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify(result.value.to_dict()), 201

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    product = catalog_service.get_product(product_id)
    if product is None:
        return _not_found(product_id)
    return jsonify(product.to_dict()), 200


@products_bp.get("/barcode/<string:barcode>")
@require_actor
def get_product_by_barcode_route(barcode: str):
    """Barcode -> product resolution for scanners."""
    product = catalog_service.find_product_by_barcode(barcode)
    if product is None:
        return jsonify({"error": "not_found", "message": f"No product with barcode {barcode}"}), 404
    return jsonify(product.to_dict()), 200


@products_bp.get("/<int:product_id>/outlet-stock")
@require_actor
def get_product_outlet_stock_route(product_id: int):
    """Quantity of one product at each active outlet."""
    if catalog_service.get_product(product_id) is None:
        return _not_found(product_id)
    return jsonify(outlet_stock_service.get_product_stock_by_outlet(product_id)), 200


@products_bp.post("/<int:product_id>/initialize-stock")
@require_actor
def initialize_product_stock_route(product_id: int):
    """Create missing 0 baselines for this product at active outlets."""
    try:
        result = outlet_stock_service.initialize_product_stock(product_id)
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify({"product_id": product_id, "created": [r.to_dict() for r in result.value]}), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to initialize product stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/adjustments")
@require_actor
def list_product_adjustments_route(product_id: int):
    """Correction history of one product, optionally for one outlet."""
    if catalog_service.get_product(product_id) is None:
        return _not_found(product_id)

    outlet_id = request.args.get("outlet_id", type=int)
    entries = adjustment_ledger.list_product_adjustments(product_id, outlet_id=outlet_id)
    return jsonify([e.to_dict() for e in entries]), 200
