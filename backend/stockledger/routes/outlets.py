# Overview: Flask API routes for outlets and outlet-scoped stock.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..decorators import require_actor
from ..services import outlet_service, outlet_stock_service
from .responses import result_error_response


outlets_bp = Blueprint("outlets", __name__, url_prefix="/api/outlets")


@outlets_bp.post("")
@require_actor
def create_outlet_route():
    """
    Register an outlet; active outlets get 0 baselines for all active products.

    Request body:
    {
        "code": str,
        "name": str,
        "address": str (optional),
        "phone": str (optional),
        "is_active": bool (optional, default true)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        result = outlet_service.create_outlet(
            data.get("code"),
            data.get("name"),
            address=data.get("address"),
            phone=data.get("phone"),
            is_active=data.get("is_active", True),
        )
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify(result.value.to_dict()), 201

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create outlet")
        return jsonify({"error": "Internal server error"}), 500


@outlets_bp.get("")
@require_actor
def list_outlets_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    outlets = outlet_service.list_outlets(include_inactive=include_inactive)
    return jsonify([o.to_dict() for o in outlets]), 200


@outlets_bp.get("/<int:outlet_id>/stock")
@require_actor
def list_outlet_stock_route(outlet_id: int):
    """All stock rows held by one outlet."""
    if outlet_service.get_outlet(outlet_id) is None:
        return jsonify({"error": "not_found", "message": f"Outlet {outlet_id} not found"}), 404

    rows = outlet_stock_service.list_outlet_stock(outlet_id)
    return jsonify([r.to_dict() for r in rows]), 200


@outlets_bp.get("/<int:outlet_id>/stock/<int:product_id>")
@require_actor
def get_outlet_stock_route(outlet_id: int, product_id: int):
    """Quantity of one product at one outlet; 0 when the pair has no row yet."""
    missing = outlet_stock_service.missing_reference(outlet_id, product_id)
    if missing:
        return result_error_response(missing)

    quantity = outlet_stock_service.get_outlet_stock(outlet_id, product_id)
    return jsonify({"outlet_id": outlet_id, "product_id": product_id, "quantity": quantity}), 200


@outlets_bp.put("/<int:outlet_id>/stock/<int:product_id>")
@require_actor
def set_outlet_stock_route(outlet_id: int, product_id: int):
    """
    Absolute overwrite of one outlet's quantity.

    Request body:
    {
        "quantity": int (>= 0)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        result = outlet_stock_service.update_outlet_stock(outlet_id, product_id, data.get("quantity"))
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify(result.value.to_dict()), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to set outlet stock")
        return jsonify({"error": "Internal server error"}), 500


@outlets_bp.post("/<int:outlet_id>/stock/<int:product_id>/adjust")
@require_actor
def adjust_outlet_stock_route(outlet_id: int, product_id: int):
    """
    Add (positive) or remove (negative) stock at one outlet.

    Request body:
    {
        "delta": int
    }

    Returns:
        200: Adjusted
        409: Insufficient stock (quantity unchanged)
    """
    data = request.get_json(silent=True) or {}

    try:
        result = outlet_stock_service.adjust_outlet_stock(outlet_id, product_id, data.get("delta"))
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify(result.value.to_dict()), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust outlet stock")
        return jsonify({"error": "Internal server error"}), 500
