# backend/stockledger/routes/opnames.py
"""
Stock opname (physical count) API routes.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..decorators import require_actor
from ..services import adjustment_ledger, opname_service
from .responses import result_error_response


opnames_bp = Blueprint("opnames", __name__, url_prefix="/api/opnames")


@opnames_bp.route("", methods=["POST"])
@require_actor
def create_opname():
    """
    Open a new count session.

    Request body:
    {
        "outlet_id": int (optional),
        "notes": str (optional)
    }

    Returns:
        201: Opname created
        400: Invalid request
        404: Outlet not found
    """
    data = request.get_json(silent=True) or {}

    try:
        result = opname_service.create_opname(
            user_id=g.actor_id,
            outlet_id=data.get("outlet_id"),
            notes=data.get("notes"),
        )
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify(result.value.to_dict()), 201

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create stock opname")
        return jsonify({"error": "Internal server error"}), 500


@opnames_bp.route("", methods=["GET"])
@require_actor
def list_opnames():
    """
    List opnames, newest first.

    Query parameters:
        status: in_progress, completed, cancelled
        outlet_id: Filter by outlet
        start_date / end_date: Inclusive ISO-8601 bounds on created_at
        limit: Max results (default 100)
    """
    outlet_id = request.args.get("outlet_id", type=int)
    result = opname_service.list_opnames(
        status=request.args.get("status"),
        outlet_id=outlet_id,
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        limit=request.args.get("limit", 100),
    )
    if not result.success:
        return result_error_response(result)

    return jsonify([o.to_dict() for o in result.value]), 200


@opnames_bp.route("/<int:opname_id>", methods=["GET"])
@require_actor
def get_opname(opname_id: int):
    """Opname with its scanned items."""
    result = opname_service.get_opname(opname_id)
    if not result.success:
        return result_error_response(result)

    return jsonify(result.value.to_dict(include_items=True)), 200


@opnames_bp.route("/<int:opname_id>/summary", methods=["GET"])
@require_actor
def get_opname_summary(opname_id: int):
    """Gain/loss statistics and drifted items, for review before completing."""
    result = opname_service.get_opname_summary(opname_id)
    if not result.success:
        return result_error_response(result)

    return jsonify(result.value), 200


@opnames_bp.route("/<int:opname_id>/items", methods=["POST"])
@require_actor
def record_count(opname_id: int):
    """
    Record a counted quantity. Rescanning a product overwrites its count.

    Request body:
    {
        "product_id": int,
        "actual_stock": int
    }

    Returns:
        201: Item recorded
        400: Invalid request
        404: Opname or product not found
        409: Opname is no longer in progress
    """
    data = request.get_json(silent=True) or {}

    try:
        result = opname_service.record_count(
            opname_id,
            product_id=data["product_id"],
            actual_stock=data["actual_stock"],
        )
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify(result.value.to_dict()), 201

    except KeyError as e:
        db.session.rollback()
        return jsonify({"error": "validation_error", "message": f"Missing required field: {e}"}), 400
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record opname count")
        return jsonify({"error": "Internal server error"}), 500


@opnames_bp.route("/<int:opname_id>/complete", methods=["POST"])
@require_actor
def complete_opname(opname_id: int):
    """
    Apply the count: one adjustment per discrepant item, stock overwritten.

    Returns:
        200: Opname completed, with the adjustments written
        404: Opname not found
        409: Opname is no longer in progress
        500: Commit failure (nothing was applied, opname still in progress)
    """
    result = opname_service.complete_opname(opname_id, user_id=g.actor_id)
    if not result.success:
        return result_error_response(result)

    opname = result.value
    return jsonify({
        "opname": opname.to_dict(),
        "adjustments": [a.to_dict() for a in adjustment_ledger.list_adjustments(opname.id)],
    }), 200


@opnames_bp.route("/<int:opname_id>/cancel", methods=["POST"])
@require_actor
def cancel_opname(opname_id: int):
    """
    Cancel an in-progress opname. No stock is touched.

    Request body:
    {
        "reason": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        result = opname_service.cancel_opname(opname_id, user_id=g.actor_id, reason=data.get("reason"))
        if not result.success:
            return result_error_response(result)

        db.session.commit()
        return jsonify(result.value.to_dict()), 200

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel stock opname")
        return jsonify({"error": "Internal server error"}), 500


@opnames_bp.route("/<int:opname_id>/adjustments", methods=["GET"])
@require_actor
def list_adjustments(opname_id: int):
    """Adjustment records written by this opname, in creation order."""
    result = opname_service.get_opname(opname_id)
    if not result.success:
        return result_error_response(result)

    return jsonify([a.to_dict() for a in adjustment_ledger.list_adjustments(opname_id)]), 200
