from __future__ import annotations

from flask import Blueprint, jsonify, request, g

from ..decorators import error_response, require_admin, require_customer
from ..services import cart_service, promotions_service
from ..services.promotions_service import PromotionError
from ..validation import ConflictError, ValidationError, coerce_money

promotions_bp = Blueprint("promotions", __name__)


@promotions_bp.post("/api/delivery/promo/validate")
@require_customer
def validate_promo():
    data = request.get_json(silent=True) or {}
    code = data.get("code")
    if not code:
        return jsonify({"valid": False, "error_message": "Promo code is required"}), 400
    try:
        if data.get("order_subtotal") is not None:
            subtotal = coerce_money(data["order_subtotal"], "order_subtotal")
        else:
            subtotal = cart_service.cart_value(cart_service.get_cart_items(g.customer.id))
    except ValidationError as e:
        return error_response(e)
    result = promotions_service.validate_promo_code(code, g.customer.id, subtotal)
    return jsonify(result.to_dict())


@promotions_bp.get("/api/admin/promotions")
@require_admin
def list_promotions():
    enabled_only = request.args.get("enabled_only", "false").lower() == "true"
    return jsonify({"promotions": promotions_service.list_promotions(enabled_only)})


@promotions_bp.post("/api/admin/promotions")
@require_admin
def create_promotion():
    data = request.get_json(silent=True) or {}
    required = ("code", "discount_type", "discount_value")
    missing = [f for f in required if f not in data]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        result = promotions_service.create_promotion(data)
    except (ValidationError, ConflictError) as e:
        return error_response(e)
    return jsonify(result), 201


@promotions_bp.patch("/api/admin/promotions/<int:promo_id>")
@require_admin
def update_promotion(promo_id: int):
    data = request.get_json(silent=True) or {}
    try:
        result = promotions_service.update_promotion(promo_id, data)
    except (ValidationError, PromotionError) as e:
        return error_response(e)
    return jsonify(result)


@promotions_bp.delete("/api/admin/promotions/<int:promo_id>")
@require_admin
def delete_promotion(promo_id: int):
    try:
        promotions_service.delete_promotion(promo_id)
    except PromotionError as e:
        return error_response(e)
    return jsonify({"deleted": True})


@promotions_bp.get("/api/admin/promotions/<int:promo_id>/usage")
@require_admin
def promotion_usage(promo_id: int):
    try:
        return jsonify({"usage": promotions_service.list_usage(promo_id)})
    except PromotionError as e:
        return error_response(e)
