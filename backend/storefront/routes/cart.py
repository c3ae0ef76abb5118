# Overview: Flask API routes for the customer cart.

from flask import Blueprint, request, g

from ..decorators import error_response, require_customer
from ..services import cart_service
from ..services.cart_service import CartError
from ..validation import ValidationError, coerce_int, require_fields

cart_bp = Blueprint("cart", __name__, url_prefix="/api/delivery/cart")


@cart_bp.get("")
@require_customer
def get_cart():
    return cart_service.get_cart(g.customer.id)


@cart_bp.post("")
@require_customer
def add_item():
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "product_id")
        product_id = coerce_int(payload["product_id"], "product_id")
        quantity = coerce_int(payload.get("quantity", 1), "quantity")
        item = cart_service.add_to_cart(g.customer.id, product_id, quantity)
    except (ValidationError, CartError) as e:
        return error_response(e)
    return {"item": item.to_dict(), "cart": cart_service.get_cart(g.customer.id)}, 201


@cart_bp.patch("/<int:item_id>")
@require_customer
def update_item(item_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "quantity")
        quantity = coerce_int(payload["quantity"], "quantity")
        item = cart_service.update_cart_item_quantity(g.customer.id, item_id, quantity)
    except (ValidationError, CartError) as e:
        return error_response(e)
    return {"item": item.to_dict(), "cart": cart_service.get_cart(g.customer.id)}


@cart_bp.delete("/<int:item_id>")
@require_customer
def remove_item(item_id: int):
    try:
        cart_service.remove_cart_item(g.customer.id, item_id)
    except CartError as e:
        return error_response(e)
    return cart_service.get_cart(g.customer.id)


@cart_bp.delete("")
@require_customer
def clear():
    removed = cart_service.clear_cart(g.customer.id)
    return {"removed": removed}
