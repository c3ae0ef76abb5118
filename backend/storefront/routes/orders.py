# Overview: Flask API routes for delivery orders; checkout, hosted payment, webhook, and admin order management.

# backend/storefront/routes/orders.py
"""
Delivery order routes.

Customer (bearer token):
- POST /api/delivery/orders                   checkout (cash or direct card charge)
- GET  /api/delivery/orders                   own order history
- GET  /api/delivery/orders/<id>
- GET  /api/delivery/orders/<id>/receipt
- POST /api/delivery/orders/<id>/reorder
- POST /api/delivery/orders/preview           totals for the current cart
- POST /api/delivery/create-checkout-session  Clover hosted checkout
- POST /api/delivery/verify-payment           reconcile after the hosted redirect

Gateway:
- POST /api/clover-webhook                    signed payment notifications

Admin (X-Admin-Token):
- GET    /api/admin/delivery/orders[?status=]
- PATCH  /api/admin/delivery/orders/<id>/status
- PATCH  /api/admin/delivery/orders/<id>/payment-status
- POST   /api/admin/delivery/orders/<id>/refund
- DELETE /api/admin/delivery/orders/<id>

SECURITY: totals, fees and discounts in request bodies are ignored; the
server recomputes every amount.
"""
from flask import Blueprint, request, g

from ..decorators import error_response, require_admin, require_customer, server_error
from ..services import order_service
from ..services.order_service import OrderError
from ..validation import ValidationError, require_fields

orders_bp = Blueprint("orders", __name__)


@orders_bp.post("/api/delivery/orders")
@require_customer
def checkout():
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(g.customer, payload)
    except (ValidationError, OrderError) as e:
        return error_response(e)
    except Exception:
        return server_error("Checkout failed")
    return {"order": order.to_dict(include_items=True)}, 201


@orders_bp.get("/api/delivery/orders")
@require_customer
def my_orders():
    return {"orders": order_service.list_orders_for_customer(g.customer.id)}


@orders_bp.get("/api/delivery/orders/<int:order_id>")
@require_customer
def my_order(order_id: int):
    try:
        order = order_service.get_order(order_id, customer_id=g.customer.id)
    except OrderError as e:
        return error_response(e)
    return {"order": order.to_dict(include_items=True)}


@orders_bp.get("/api/delivery/orders/<int:order_id>/receipt")
@require_customer
def my_order_receipt(order_id: int):
    try:
        return order_service.get_receipt(order_id, g.customer.id)
    except OrderError as e:
        return error_response(e)


@orders_bp.post("/api/delivery/orders/<int:order_id>/reorder")
@require_customer
def reorder(order_id: int):
    try:
        return order_service.reorder(g.customer.id, order_id)
    except OrderError as e:
        return error_response(e)


@orders_bp.post("/api/delivery/orders/preview")
@require_customer
def preview():
    payload = request.get_json(silent=True) or {}
    try:
        return order_service.preview_totals(g.customer, payload.get("promo_code"))
    except (ValidationError, OrderError) as e:
        return error_response(e)


# =============================================================================
# HOSTED CHECKOUT
# =============================================================================

@orders_bp.post("/api/delivery/create-checkout-session")
@require_customer
def create_checkout_session():
    payload = request.get_json(silent=True) or {}
    try:
        return order_service.create_checkout_session(g.customer, payload)
    except (ValidationError, OrderError) as e:
        return error_response(e)
    except Exception:
        return server_error("Creating checkout session failed")


@orders_bp.post("/api/delivery/verify-payment")
@require_customer
def verify_payment():
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.verify_hosted_payment(g.customer.id, payload.get("session_id"))
    except (ValidationError, OrderError) as e:
        return error_response(e)
    return {"order": order.to_dict(include_items=True)}


@orders_bp.post("/api/clover-webhook")
def clover_webhook():
    raw_body = request.get_data(as_text=True)
    signature = request.headers.get("Clover-Signature")
    try:
        return order_service.handle_payment_webhook(raw_body, signature)
    except (ValidationError, OrderError) as e:
        return error_response(e)
    except Exception:
        return server_error("Clover webhook processing failed")


# =============================================================================
# ADMIN
# =============================================================================

@orders_bp.get("/api/admin/delivery/orders")
@require_admin
def admin_list_orders():
    status = request.args.get("status")
    return {"orders": order_service.list_all_orders(status)}


@orders_bp.patch("/api/admin/delivery/orders/<int:order_id>/status")
@require_admin
def admin_update_status(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "status")
        order = order_service.update_order_status(order_id, payload["status"])
    except (ValidationError, OrderError) as e:
        return error_response(e)
    return {"order": order.to_dict(include_items=True)}


@orders_bp.patch("/api/admin/delivery/orders/<int:order_id>/payment-status")
@require_admin
def admin_update_payment_status(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "payment_status")
        order = order_service.update_payment_status(order_id, payload["payment_status"])
    except (ValidationError, OrderError) as e:
        return error_response(e)
    return {"order": order.to_dict()}


@orders_bp.post("/api/admin/delivery/orders/<int:order_id>/refund")
@require_admin
def admin_refund(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        order = order_service.process_refund(order_id, payload.get("amount"), payload.get("reason"))
    except (ValidationError, OrderError) as e:
        return error_response(e)
    return {"order": order.to_dict()}


@orders_bp.delete("/api/admin/delivery/orders/<int:order_id>")
@require_admin
def admin_delete_order(order_id: int):
    try:
        order_service.delete_order(order_id)
    except OrderError as e:
        return error_response(e)
    return {"deleted": True}
