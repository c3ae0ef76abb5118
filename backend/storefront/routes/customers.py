# Overview: Flask API routes for delivery customers; signup, login, profile, and admin approval.

# backend/storefront/routes/customers.py
"""
Delivery customer routes.

Public:
- POST /api/delivery/customers          signup (pending approval)
- POST /api/delivery/login              email + password -> bearer token
- POST /api/delivery/set-password       one-time setup link token + new password
- POST /api/delivery/password-reset     email a one-hour reset link
- POST /api/delivery/reset-password     reset link token + new password
- POST /api/delivery/validate-address   geocode + delivery-zone check

Customer (bearer token):
- GET/PATCH /api/delivery/customers/me
- POST /api/delivery/customers/me/password

Admin (X-Admin-Token):
- GET    /api/admin/delivery/customers[?status=]
- GET    /api/admin/delivery/customers/pending
- POST   /api/admin/delivery/customers/<id>/approval
- DELETE /api/admin/delivery/customers/<id>
"""
from flask import Blueprint, request, g

from ..decorators import error_response, require_admin, require_customer, server_error
from ..models.customers import APPROVAL_PENDING, VALID_APPROVAL_STATUSES
from ..services import customer_service
from ..services.auth_service import issue_customer_token
from ..services.customer_service import CustomerError
from ..validation import ConflictError, ValidationError, require_fields

customers_bp = Blueprint("customers", __name__)


@customers_bp.post("/api/delivery/customers")
def signup():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.register_customer(payload)
    except (ValidationError, ConflictError, CustomerError) as e:
        return error_response(e)
    except Exception:
        return server_error("Customer signup failed")
    return {
        "customer": customer.to_dict(),
        "message": "Thanks for signing up! We'll email you once your account is approved.",
    }, 201


@customers_bp.post("/api/delivery/login")
def login():
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "email", "password")
        customer = customer_service.authenticate(payload["email"], payload["password"])
    except (ValidationError, CustomerError) as e:
        return error_response(e)
    return {"token": issue_customer_token(customer.id), "customer": customer.to_dict()}


@customers_bp.post("/api/delivery/set-password")
def set_password():
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "token", "password")
        customer = customer_service.set_password_with_token(payload["token"], payload["password"])
    except (ValidationError, CustomerError) as e:
        return error_response(e)
    return {"token": issue_customer_token(customer.id), "customer": customer.to_dict()}


@customers_bp.post("/api/delivery/password-reset")
def request_password_reset():
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "email")
        customer_service.request_password_reset(payload["email"])
    except (ValidationError, CustomerError) as e:
        return error_response(e)
    return {"message": "If an account exists with this email, a password reset link has been sent."}


@customers_bp.post("/api/delivery/reset-password")
def reset_password():
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "token", "password")
        customer = customer_service.reset_password(payload["token"], payload["password"])
    except (ValidationError, CustomerError) as e:
        return error_response(e)
    return {"token": issue_customer_token(customer.id), "customer": customer.to_dict()}


@customers_bp.post("/api/delivery/validate-address")
def validate_address():
    payload = request.get_json(silent=True) or {}
    try:
        return customer_service.validate_address(payload)
    except ValidationError as e:
        return error_response(e)


@customers_bp.get("/api/delivery/customers/me")
@require_customer
def get_me():
    return {"customer": g.customer.to_dict()}


@customers_bp.patch("/api/delivery/customers/me")
@require_customer
def update_me():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_profile(g.customer.id, payload)
    except (ValidationError, CustomerError) as e:
        return error_response(e)
    return {"customer": customer.to_dict()}


@customers_bp.post("/api/delivery/customers/me/password")
@require_customer
def change_my_password():
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "current_password", "new_password")
        customer_service.change_password(g.customer.id, payload["current_password"], payload["new_password"])
    except (ValidationError, CustomerError) as e:
        return error_response(e)
    return {"message": "Password updated"}


# =============================================================================
# ADMIN
# =============================================================================

@customers_bp.get("/api/admin/delivery/customers")
@require_admin
def admin_list_customers():
    status = request.args.get("status")
    if status and status not in VALID_APPROVAL_STATUSES:
        return {"error": f"status must be one of: {', '.join(VALID_APPROVAL_STATUSES)}"}, 400
    return {"customers": customer_service.list_customers(status)}


@customers_bp.get("/api/admin/delivery/customers/pending")
@require_admin
def admin_pending_customers():
    return {"customers": customer_service.list_customers(APPROVAL_PENDING)}


@customers_bp.post("/api/admin/delivery/customers/<int:customer_id>/approval")
@require_admin
def admin_set_approval(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, "status")
        customer = customer_service.set_approval(customer_id, payload["status"], g.admin_id, payload.get("reason"))
    except (ValidationError, CustomerError) as e:
        return error_response(e)
    return {"customer": customer.to_dict()}


@customers_bp.delete("/api/admin/delivery/customers/<int:customer_id>")
@require_admin
def admin_delete_customer(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
    except CustomerError as e:
        return error_response(e)
    return {"deleted": True}
