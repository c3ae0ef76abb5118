# Overview: Request decorators for API routes; customer bearer tokens and the admin API token.

from functools import wraps
from flask import current_app, g, jsonify, request

from .extensions import db
from .models import DeliveryCustomer
from .services.auth_service import is_valid_admin_token, load_customer_token


def require_customer(f):
    """
    Require an approved delivery customer.

    Sets:
    - g.customer: the authenticated DeliveryCustomer

    Returns 401 if the Authorization header is missing, the token is invalid
    or expired, or the customer no longer exists. Returns 403 if the account
    is not approved.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        customer_id = load_customer_token(auth_header.split(" ", 1)[1])
        if customer_id is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        customer = db.session.get(DeliveryCustomer, customer_id)
        if customer is None:
            return jsonify({"error": "Invalid or expired token"}), 401
        if not customer.is_approved:
            return jsonify({"error": "Your account is not approved yet"}), 403

        g.customer = customer
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require the shared admin API token (X-Admin-Token header).

    Sets g.admin_id from the optional X-Admin-Id header, for audit fields.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.headers.get("X-Admin-Token")
        if not is_valid_admin_token(token):
            return jsonify({"error": "Admin access required"}), 401
        g.admin_id = request.headers.get("X-Admin-Id") or "admin"
        return f(*args, **kwargs)

    return decorated_function


def error_response(exc: Exception):
    """JSON body + status for a domain exception (status_code attribute, default 400)."""
    body = {"error": str(exc)}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    return jsonify(body), getattr(exc, "status_code", 400)


def server_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
