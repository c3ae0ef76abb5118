# Overview: Flask API routes for delivery fee and notification settings.

from flask import Blueprint, request, g

from ..decorators import error_response, require_admin, require_customer
from ..services import order_service, settings_service
from ..services.order_service import OrderError
from ..validation import ValidationError, coerce_int

settings_bp = Blueprint("settings", __name__)


@settings_bp.get("/api/delivery/fee-settings")
def public_fee_settings():
    return settings_service.fee_settings_dict()


@settings_bp.post("/api/delivery/calculate-fee")
@require_customer
def calculate_fee():
    payload = request.get_json(silent=True) or {}
    try:
        item_count = None
        if payload.get("item_count") is not None:
            item_count = coerce_int(payload["item_count"], "item_count", minimum=0)
        return order_service.quote_delivery_fee(g.customer, item_count)
    except (ValidationError, OrderError) as e:
        return error_response(e)


# =============================================================================
# ADMIN
# =============================================================================

@settings_bp.get("/api/admin/delivery/fee-settings")
@require_admin
def admin_get_fee_settings():
    return settings_service.fee_settings_dict()


@settings_bp.patch("/api/admin/delivery/fee-settings")
@require_admin
def admin_update_fee_settings():
    payload = request.get_json(silent=True) or {}
    try:
        return settings_service.update_fee_schedule(payload)
    except ValidationError as e:
        return error_response(e)


@settings_bp.get("/api/admin/delivery/notification-settings")
@require_admin
def admin_get_notification_settings():
    return {"driver_notification_email": settings_service.get_driver_notification_email()}


@settings_bp.patch("/api/admin/delivery/notification-settings")
@require_admin
def admin_update_notification_settings():
    payload = request.get_json(silent=True) or {}
    try:
        email = settings_service.update_driver_notification_email(payload.get("driver_notification_email"))
    except ValidationError as e:
        return error_response(e)
    return {"driver_notification_email": email}
