# Overview: Flask API routes for delivery windows and weekly templates.

from flask import Blueprint, current_app, request

from ..decorators import error_response, require_admin
from ..services import windows_service
from ..services.windows_service import WindowError
from ..time_utils import parse_date
from ..validation import ValidationError, coerce_int

windows_bp = Blueprint("windows", __name__)


@windows_bp.get("/api/delivery/windows")
def list_windows():
    """
    Windows a customer can pick, today through four days out.

    Query params:
    - date: YYYY-MM-DD (optional) - a single day instead of the default range
    """
    raw_date = request.args.get("date")
    on_date = None
    if raw_date:
        try:
            on_date = parse_date(raw_date)
        except ValueError:
            return {"error": "date must be YYYY-MM-DD"}, 400
    return {"windows": windows_service.list_available_windows(on_date)}


# =============================================================================
# ADMIN: WINDOWS
# =============================================================================

@windows_bp.get("/api/admin/delivery/windows")
@require_admin
def admin_list_windows():
    return {"windows": windows_service.list_all_windows()}


@windows_bp.post("/api/admin/delivery/windows")
@require_admin
def admin_create_window():
    payload = request.get_json(silent=True) or {}
    try:
        created = windows_service.create_window(payload)
    except (ValidationError, WindowError) as e:
        return error_response(e)
    return {"window": created}, 201


@windows_bp.patch("/api/admin/delivery/windows/<int:window_id>")
@require_admin
def admin_update_window(window_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        updated = windows_service.update_window(window_id, payload)
    except (ValidationError, WindowError) as e:
        return error_response(e)
    return {"window": updated}


@windows_bp.delete("/api/admin/delivery/windows/<int:window_id>")
@require_admin
def admin_delete_window(window_id: int):
    try:
        windows_service.delete_window(window_id)
    except WindowError as e:
        return error_response(e)
    return {"deleted": True}


@windows_bp.post("/api/admin/delivery/generate-windows")
@require_admin
def admin_generate_windows():
    payload = request.get_json(silent=True) or {}
    try:
        days_ahead = coerce_int(payload.get("days_ahead", current_app.config["WINDOW_DAYS_AHEAD"]),
                                "days_ahead", minimum=0)
        result = windows_service.generate_windows_from_templates(days_ahead)
    except ValidationError as e:
        return error_response(e)
    return result.to_dict()


# =============================================================================
# ADMIN: WEEKLY TEMPLATES
# =============================================================================

@windows_bp.get("/api/admin/delivery/weekly-templates")
@require_admin
def admin_list_templates():
    return {"templates": windows_service.list_templates()}


@windows_bp.post("/api/admin/delivery/weekly-templates")
@require_admin
def admin_create_template():
    payload = request.get_json(silent=True) or {}
    try:
        created = windows_service.create_template(payload)
    except (ValidationError, WindowError) as e:
        return error_response(e)
    return {"template": created}, 201


@windows_bp.patch("/api/admin/delivery/weekly-templates/<int:template_id>")
@require_admin
def admin_update_template(template_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        updated = windows_service.update_template(template_id, payload)
    except (ValidationError, WindowError) as e:
        return error_response(e)
    return {"template": updated}


@windows_bp.delete("/api/admin/delivery/weekly-templates/<int:template_id>")
@require_admin
def admin_delete_template(template_id: int):
    try:
        windows_service.delete_template(template_id)
    except WindowError as e:
        return error_response(e)
    return {"deleted": True}
