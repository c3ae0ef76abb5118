# Overview: Flask API routes for the delivery catalog and Clover POS sync.

# backend/storefront/routes/products.py
"""
Delivery product routes.

The storefront only ever lists enabled products. Admin routes see every
product and may edit curated fields; name, price, stock, category, image
and description belong to the POS for Clover-linked products.
"""
from flask import Blueprint, request

from ..decorators import error_response, require_admin, server_error
from ..services import clover_sync_service, products_service
from ..services.clover_client import CloverAPIError
from ..services.clover_sync_service import CloverSyncError
from ..services.products_service import ProductNotFoundError
from ..validation import ValidationError

products_bp = Blueprint("products", __name__)


@products_bp.get("/api/delivery/products")
def list_products():
    category = request.args.get("category")
    return {"products": products_service.list_products(enabled_only=True, category=category)}


@products_bp.get("/api/delivery/products/<int:product_id>")
def get_product(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except ProductNotFoundError as e:
        return error_response(e)
    if not product.enabled:
        return {"error": "Product not found"}, 404
    return {"product": product.to_dict()}


# =============================================================================
# ADMIN
# =============================================================================

@products_bp.get("/api/admin/delivery/products")
@require_admin
def admin_list_products():
    return {"products": products_service.list_products(enabled_only=False)}


@products_bp.post("/api/admin/delivery/products")
@require_admin
def admin_create_product():
    payload = request.get_json(silent=True) or {}
    try:
        created = products_service.create_product(payload)
    except ValidationError as e:
        return error_response(e)
    return {"product": created}, 201


@products_bp.patch("/api/admin/delivery/products/<int:product_id>")
@require_admin
def admin_update_product(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        updated = products_service.update_product(product_id, payload)
    except (ValidationError, ProductNotFoundError) as e:
        return error_response(e)
    return {"product": updated}


@products_bp.delete("/api/admin/delivery/products/<int:product_id>")
@require_admin
def admin_delete_product(product_id: int):
    try:
        products_service.delete_product(product_id)
    except ProductNotFoundError as e:
        return error_response(e)
    return {"deleted": True}


# =============================================================================
# CLOVER SYNC
# =============================================================================

@products_bp.post("/api/admin/clover/sync")
@require_admin
def admin_full_sync():
    try:
        result = clover_sync_service.run_full_sync()
    except CloverSyncError as e:
        return error_response(e)
    except CloverAPIError as e:
        return {"error": str(e)}, 502
    except Exception:
        return server_error("Clover full sync failed")
    return result.to_dict()


@products_bp.post("/api/admin/clover/refresh-inventory")
@require_admin
def admin_refresh_inventory():
    return clover_sync_service.refresh_enabled_products().to_dict()


@products_bp.get("/api/admin/clover/sync-status")
@require_admin
def admin_sync_status():
    return clover_sync_service.sync_status()
