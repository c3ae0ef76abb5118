# Overview: Service-layer operations for Clover inventory sync; full reconciliation and lightweight refresh.

"""
Clover Inventory Sync

WHY: Clover owns price and stock; store staff own merchandising. Sync must
update the former without ever touching the latter.

TWO MODES:
- Full sync (admin / CLI only): create new POS items (disabled), update
  POS-owned fields on existing rows, hard-delete POS-linked rows absent
  from the batch.
- Refresh (timer + after orders): stock and price only, for enabled
  POS-linked products. Never creates or deletes.

MERGE RULE: existing rows are updated through POS_FIELDS only. CURATED_FIELDS
(enabled, badge, ordering, sale price, ...) are never written by sync.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import CartItem, DeliveryOrderItem, DeliveryProduct
from ..models.catalog import POS_FIELDS
from ..money import from_cents
from ..time_utils import to_utc_z, utcnow
from .clover_client import CloverInventoryClient, CloverProduct
from .concurrency import JobGuard


logger = logging.getLogger(__name__)

_refresh_guard = JobGuard("clover-refresh")
_full_sync_guard = JobGuard("clover-full-sync")

_status_lock = threading.Lock()
_last_sync_time: datetime | None = None


class CloverSyncError(Exception):
    """Raised when a full sync cannot run."""

    status_code = 503


@dataclass(frozen=True)
class SyncResult:
    synced: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {
            "synced": self.synced,
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class RefreshResult:
    refreshed: int
    timestamp: datetime
    skipped: bool = False

    def to_dict(self) -> dict:
        return {"refreshed": self.refreshed, "timestamp": to_utc_z(self.timestamp), "skipped": self.skipped}


# =============================================================================
# FULL SYNC
# =============================================================================

def _dedupe(products: list[CloverProduct]) -> list[CloverProduct]:
    """First occurrence of a repeated id is kept; later ones are skipped."""
    by_id: dict[str, CloverProduct] = {}
    for product in products:
        if product.clover_item_id in by_id:
            logger.warning("[Clover Sync] Skipping duplicate item %s", product.clover_item_id)
            continue
        by_id[product.clover_item_id] = product
    return list(by_id.values())


def sync_products_from_clover(products: list[CloverProduct]) -> SyncResult:
    """
    Reconcile local products against a complete POS batch.

    An empty batch is treated as a failed fetch and deletes nothing.
    """
    batch = _dedupe(products)
    seen_ids = {p.clover_item_id for p in batch}

    existing = {
        p.clover_item_id: p
        for p in db.session.query(DeliveryProduct).filter(DeliveryProduct.clover_item_id.isnot(None)).all()
    }

    created = updated = errors = 0
    for incoming in batch:
        try:
            fields = incoming.pos_fields()
            if not fields["name"]:
                raise ValueError("item has no name")
            local = existing.get(incoming.clover_item_id)
            if local is None:
                db.session.add(DeliveryProduct(clover_item_id=incoming.clover_item_id, enabled=False, **fields))
                created += 1
            else:
                for field in POS_FIELDS:
                    setattr(local, field, fields[field])
                updated += 1
        except Exception:
            errors += 1
            logger.exception("[Clover Sync] Failed to sync item %s", incoming.clover_item_id)

    deleted = 0
    if seen_ids:
        stale = [p for cid, p in existing.items() if cid not in seen_ids]
        stale_ids = [p.id for p in stale]
        if stale_ids:
            # Placed orders keep their snapshot lines; carts drop the product
            db.session.query(CartItem).filter(CartItem.product_id.in_(stale_ids)).delete(synchronize_session=False)
            db.session.query(DeliveryOrderItem).filter(DeliveryOrderItem.product_id.in_(stale_ids)).update(
                {DeliveryOrderItem.product_id: None}, synchronize_session=False
            )
        for product in stale:
            db.session.delete(product)
        deleted = len(stale)
    else:
        logger.warning("[Clover Sync] Empty batch received; skipping deletion pass")

    db.session.commit()
    result = SyncResult(synced=created + updated, created=created, updated=updated, deleted=deleted, errors=errors)
    logger.info("[Clover Sync] Full sync: %s", result.to_dict())
    return result


def run_full_sync(client: CloverInventoryClient | None = None) -> SyncResult:
    """Fetch the whole POS catalog and reconcile. Admin/CLI triggered only."""
    client = client or CloverInventoryClient.from_config()
    if not client.is_configured():
        raise CloverSyncError("Clover API credentials are not configured")
    if not _full_sync_guard.try_acquire():
        raise CloverSyncError("A full sync is already running")
    try:
        products = client.get_transformed_inventory()
        result = sync_products_from_clover(products)
        _mark_synced(utcnow())
        return result
    finally:
        _full_sync_guard.release()


# =============================================================================
# LIGHTWEIGHT REFRESH
# =============================================================================

def _mark_synced(when: datetime) -> None:
    global _last_sync_time
    with _status_lock:
        _last_sync_time = when


def refresh_enabled_products(client: CloverInventoryClient | None = None) -> RefreshResult:
    """
    Update stock and price for enabled POS-linked products.

    Overlapping calls are skipped. Failures are logged and reported as
    zero refreshed; this never raises.
    """
    now = utcnow()
    if not _refresh_guard.try_acquire():
        logger.info("[Clover Sync] Refresh already running, skipping")
        return RefreshResult(refreshed=0, timestamp=now, skipped=True)

    try:
        client = client or CloverInventoryClient.from_config()
        if not client.is_configured():
            logger.info("[Clover Sync] Clover API credentials not configured, skipping refresh")
            return RefreshResult(refreshed=0, timestamp=now)

        enabled = {
            p.clover_item_id: p
            for p in db.session.query(DeliveryProduct).filter(
                DeliveryProduct.enabled.is_(True),
                DeliveryProduct.clover_item_id.isnot(None),
            ).all()
        }
        if not enabled:
            logger.info("[Clover Sync] No enabled products with Clover IDs, skipping refresh")
            return RefreshResult(refreshed=0, timestamp=now)

        refreshed = 0
        for item in client.fetch_inventory_items():
            product = enabled.get(str(item.get("id")))
            if product is None:
                continue
            stock = (item.get("itemStock") or {}).get("quantity") or 0
            product.stock_quantity = max(int(stock), 0)
            product.price = from_cents(item.get("price") or 0)
            refreshed += 1

        db.session.commit()
        finished = utcnow()
        _mark_synced(finished)
        logger.info("[Clover Sync] Refreshed %d enabled products", refreshed)
        return RefreshResult(refreshed=refreshed, timestamp=finished)
    except Exception:
        db.session.rollback()
        logger.exception("[Clover Sync] Error refreshing products")
        return RefreshResult(refreshed=0, timestamp=now)
    finally:
        _refresh_guard.release()


def trigger_background_refresh(app) -> threading.Thread:
    """Fire-and-forget refresh on a daemon thread (used after orders)."""

    def _run():
        with app.app_context():
            try:
                refresh_enabled_products()
            finally:
                db.session.remove()

    thread = threading.Thread(target=_run, name="clover-refresh-after-order", daemon=True)
    thread.start()
    return thread


def sync_status() -> dict:
    interval = int(current_app.config["CLOVER_SYNC_INTERVAL_SECONDS"])
    with _status_lock:
        last = _last_sync_time
    return {
        "last_sync_time": to_utc_z(last),
        "next_sync_time": to_utc_z(last + timedelta(seconds=interval)) if last else None,
        "interval_seconds": interval,
        "running": _refresh_guard.running or _full_sync_guard.running,
    }
