# Overview: Service-layer operations for the delivery cart; cart mutations and abandoned-cart detection.

"""
Cart Service

WHY: The cart is the only mutable pre-order state. Every mutation also
refreshes the customer's CartReminder row so the abandoned-cart job can
tell how long the cart has been idle.

INVARIANTS:
- One CartItem per (customer, product)
- add/update: reminder.cart_last_updated = now, reminder_count = 0
- clear: reminder row removed
- Quantities never exceed live stock
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import CartItem, CartReminder, DeliveryCustomer, DeliveryProduct
from ..models.customers import APPROVAL_APPROVED
from ..money import ZERO, format_money, to_money
from ..time_utils import utcnow


logger = logging.getLogger(__name__)


class CartError(Exception):
    """Raised for cart operation errors."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CartItemNotFoundError(CartError):
    status_code = 404


# =============================================================================
# PRICING HELPERS
# =============================================================================

def line_unit_price(product: DeliveryProduct) -> Decimal:
    """sale_price when set and positive, otherwise the regular price."""
    if product.sale_price is not None and to_money(product.sale_price) > 0:
        return to_money(product.sale_price)
    return to_money(product.price)


def cart_value(items: list[CartItem]) -> Decimal:
    total = ZERO
    for item in items:
        if item.product is None:
            continue
        total += line_unit_price(item.product) * item.quantity
    return to_money(total)


def item_count(items: list[CartItem]) -> int:
    return sum(item.quantity for item in items)


# =============================================================================
# CART READS
# =============================================================================

def get_cart_items(customer_id: int) -> list[CartItem]:
    return (
        db.session.query(CartItem)
        .filter_by(customer_id=customer_id)
        .order_by(CartItem.created_at, CartItem.id)
        .all()
    )


def get_cart(customer_id: int) -> dict:
    items = get_cart_items(customer_id)
    return {
        "items": [item.to_dict() for item in items],
        "item_count": item_count(items),
        "subtotal": format_money(cart_value(items)),
    }


# =============================================================================
# CART MUTATIONS
# =============================================================================

def touch_cart_reminder(customer_id: int, now: datetime | None = None) -> CartReminder:
    """Mark the cart as just updated and reset the reminder count. Does not commit."""
    now = now or utcnow()
    reminder = db.session.query(CartReminder).filter_by(customer_id=customer_id).first()
    if reminder is None:
        reminder = CartReminder(customer_id=customer_id, cart_last_updated=now, reminder_count=0)
        db.session.add(reminder)
    else:
        reminder.cart_last_updated = now
        reminder.reminder_count = 0
    return reminder


def _get_sellable_product(product_id: int) -> DeliveryProduct:
    product = db.session.get(DeliveryProduct, product_id)
    if product is None or not product.enabled:
        raise CartError("Product not available", {"product_id": product_id})
    return product


def _check_stock(product: DeliveryProduct, requested_total: int, already_in_cart: int = 0) -> None:
    stock = product.stock_quantity or 0
    if stock <= 0:
        raise CartError("This product is out of stock", {"product_id": product.id})
    if already_in_cart >= stock and requested_total > stock:
        raise CartError(
            "You've reached the maximum available quantity for this product",
            {"product_id": product.id, "available": stock},
        )
    if requested_total > stock:
        raise CartError(f"Only {stock} available in stock", {"product_id": product.id, "available": stock})


def add_to_cart(customer_id: int, product_id: int, quantity: int = 1, now: datetime | None = None) -> CartItem:
    """
    Add quantity of a product, merging into the existing line if present.
    """
    if quantity < 1:
        raise CartError("Quantity must be at least 1")

    now = now or utcnow()
    product = _get_sellable_product(product_id)
    existing = db.session.query(CartItem).filter_by(customer_id=customer_id, product_id=product_id).first()
    current_qty = existing.quantity if existing else 0

    _check_stock(product, current_qty + quantity, current_qty)

    if existing is not None:
        existing.quantity = current_qty + quantity
        existing.updated_at = now
        item = existing
    else:
        item = CartItem(customer_id=customer_id, product_id=product_id, quantity=quantity,
                        created_at=now, updated_at=now)
        db.session.add(item)

    touch_cart_reminder(customer_id, now)
    db.session.commit()
    return item


def update_cart_item_quantity(customer_id: int, item_id: int, quantity: int,
                              now: datetime | None = None) -> CartItem:
    if quantity < 1:
        raise CartError("Quantity must be at least 1")

    now = now or utcnow()
    item = db.session.query(CartItem).filter_by(id=item_id, customer_id=customer_id).first()
    if item is None:
        raise CartItemNotFoundError("Cart item not found")

    product = _get_sellable_product(item.product_id)
    _check_stock(product, quantity)

    item.quantity = quantity
    item.updated_at = now
    touch_cart_reminder(customer_id, now)
    db.session.commit()
    return item


def remove_cart_item(customer_id: int, item_id: int) -> None:
    item = db.session.query(CartItem).filter_by(id=item_id, customer_id=customer_id).first()
    if item is None:
        raise CartItemNotFoundError("Cart item not found")
    db.session.delete(item)
    db.session.flush()

    remaining = db.session.query(func.count(CartItem.id)).filter_by(customer_id=customer_id).scalar()
    if not remaining:
        db.session.query(CartReminder).filter_by(customer_id=customer_id).delete()
    db.session.commit()


def clear_cart(customer_id: int, commit: bool = True) -> int:
    """Remove every cart line and the reminder row. Returns the number of lines removed."""
    removed = db.session.query(CartItem).filter_by(customer_id=customer_id).delete()
    db.session.query(CartReminder).filter_by(customer_id=customer_id).delete()
    if commit:
        db.session.commit()
    return removed


# =============================================================================
# ABANDONED CARTS
# =============================================================================

@dataclass
class AbandonedCart:
    customer: DeliveryCustomer
    items: list[CartItem] = field(default_factory=list)
    cart_value: Decimal = ZERO
    reminder: CartReminder | None = None


def find_abandoned_carts(
    abandoned_hours: int,
    max_reminders: int,
    reminder_interval_hours: int,
    now: datetime | None = None,
) -> list[AbandonedCart]:
    """
    Carts idle for at least `abandoned_hours`.

    A cart is eligible when its most recent item update is at or before
    now - abandoned_hours (a cart exactly at the threshold counts), its
    owner is approved, fewer than max_reminders have been sent since the
    last cart change, and the previous reminder (if any) is at least
    reminder_interval_hours old.
    """
    now = now or utcnow()
    cutoff = now - timedelta(hours=abandoned_hours)
    resend_cutoff = now - timedelta(hours=reminder_interval_hours)

    last_update = func.max(CartItem.updated_at).label("last_update")
    idle_carts = (
        db.session.query(CartItem.customer_id, last_update)
        .group_by(CartItem.customer_id)
        .having(func.max(CartItem.updated_at) <= cutoff)
        .all()
    )

    results: list[AbandonedCart] = []
    for customer_id, _last in idle_carts:
        customer = db.session.get(DeliveryCustomer, customer_id)
        if customer is None or customer.approval_status != APPROVAL_APPROVED:
            continue

        reminder = db.session.query(CartReminder).filter_by(customer_id=customer_id).first()
        if reminder is not None:
            if reminder.reminder_count >= max_reminders:
                continue
            if reminder.last_reminder_sent is not None and reminder.last_reminder_sent > resend_cutoff:
                continue

        items = get_cart_items(customer_id)
        if not items:
            continue
        results.append(AbandonedCart(customer=customer, items=items, cart_value=cart_value(items),
                                     reminder=reminder))

    return results


def record_reminder_sent(customer_id: int, now: datetime | None = None) -> CartReminder:
    now = now or utcnow()
    reminder = db.session.query(CartReminder).filter_by(customer_id=customer_id).first()
    if reminder is None:
        reminder = CartReminder(customer_id=customer_id, cart_last_updated=now, reminder_count=0)
        db.session.add(reminder)
    reminder.last_reminder_sent = now
    reminder.reminder_count = (reminder.reminder_count or 0) + 1
    db.session.commit()
    return reminder
