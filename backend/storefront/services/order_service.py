# Overview: Service-layer operations for delivery orders; checkout, payment reconciliation, status, refunds, reorder.

"""
Delivery Order Service

WHY: An order is the point where money moves, so every amount is
recomputed here from server-side state. Client-supplied totals, fees and
discounts are ignored.

CHECKOUT SEQUENCE (strictly in order, any failure aborts with nothing persisted):
1. cart non-empty; every product enabled and in stock
2. subtotal from live prices
3. delivery zone (fails closed without coordinates)
4. delivery window exists, enabled, not closed, has capacity (slot reserved)
5. promo re-validated (an invalid promo is dropped, not fatal)
6. delivery fee + tax + total
7. promo redemption claimed (caps re-checked atomically; a filled cap drops the discount)
8. card charge (credit_card only); anything but "succeeded" aborts
9. persist order + item price snapshots, clear cart, append promo ledger row
Then, best-effort and outside the transaction: POS refresh and emails.

STATUS MACHINE:
    pending_payment -> confirmed | cancelled
    pending         -> confirmed | preparing | cancelled
    confirmed       -> preparing | cancelled
    preparing       -> out_for_delivery | cancelled
    out_for_delivery-> delivered | cancelled
    delivered, cancelled: terminal
PAYMENT STATUS:
    pending -> paid | failed
    paid    -> refunded
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import (
    DeliveryCustomer,
    DeliveryOrder,
    DeliveryOrderItem,
    DeliveryProduct,
    DeliveryWindow,
    Promotion,
    PromotionUsage,
)
from ..money import ZERO, format_money, to_cents, to_money
from ..time_utils import to_store_local, to_utc_z, utcnow
from ..validation import ValidationError, coerce_int, coerce_money
from . import cart_service, email_service, promotions_service, settings_service, windows_service
from .cart_service import CartError
from .clover_client import (
    CHECKOUT_FAILED_STATUSES,
    CloverAPIError,
    CloverHostedCheckoutClient,
    CloverPaymentClient,
    PaymentGatewayError,
)
from .clover_sync_service import trigger_background_refresh
from .pricing_service import OrderTotals, ZoneCheck, check_delivery_zone, compute_delivery_fee, compute_order_totals
from .promotions_service import PromotionLimitError


logger = logging.getLogger(__name__)


# =============================================================================
# STATUS (CONSTANTS)
# =============================================================================

STATUS_PENDING_PAYMENT = "pending_payment"
STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_PREPARING = "preparing"
STATUS_OUT_FOR_DELIVERY = "out_for_delivery"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"

ALLOWED_TRANSITIONS = {
    STATUS_PENDING_PAYMENT: {STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_PENDING: {STATUS_CONFIRMED, STATUS_PREPARING, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_PREPARING, STATUS_CANCELLED},
    STATUS_PREPARING: {STATUS_OUT_FOR_DELIVERY, STATUS_CANCELLED},
    STATUS_OUT_FOR_DELIVERY: {STATUS_DELIVERED, STATUS_CANCELLED},
    STATUS_DELIVERED: set(),
    STATUS_CANCELLED: set(),
}
VALID_STATUSES = tuple(ALLOWED_TRANSITIONS)

# Statuses the customer is emailed about
NOTIFY_STATUSES = {STATUS_CONFIRMED, STATUS_PREPARING, STATUS_OUT_FOR_DELIVERY, STATUS_DELIVERED, STATUS_CANCELLED}

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"

PAYMENT_TRANSITIONS = {
    PAYMENT_PENDING: {PAYMENT_PAID, PAYMENT_FAILED},
    PAYMENT_PAID: {PAYMENT_REFUNDED},
    PAYMENT_FAILED: set(),
    PAYMENT_REFUNDED: set(),
}

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "credit_card"
VALID_PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_CARD)

PAYMENT_FAILED_MESSAGE = "Payment failed. Please try again or use a different card."


# =============================================================================
# ERRORS
# =============================================================================

class OrderError(Exception):
    """Raised for order operation errors."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderNotFoundError(OrderError):
    status_code = 404


class CheckoutError(OrderError):
    pass


class PaymentFailedError(OrderError):
    status_code = 402


class RefundError(OrderError):
    pass


class InvalidTransitionError(OrderError):
    pass


class WebhookSignatureError(OrderError):
    status_code = 401


class OrderInUseError(OrderError):
    status_code = 409


# =============================================================================
# CHECKOUT QUOTE
# =============================================================================

@dataclass
class QuoteLine:
    product: DeliveryProduct
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass
class CheckoutQuote:
    lines: list[QuoteLine]
    zone: ZoneCheck
    totals: OrderTotals
    promotion: Promotion | None = None
    promo_error: str | None = None
    window: DeliveryWindow | None = None

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self) -> dict:
        return {
            **self.totals.to_dict(),
            "item_count": self.item_count,
            "distance_miles": round(self.zone.distance, 2) if self.zone.distance is not None else None,
            "promo_code": self.promotion.code if self.promotion else None,
            "promo_error": self.promo_error,
        }


def _live_lines(customer_id: int) -> list[QuoteLine]:
    items = cart_service.get_cart_items(customer_id)
    if not items:
        raise CheckoutError("Cart is empty")

    lines: list[QuoteLine] = []
    for item in items:
        product = item.product
        if product is None or not product.enabled:
            name = product.name if product is not None else "A product in your cart"
            raise CheckoutError(f"{name} is no longer available", {"product_id": item.product_id})
        stock = product.stock_quantity or 0
        if item.quantity > stock:
            raise CheckoutError(
                f"Only {stock} available in stock for {product.name}",
                {"product_id": product.id, "available": stock},
            )
        lines.append(QuoteLine(product=product, quantity=item.quantity,
                               unit_price=cart_service.line_unit_price(product)))
    return lines


def _zone_for(customer: DeliveryCustomer) -> ZoneCheck:
    radius = settings_service.get_delivery_radius()
    origin = (current_app.config["STORE_LAT"], current_app.config["STORE_LNG"])
    zone = check_delivery_zone(customer.lat, customer.lng, radius, origin)
    message = zone.error_message(radius)
    if message:
        raise CheckoutError(message, {"distance": zone.distance, "radius": radius})
    return zone


def _check_window(window_id, now: datetime) -> DeliveryWindow:
    if window_id in (None, ""):
        raise CheckoutError("Please select a delivery window")
    window = db.session.get(DeliveryWindow, coerce_int(window_id, "delivery_window_id"))
    if window is None or not window.enabled:
        raise CheckoutError("Selected delivery window is not available")
    if windows_service.is_window_closed(window, to_store_local(now)):
        raise CheckoutError(windows_service.WINDOW_CLOSED_REASON)
    if window.is_full:
        raise CheckoutError("Selected delivery window is full")
    return window


def build_quote(customer: DeliveryCustomer, promo_code: str | None = None, window_id=None,
                now: datetime | None = None, require_window: bool = True) -> CheckoutQuote:
    """Server-side totals for the customer's current cart (checkout steps 1-6)."""
    now = now or utcnow()
    lines = _live_lines(customer.id)
    subtotal = to_money(sum((line.line_total for line in lines), ZERO))
    zone = _zone_for(customer)
    window = _check_window(window_id, now) if require_window else None

    promotion = None
    promo_error = None
    discount = ZERO
    if promo_code:
        result = promotions_service.validate_promo_code(promo_code, customer.id, subtotal, now=now)
        if result.valid:
            promotion = result.promotion
            discount = result.discount_amount
        else:
            # Invalid promo at order time is dropped, not fatal
            promo_error = result.error_message
            logger.info("Dropping promo %r for customer %s: %s", promo_code, customer.id, promo_error)

    fee = compute_delivery_fee(settings_service.get_fee_schedule(), zone.distance,
                               sum(line.quantity for line in lines))
    totals = compute_order_totals(subtotal, discount, fee, settings_service.get_tax_rate())
    return CheckoutQuote(lines=lines, zone=zone, totals=totals, promotion=promotion,
                         promo_error=promo_error, window=window)


def _without_promotion(quote: CheckoutQuote, reason: str) -> CheckoutQuote:
    totals = compute_order_totals(quote.totals.subtotal, ZERO, quote.totals.delivery_fee,
                                  settings_service.get_tax_rate())
    return replace(quote, totals=totals, promotion=None, promo_error=reason)


def _claim_promotion_or_drop(customer: DeliveryCustomer, quote: CheckoutQuote) -> CheckoutQuote:
    """Take the redemption before any money moves; a cap filled since validation drops the discount."""
    if quote.promotion is None or quote.totals.discount <= 0:
        return quote
    try:
        promotions_service.claim_promotion(quote.promotion.id, customer.id)
    except PromotionLimitError as exc:
        logger.info("Dropping promo %s for customer %s at checkout: %s", quote.promotion.code, customer.id, exc)
        return _without_promotion(quote, str(exc))
    return quote


def _pending_hold_error(customer: DeliveryCustomer, promotion: Promotion) -> str | None:
    """
    Cap check that also counts hosted checkouts still awaiting payment with
    the same promotion, since their redemption is only written on payment.
    """
    pending = db.session.query(DeliveryOrder).filter_by(
        promotion_id=promotion.id, status=STATUS_PENDING_PAYMENT
    )
    if promotion.max_usage_count is not None \
            and promotion.current_usage_count + pending.count() >= promotion.max_usage_count:
        return "This promo code has reached its usage limit"
    if promotion.max_usage_per_customer is not None:
        used = promotions_service.count_customer_usage(promotion.id, customer.id)
        if used + pending.filter_by(customer_id=customer.id).count() >= promotion.max_usage_per_customer:
            return "You have already used this promo code"
    return None


# =============================================================================
# PERSISTENCE HELPERS
# =============================================================================

def _reserve_window(window: DeliveryWindow) -> None:
    """Increment bookings only while below capacity (SQL-side, concurrent-safe)."""
    updated = db.session.query(DeliveryWindow).filter(
        DeliveryWindow.id == window.id,
        DeliveryWindow.current_bookings < DeliveryWindow.capacity,
    ).update({DeliveryWindow.current_bookings: DeliveryWindow.current_bookings + 1}, synchronize_session=False)
    if not updated:
        raise CheckoutError("Selected delivery window is full")
    db.session.refresh(window)


def _release_window(window_id: int | None) -> None:
    if window_id is None:
        return
    db.session.query(DeliveryWindow).filter(
        DeliveryWindow.id == window_id, DeliveryWindow.current_bookings > 0
    ).update({DeliveryWindow.current_bookings: DeliveryWindow.current_bookings - 1}, synchronize_session=False)


def _billing_fields(customer: DeliveryCustomer, payload: dict) -> dict:
    same = payload.get("billing_same_as_delivery", True) is not False
    if same:
        return {
            "billing_same_as_delivery": True,
            "billing_address": customer.address,
            "billing_city": customer.city,
            "billing_state": customer.state,
            "billing_zip_code": customer.zip_code,
        }
    for key in ("billing_address", "billing_city", "billing_state", "billing_zip_code"):
        if not (payload.get(key) or "").strip():
            raise ValidationError(f"Missing required fields: {key}")
    return {
        "billing_same_as_delivery": False,
        "billing_address": payload["billing_address"].strip(),
        "billing_city": payload["billing_city"].strip(),
        "billing_state": payload["billing_state"].strip(),
        "billing_zip_code": payload["billing_zip_code"].strip(),
    }


def _delivery_address(customer: DeliveryCustomer) -> str:
    parts = [customer.address, customer.city, customer.state, customer.zip_code]
    return ", ".join(p for p in parts if p)


def _new_order(customer: DeliveryCustomer, quote: CheckoutQuote, payload: dict, *, status: str,
               payment_method: str, payment_status: str) -> DeliveryOrder:
    totals = quote.totals
    order = DeliveryOrder(
        customer_id=customer.id,
        delivery_window_id=quote.window.id if quote.window else None,
        delivery_address=_delivery_address(customer),
        subtotal=totals.subtotal,
        discount=totals.discount,
        promo_code=quote.promotion.code if quote.promotion else None,
        promotion_id=quote.promotion.id if quote.promotion else None,
        tax=totals.tax,
        delivery_fee=totals.delivery_fee,
        total=totals.total,
        status=status,
        payment_method=payment_method,
        payment_status=payment_status,
        notes=(payload.get("notes") or "").strip() or None,
        **_billing_fields(customer, payload),
    )
    for line in quote.lines:
        order.items.append(DeliveryOrderItem(
            product_id=line.product.id,
            product_name=line.product.name,
            quantity=line.quantity,
            price=line.unit_price,
        ))
    db.session.add(order)
    db.session.flush()
    return order


def _after_order_placed(order: DeliveryOrder) -> None:
    """Best-effort side effects; never raises."""
    app = current_app._get_current_object()
    if app.config.get("BACKGROUND_JOBS_ENABLED"):
        try:
            trigger_background_refresh(app)
        except Exception:
            logger.exception("Failed to start POS refresh after order %s", order.id)
    try:
        email_service.send_order_confirmation(order)
        email_service.send_driver_notification(order, settings_service.get_driver_notification_email())
    except Exception:
        logger.exception("Failed to send notifications for order %s", order.id)


# =============================================================================
# CHECKOUT (DIRECT CHARGE / CASH)
# =============================================================================

def create_order(customer: DeliveryCustomer, payload: dict, payment_client: CloverPaymentClient | None = None,
                 now: datetime | None = None) -> DeliveryOrder:
    """
    Place an order from the customer's cart.

    payload: delivery_window_id, payment_method (cash|credit_card),
    card_token (credit_card), promo_code, notes, billing_* fields.
    """
    now = now or utcnow()
    payment_method = payload.get("payment_method") or PAYMENT_METHOD_CASH
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(VALID_PAYMENT_METHODS)}")
    card_token = payload.get("card_token")
    if payment_method == PAYMENT_METHOD_CARD and not card_token:
        raise ValidationError("card_token is required for credit card payments")

    quote = build_quote(customer, payload.get("promo_code"), payload.get("delivery_window_id"), now=now)

    try:
        _reserve_window(quote.window)
        quote = _claim_promotion_or_drop(customer, quote)
        charge = None
        if payment_method == PAYMENT_METHOD_CARD:
            charge = _charge_card(customer, quote, card_token, payment_client)

        order = _new_order(
            customer, quote, payload,
            status=STATUS_CONFIRMED if charge else STATUS_PENDING,
            payment_method=payment_method,
            payment_status=PAYMENT_PAID if charge else PAYMENT_PENDING,
        )
        if charge is not None:
            order.clover_charge_id = charge.id
            order.card_last4 = charge.last4
            order.card_brand = charge.brand

        cart_service.clear_cart(customer.id, commit=False)
        if quote.promotion is not None and quote.totals.discount > 0:
            promotions_service.record_promotion_usage(
                quote.promotion.id, customer.id, order.id, quote.totals.discount, commit=False, claimed=True
            )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Order %s placed by customer %s (%s, total %s)", order.id, customer.id,
                payment_method, format_money(order.total))
    _after_order_placed(order)
    return order


def _charge_card(customer: DeliveryCustomer, quote: CheckoutQuote, card_token: str,
                 payment_client: CloverPaymentClient | None):
    payment_client = payment_client or CloverPaymentClient.from_config()
    amount_cents = to_cents(quote.totals.total)
    try:
        charge = payment_client.charge(
            source=card_token,
            amount_cents=amount_cents,
            currency="usd",
            description=f"Delivery order for {customer.email}",
            external_ref=f"customer-{customer.id}",
        )
    except PaymentGatewayError as exc:
        logger.warning("Card charge failed for customer %s: %s", customer.id, exc)
        raise PaymentFailedError(PAYMENT_FAILED_MESSAGE, {"gateway_error": str(exc)})

    if not charge.succeeded:
        logger.warning("Card charge for customer %s returned status %r", customer.id, charge.status)
        raise PaymentFailedError(PAYMENT_FAILED_MESSAGE, {"charge_status": charge.status})
    return charge


def preview_totals(customer: DeliveryCustomer, promo_code: str | None = None) -> dict:
    """Fee/tax/total preview for the current cart; no window required."""
    return build_quote(customer, promo_code, require_window=False).to_dict()


def quote_delivery_fee(customer: DeliveryCustomer, item_count: int | None = None) -> dict:
    """Delivery fee for the customer's address; item_count defaults to the cart's."""
    zone = _zone_for(customer)
    if item_count is None:
        item_count = cart_service.item_count(cart_service.get_cart_items(customer.id))
    schedule = settings_service.get_fee_schedule()
    fee = compute_delivery_fee(schedule, zone.distance, item_count)
    return {
        "delivery_fee": format_money(fee),
        "distance_miles": round(zone.distance, 2),
        "item_count": item_count,
        "fee_type": schedule.fee_type.value,
    }


# =============================================================================
# HOSTED CHECKOUT
# =============================================================================

def _checkout_line_items(quote: CheckoutQuote, order: DeliveryOrder) -> list[dict]:
    if quote.totals.discount > 0:
        # Clover line items cannot be negative; charge the discounted total as one line
        return [{"name": f"Delivery order #{order.id}", "price": to_cents(quote.totals.total), "unitQty": 1}]
    lines = [
        {"name": line.product.name, "price": to_cents(line.unit_price), "unitQty": line.quantity}
        for line in quote.lines
    ]
    if quote.totals.delivery_fee > 0:
        lines.append({"name": "Delivery fee", "price": to_cents(quote.totals.delivery_fee), "unitQty": 1})
    if quote.totals.tax > 0:
        lines.append({"name": "Sales tax", "price": to_cents(quote.totals.tax), "unitQty": 1})
    return lines


def create_checkout_session(customer: DeliveryCustomer, payload: dict,
                            checkout_client: CloverHostedCheckoutClient | None = None,
                            now: datetime | None = None) -> dict:
    """Persist a pending_payment order and open a Clover hosted checkout for it."""
    now = now or utcnow()
    checkout_client = checkout_client or CloverHostedCheckoutClient.from_config()
    quote = build_quote(customer, payload.get("promo_code"), payload.get("delivery_window_id"), now=now)
    if quote.promotion is not None and quote.totals.discount > 0:
        hold_error = _pending_hold_error(customer, quote.promotion)
        if hold_error:
            logger.info("Dropping promo %s for customer %s: %s", quote.promotion.code, customer.id, hold_error)
            quote = _without_promotion(quote, hold_error)

    try:
        _reserve_window(quote.window)
        order = _new_order(customer, quote, payload, status=STATUS_PENDING_PAYMENT,
                           payment_method=PAYMENT_METHOD_CARD, payment_status=PAYMENT_PENDING)
        name_parts = customer.full_name.split(" ", 1)
        session = checkout_client.create_checkout_session(
            customer={
                "email": customer.email,
                "firstName": name_parts[0],
                "lastName": name_parts[1] if len(name_parts) > 1 else "",
                "phoneNumber": customer.phone or "",
            },
            line_items=_checkout_line_items(quote, order),
            external_ref=str(order.id),
        )
        order.clover_checkout_session_id = session.checkout_session_id
        db.session.commit()
    except CloverAPIError as exc:
        db.session.rollback()
        logger.error("Hosted checkout failed for customer %s: %s", customer.id, exc)
        raise CheckoutError("Unable to start payment. Please try again.", {"gateway_error": str(exc)})
    except Exception:
        db.session.rollback()
        raise

    return {"order_id": order.id, "checkout_url": session.href, "session_id": session.checkout_session_id}


def _confirm_hosted_payment(order: DeliveryOrder, payment_id: str | None) -> bool:
    """Mark a pending_payment order paid. Returns False if it was already reconciled."""
    if order.status != STATUS_PENDING_PAYMENT:
        return False
    order.status = STATUS_CONFIRMED
    order.payment_status = PAYMENT_PAID
    if payment_id:
        order.clover_charge_id = payment_id
    cart_service.clear_cart(order.customer_id, commit=False)
    if order.promotion_id is not None and to_money(order.discount) > 0:
        try:
            promotions_service.record_promotion_usage(
                order.promotion_id, order.customer_id, order.id, order.discount, commit=False
            )
        except PromotionLimitError as exc:
            # Already charged at the discounted amount; the ledger stays within its cap
            logger.warning("Order %s paid with promo %s over its cap: %s", order.id, order.promo_code, exc)
    db.session.commit()
    logger.info("Order %s payment confirmed via hosted checkout", order.id)
    _after_order_placed(order)
    return True


def _fail_hosted_payment(order: DeliveryOrder, reason: str) -> bool:
    """Cancel a pending_payment order and give back its window slot. Returns False if already reconciled."""
    if order.status != STATUS_PENDING_PAYMENT:
        return False
    order.status = STATUS_CANCELLED
    order.payment_status = PAYMENT_FAILED
    _release_window(order.delivery_window_id)
    db.session.commit()
    logger.info("Order %s cancelled: hosted payment %s", order.id, reason)
    return True


def handle_payment_webhook(raw_body: str, signature: str | None,
                           checkout_client: CloverHostedCheckoutClient | None = None) -> dict:
    checkout_client = checkout_client or CloverHostedCheckoutClient.from_config()
    if not checkout_client.verify_webhook_signature(signature, raw_body):
        raise WebhookSignatureError("Invalid signature")

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise ValidationError("Invalid JSON payload")

    if payload.get("type") != "PAYMENT":
        return {"received": True, "handled": False}

    status = str(payload.get("status") or "").upper()
    session_id = payload.get("data")
    order = db.session.query(DeliveryOrder).filter_by(clover_checkout_session_id=session_id).first()
    if order is None:
        logger.warning("[Clover Webhook] No order for checkout session %s", session_id)
        return {"received": True, "handled": False}

    if status == "APPROVED":
        handled = _confirm_hosted_payment(order, payload.get("id"))
    elif status in CHECKOUT_FAILED_STATUSES:
        handled = _fail_hosted_payment(order, status.lower())
    else:
        handled = False
    return {"received": True, "handled": handled, "order_id": order.id}


def _reconcile_with_gateway(order: DeliveryOrder, checkout_client: CloverHostedCheckoutClient) -> bool:
    """
    Ask Clover for the session status and apply it. Returns False when the
    status is unknown or still open, leaving the order untouched.
    """
    try:
        status = checkout_client.get_checkout_status(order.clover_checkout_session_id)
    except CloverAPIError as exc:
        logger.warning("Could not look up checkout %s for order %s: %s",
                       order.clover_checkout_session_id, order.id, exc)
        return False
    if status.paid:
        return _confirm_hosted_payment(order, status.payment_id)
    if status.failed:
        return _fail_hosted_payment(order, status.status.lower())
    return False


def verify_hosted_payment(customer_id: int, session_id: str,
                          checkout_client: CloverHostedCheckoutClient | None = None) -> DeliveryOrder:
    """
    Reconcile after the hosted-checkout redirect, in case the webhook is late.

    The redirect itself proves nothing; the order is confirmed only when
    Clover reports the checkout as paid.
    """
    if not session_id:
        raise ValidationError("Missing session ID")
    order = db.session.query(DeliveryOrder).filter_by(
        customer_id=customer_id, clover_checkout_session_id=session_id
    ).first()
    if order is None:
        raise OrderNotFoundError("Order not found for this payment session")
    if order.status == STATUS_PENDING_PAYMENT:
        _reconcile_with_gateway(order, checkout_client or CloverHostedCheckoutClient.from_config())
    return order


def expire_stale_checkouts(now: datetime | None = None, max_age: timedelta | None = None,
                           checkout_client: CloverHostedCheckoutClient | None = None) -> int:
    """
    Settle pending_payment orders older than max_age (default
    HOSTED_CHECKOUT_TTL_MINUTES). Paid sessions are confirmed; anything else
    is cancelled and its window slot released. Orders whose status cannot be
    looked up are left for the next run.
    """
    now = now or utcnow()
    if max_age is None:
        max_age = timedelta(minutes=current_app.config["HOSTED_CHECKOUT_TTL_MINUTES"])
    cutoff = now - max_age
    stale = (
        db.session.query(DeliveryOrder)
        .filter(DeliveryOrder.status == STATUS_PENDING_PAYMENT, DeliveryOrder.created_at <= cutoff)
        .order_by(DeliveryOrder.id)
        .all()
    )
    if not stale:
        return 0

    checkout_client = checkout_client or CloverHostedCheckoutClient.from_config()
    expired = 0
    for order in stale:
        if not order.clover_checkout_session_id:
            if _fail_hosted_payment(order, "never started"):
                expired += 1
            continue
        try:
            status = checkout_client.get_checkout_status(order.clover_checkout_session_id)
        except CloverAPIError as exc:
            logger.warning("Skipping stale order %s: %s", order.id, exc)
            continue
        if status.paid:
            _confirm_hosted_payment(order, status.payment_id)
        else:
            if _fail_hosted_payment(order, "expired"):
                expired += 1
    if expired:
        logger.info("Expired %s stale hosted checkout(s)", expired)
    return expired


# =============================================================================
# READS
# =============================================================================

def get_order(order_id: int, customer_id: int | None = None) -> DeliveryOrder:
    order = db.session.get(DeliveryOrder, order_id)
    if order is None or (customer_id is not None and order.customer_id != customer_id):
        raise OrderNotFoundError("Order not found")
    return order


def get_order_items(order_id: int) -> list[DeliveryOrderItem]:
    return (
        db.session.query(DeliveryOrderItem)
        .filter_by(order_id=order_id)
        .order_by(DeliveryOrderItem.id)
        .all()
    )


def get_receipt(order_id: int, customer_id: int) -> dict:
    """Receipt data for one of the customer's orders (items at their snapshot prices)."""
    order = get_order(order_id, customer_id=customer_id)
    items = get_order_items(order.id)
    window = order.delivery_window
    return {
        "order_id": order.id,
        "placed_at": to_utc_z(order.created_at),
        "status": order.status,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "customer": {
            "full_name": order.customer.full_name,
            "email": order.customer.email,
            "phone": order.customer.phone,
        },
        "delivery_address": order.delivery_address,
        "delivery_window": (
            {"date": window.date, "start_time": window.start_time, "end_time": window.end_time}
            if window is not None else None
        ),
        "items": [
            {
                "name": item.product_name,
                "quantity": item.quantity,
                "unit_price": format_money(item.price),
                "line_total": format_money(to_money(item.price) * item.quantity),
            }
            for item in items
        ],
        "subtotal": format_money(order.subtotal),
        "discount": format_money(order.discount),
        "promo_code": order.promo_code,
        "delivery_fee": format_money(order.delivery_fee),
        "tax": format_money(order.tax),
        "total": format_money(order.total),
        "refund_amount": format_money(order.refund_amount),
    }


def list_orders_for_customer(customer_id: int) -> list[dict]:
    orders = (
        db.session.query(DeliveryOrder)
        .filter_by(customer_id=customer_id)
        .order_by(DeliveryOrder.created_at.desc(), DeliveryOrder.id.desc())
        .all()
    )
    return [o.to_dict(include_items=True) for o in orders]


def list_all_orders(status: str | None = None) -> list[dict]:
    q = db.session.query(DeliveryOrder)
    if status:
        q = q.filter_by(status=status)
    orders = q.order_by(DeliveryOrder.created_at.desc(), DeliveryOrder.id.desc()).all()
    result = []
    for order in orders:
        data = order.to_dict(include_items=True)
        data["customer"] = order.customer.to_dict() if order.customer else None
        result.append(data)
    return result


# =============================================================================
# STATUS / PAYMENT TRANSITIONS
# =============================================================================

def update_order_status(order_id: int, new_status: str, notify: bool = True) -> DeliveryOrder:
    order = get_order(order_id)
    if new_status not in ALLOWED_TRANSITIONS:
        raise ValidationError(f"status must be one of: {', '.join(VALID_STATUSES)}")
    if new_status == order.status:
        return order
    if new_status not in ALLOWED_TRANSITIONS[order.status]:
        raise InvalidTransitionError(
            f"Cannot change order status from {order.status} to {new_status}",
            {"from": order.status, "to": new_status},
        )

    order.status = new_status
    if new_status == STATUS_CANCELLED:
        _release_window(order.delivery_window_id)
    db.session.commit()
    logger.info("Order %s status -> %s", order.id, new_status)

    if notify and new_status in NOTIFY_STATUSES:
        try:
            email_service.send_order_status_update(order)
        except Exception:
            logger.exception("Failed to send status email for order %s", order.id)
    return order


def update_payment_status(order_id: int, new_status: str) -> DeliveryOrder:
    order = get_order(order_id)
    if new_status not in PAYMENT_TRANSITIONS:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_TRANSITIONS)}")
    if new_status == PAYMENT_REFUNDED:
        raise InvalidTransitionError("Use the refund endpoint to refund an order")
    if new_status not in PAYMENT_TRANSITIONS[order.payment_status]:
        raise InvalidTransitionError(
            f"Cannot change payment status from {order.payment_status} to {new_status}"
        )
    order.payment_status = new_status
    db.session.commit()
    return order


# =============================================================================
# REFUNDS
# =============================================================================

def process_refund(order_id: int, amount, reason: str | None,
                   payment_client: CloverPaymentClient | None = None) -> DeliveryOrder:
    """
    Refund all or part of an order.

    For card orders with a charge id the gateway refund runs first; if it
    fails nothing changes locally.
    """
    order = get_order(order_id)
    if amount in (None, "") or not (reason or "").strip():
        raise RefundError("Refund amount and reason are required")
    if order.payment_status == PAYMENT_REFUNDED:
        raise RefundError("Order has already been refunded")
    if order.payment_status == PAYMENT_FAILED:
        raise RefundError("Cannot refund an order whose payment failed")

    total = to_money(order.total)
    try:
        refund_amount = coerce_money(amount, "amount")
    except ValidationError:
        raise RefundError(f"Refund amount must be between $0.01 and ${total:.2f}")
    if refund_amount <= 0 or refund_amount > total:
        raise RefundError(f"Refund amount must be between $0.01 and ${total:.2f}")

    refund_id = None
    if order.payment_method == PAYMENT_METHOD_CARD and order.clover_charge_id:
        payment_client = payment_client or CloverPaymentClient.from_config()
        try:
            result = payment_client.refund(order.clover_charge_id, to_cents(refund_amount))
        except PaymentGatewayError as exc:
            logger.error("Gateway refund failed for order %s: %s", order.id, exc)
            raise RefundError(f"Refund failed: {exc}")
        refund_id = result.id

    order.refund_amount = refund_amount
    order.refund_reason = reason.strip()
    order.refunded_at = utcnow()
    order.clover_refund_id = refund_id
    order.payment_status = PAYMENT_REFUNDED
    db.session.commit()
    logger.info("Order %s refunded %s", order.id, format_money(refund_amount))

    try:
        email_service.send_refund_notice(order)
    except Exception:
        logger.exception("Failed to send refund email for order %s", order.id)
    return order


# =============================================================================
# REORDER / DELETE
# =============================================================================

def reorder(customer_id: int, order_id: int) -> dict:
    """Add every item of a past order back to the cart; unavailable items are reported, not fatal."""
    order = get_order(order_id, customer_id=customer_id)
    added = 0
    unavailable: list[dict] = []

    for item in order.items:
        product = item.product
        name = product.name if product is not None else item.product_name
        if product is None or not product.enabled:
            unavailable.append({"name": name, "reason": "Product no longer available"})
            continue
        if not item.quantity or item.quantity < 1:
            unavailable.append({"name": name, "reason": "Invalid quantity"})
            continue
        try:
            cart_service.add_to_cart(customer_id, product.id, item.quantity)
            added += 1
        except CartError as exc:
            db.session.rollback()
            unavailable.append({"name": name, "reason": str(exc)})

    return {"added_count": added, "unavailable_items": unavailable}


def delete_order(order_id: int) -> None:
    """Hard delete (items cascade). Orders referenced by the promotion ledger are kept."""
    order = get_order(order_id)
    if db.session.query(PromotionUsage.id).filter_by(order_id=order.id).first() is not None:
        raise OrderInUseError("This order redeemed a promotion and cannot be deleted. Cancel it instead.")
    if order.status not in (STATUS_DELIVERED, STATUS_CANCELLED):
        _release_window(order.delivery_window_id)
    db.session.delete(order)
    db.session.commit()
    logger.info("Deleted order %s", order_id)

