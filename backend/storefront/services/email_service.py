# Overview: Outbound email via Flask-Mail; plain-text transactional messages that never raise.

"""
Email

WHY: Notifications (order confirmations, status changes, cart reminders,
account approval) are side effects. A mail failure is logged and reported
in the result; it never aborts the operation that triggered it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from flask_mail import Message

from ..extensions import mail
from ..money import format_money


logger = logging.getLogger(__name__)


ALIAS_NOREPLY = "noreply"
ALIAS_ORDERS = "orders"
ALIAS_SUPPORT = "support"


@dataclass(frozen=True)
class EmailResult:
    success: bool
    error: str | None = None


def sender_for(alias: str) -> str:
    aliases = current_app.config.get("MAIL_ALIASES") or {}
    if aliases.get(alias):
        return aliases[alias]
    domain = current_app.config.get("MAIL_DOMAIN", "example.com")
    return f"{alias}@{domain}"


def send_email(to: str, subject: str, body: str, alias: str = ALIAS_NOREPLY) -> EmailResult:
    if not to:
        return EmailResult(success=False, error="No recipient")
    try:
        msg = Message(subject=subject, recipients=[to], body=body, sender=sender_for(alias))
        mail.send(msg)
        return EmailResult(success=True)
    except Exception as exc:
        logger.error("Failed to send email to %s (%s): %s", to, subject, exc)
        return EmailResult(success=False, error=str(exc))


# =============================================================================
# MESSAGES
# =============================================================================

def _order_lines(order) -> str:
    return "\n".join(
        f"  {item.quantity} x {item.product_name} @ ${format_money(item.price)}" for item in order.items
    )


def send_order_confirmation(order) -> EmailResult:
    customer = order.customer
    body = (
        f"Hi {customer.full_name},\n\n"
        f"Thanks for your order #{order.id}.\n\n"
        f"{_order_lines(order)}\n\n"
        f"Subtotal: ${format_money(order.subtotal)}\n"
        f"Discount: -${format_money(order.discount)}\n"
        f"Delivery: ${format_money(order.delivery_fee)}\n"
        f"Tax: ${format_money(order.tax)}\n"
        f"Total: ${format_money(order.total)}\n\n"
        f"Deliver to: {order.delivery_address}\n"
    )
    return send_email(customer.email, f"Order #{order.id} confirmed", body, ALIAS_ORDERS)


def send_driver_notification(order, driver_email: str | None) -> EmailResult:
    if not driver_email:
        return EmailResult(success=False, error="No driver notification email configured")
    window = order.delivery_window
    slot = f"{window.date} {window.start_time}-{window.end_time}" if window else "unscheduled"
    body = (
        f"New delivery order #{order.id}\n"
        f"Customer: {order.customer.full_name} ({order.customer.phone})\n"
        f"Address: {order.delivery_address}\n"
        f"Window: {slot}\n"
        f"Payment: {order.payment_method} ({order.payment_status})\n"
        f"Total: ${format_money(order.total)}\n\n"
        f"{_order_lines(order)}\n"
    )
    return send_email(driver_email, f"New delivery order #{order.id}", body, ALIAS_ORDERS)


STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed.",
    "preparing": "We're preparing your order.",
    "out_for_delivery": "Your order is out for delivery!",
    "delivered": "Your order has been delivered. Enjoy!",
    "cancelled": "Your order has been cancelled.",
}


def send_order_status_update(order) -> EmailResult:
    message = STATUS_MESSAGES.get(order.status)
    if message is None:
        return EmailResult(success=False, error=f"No notification for status {order.status}")
    body = f"Hi {order.customer.full_name},\n\n{message}\n\nOrder #{order.id}\n"
    return send_email(order.customer.email, f"Order #{order.id} update", body, ALIAS_ORDERS)


def send_refund_notice(order) -> EmailResult:
    body = (
        f"Hi {order.customer.full_name},\n\n"
        f"A refund of ${format_money(order.refund_amount)} has been issued for order #{order.id}.\n"
    )
    return send_email(order.customer.email, f"Refund for order #{order.id}", body, ALIAS_ORDERS)


def send_abandoned_cart_reminder(customer, items, cart_total) -> EmailResult:
    lines = "\n".join(
        f"  {item.quantity} x {item.product.name}" for item in items if item.product is not None
    )
    body = (
        f"Hi {customer.full_name},\n\n"
        f"You left some items in your cart:\n\n{lines}\n\n"
        f"Cart total: ${format_money(cart_total)}\n\n"
        f"Complete your order: {current_app.config.get('PUBLIC_BASE_URL', '')}/delivery/cart\n"
    )
    return send_email(customer.email, "Your cart is waiting! Complete your order", body, ALIAS_NOREPLY)


def send_approval_email(customer, setup_token: str) -> EmailResult:
    link = f"{current_app.config.get('PUBLIC_BASE_URL', '')}/delivery/set-password?token={setup_token}"
    body = (
        f"Hi {customer.full_name},\n\n"
        f"Your delivery account has been approved. Set your password within 48 hours:\n{link}\n"
    )
    return send_email(customer.email, "Your delivery account is approved", body, ALIAS_SUPPORT)


def send_rejection_email(customer) -> EmailResult:
    reason = f"\nReason: {customer.rejection_reason}\n" if customer.rejection_reason else ""
    body = (
        f"Hi {customer.full_name},\n\n"
        f"We were unable to approve your delivery account.{reason}\n"
    )
    return send_email(customer.email, "Your delivery account application", body, ALIAS_SUPPORT)


def send_password_reset(customer, reset_token: str) -> EmailResult:
    link = f"{current_app.config.get('PUBLIC_BASE_URL', '')}/delivery/reset-password?token={reset_token}"
    body = (
        f"Hi {customer.full_name},\n\n"
        f"Use this link within the next hour to choose a new password:\n{link}\n\n"
        f"If you did not ask for this, you can ignore this email.\n"
    )
    return send_email(customer.email, "Reset your delivery account password", body, ALIAS_SUPPORT)
