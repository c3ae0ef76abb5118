from __future__ import annotations

from ..extensions import db
from storefront.money import format_money
from storefront.time_utils import to_utc_z, utcnow


class DeliveryOrder(db.Model):
    """
    A delivery order.

    Every money column is computed server-side at checkout; item prices
    are snapshotted on DeliveryOrderItem so later catalog changes never
    alter a placed order.
    """
    __tablename__ = "delivery_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("delivery_customers.id", ondelete="CASCADE"), nullable=False, index=True)
    delivery_window_id = db.Column(db.Integer, db.ForeignKey("delivery_windows.id", ondelete="SET NULL"), nullable=True)

    delivery_address = db.Column(db.String(512), nullable=False)
    billing_address = db.Column(db.String(255), nullable=True)
    billing_city = db.Column(db.String(128), nullable=True)
    billing_state = db.Column(db.String(64), nullable=True)
    billing_zip_code = db.Column(db.String(16), nullable=True)
    billing_same_as_delivery = db.Column(db.Boolean, nullable=False, default=True)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    promo_code = db.Column(db.String(64), nullable=True)
    promotion_id = db.Column(db.Integer, db.ForeignKey("promotions.id", ondelete="SET NULL"), nullable=True)
    tax = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    delivery_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(db.String(32), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")

    clover_charge_id = db.Column(db.String(128), nullable=True)
    clover_checkout_session_id = db.Column(db.String(128), nullable=True, index=True)
    card_last4 = db.Column(db.String(4), nullable=True)
    card_brand = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    refund_amount = db.Column(db.Numeric(10, 2), nullable=True)
    refund_reason = db.Column(db.Text, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)
    clover_refund_id = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "DeliveryOrderItem",
        backref="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DeliveryOrderItem.id",
    )
    customer = db.relationship("DeliveryCustomer")
    delivery_window = db.relationship("DeliveryWindow")

    def to_dict(self, include_items: bool = False):
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "delivery_window_id": self.delivery_window_id,
            "delivery_address": self.delivery_address,
            "billing_address": self.billing_address,
            "billing_city": self.billing_city,
            "billing_state": self.billing_state,
            "billing_zip_code": self.billing_zip_code,
            "billing_same_as_delivery": self.billing_same_as_delivery,
            "subtotal": format_money(self.subtotal),
            "discount": format_money(self.discount),
            "promo_code": self.promo_code,
            "promotion_id": self.promotion_id,
            "tax": format_money(self.tax),
            "delivery_fee": format_money(self.delivery_fee),
            "total": format_money(self.total),
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "clover_charge_id": self.clover_charge_id,
            "clover_checkout_session_id": self.clover_checkout_session_id,
            "card_last4": self.card_last4,
            "card_brand": self.card_brand,
            "notes": self.notes,
            "refund_amount": format_money(self.refund_amount),
            "refund_reason": self.refund_reason,
            "refunded_at": to_utc_z(self.refunded_at),
            "clover_refund_id": self.clover_refund_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class DeliveryOrderItem(db.Model):
    __tablename__ = "delivery_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("delivery_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("delivery_products.id", ondelete="SET NULL"), nullable=True)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)  # unit price at time of order
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("DeliveryProduct")

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price": format_money(self.price),
            "image": self.product.image if self.product else None,
        }
