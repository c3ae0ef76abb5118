from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class CartItem(db.Model):
    """One product line in a customer's cart. A product appears at most once per cart."""
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("customer_id", "product_id", name="uq_cart_items_customer_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("delivery_customers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("delivery_products.id", ondelete="CASCADE"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("DeliveryProduct", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "product": self.product.to_dict() if self.product else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CartReminder(db.Model):
    """
    Abandoned-cart reminder bookkeeping, one row per customer.

    Touched on every cart mutation (count reset to 0); removed when the
    cart is emptied.
    """
    __tablename__ = "cart_reminders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("delivery_customers.id", ondelete="CASCADE"), nullable=False, unique=True)
    cart_last_updated = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_reminder_sent = db.Column(db.DateTime, nullable=True)
    reminder_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "cart_last_updated": to_utc_z(self.cart_last_updated),
            "last_reminder_sent": to_utc_z(self.last_reminder_sent),
            "reminder_count": self.reminder_count,
        }
