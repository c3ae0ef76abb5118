from __future__ import annotations

from ..extensions import db
from storefront.money import format_money
from storefront.time_utils import to_utc_z, utcnow


DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
VALID_DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


class Promotion(db.Model):
    """
    Promo codes redeemable at delivery checkout.

    percentage: discount_value is a percent of the subtotal (10 = 10%).
    fixed: discount_value is dollars, capped at the subtotal.
    NULL caps mean unlimited.
    """
    __tablename__ = "promotions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)  # stored uppercase
    description = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False)
    discount_value = db.Column(db.Numeric(10, 2), nullable=False)
    minimum_order_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    max_usage_count = db.Column(db.Integer, nullable=True)
    current_usage_count = db.Column(db.Integer, nullable=False, default=0)
    max_usage_per_customer = db.Column(db.Integer, nullable=True, default=1)

    valid_from = db.Column(db.DateTime, nullable=True)
    valid_until = db.Column(db.DateTime, nullable=True)
    enabled = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": format_money(self.discount_value),
            "minimum_order_amount": format_money(self.minimum_order_amount),
            "max_usage_count": self.max_usage_count,
            "current_usage_count": self.current_usage_count,
            "max_usage_per_customer": self.max_usage_per_customer,
            "valid_from": to_utc_z(self.valid_from),
            "valid_until": to_utc_z(self.valid_until),
            "enabled": self.enabled,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PromotionUsage(db.Model):
    """Append-only redemption ledger. One row per order that applied a promotion."""
    __tablename__ = "promotion_usages"
    __table_args__ = (
        db.Index("ix_promotion_usages_promo_customer", "promotion_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    promotion_id = db.Column(db.Integer, db.ForeignKey("promotions.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("delivery_customers.id"), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("delivery_orders.id"), nullable=True)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False)
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "promotion_id": self.promotion_id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "discount_amount": format_money(self.discount_amount),
            "used_at": to_utc_z(self.used_at),
        }
