from __future__ import annotations

from ..extensions import db
from storefront.money import format_money
from storefront.time_utils import to_utc_z, utcnow


# Fields owned by store staff. POS synchronization never writes these.
CURATED_FIELDS = (
    "enabled",
    "badge",
    "display_order",
    "is_featured_slideshow",
    "slideshow_position",
    "show_on_home_page",
    "home_page_order",
    "brand_id",
    "category_id",
    "product_line_id",
    "sale_price",
)

# Fields the POS is the source of truth for.
POS_FIELDS = ("name", "price", "image", "description", "category", "stock_quantity")


class DeliveryProduct(db.Model):
    """
    A product offered for delivery.

    Products linked to Clover carry clover_item_id; price and stock are
    refreshed from the POS, everything in CURATED_FIELDS is set locally.
    """
    __tablename__ = "delivery_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    clover_item_id = db.Column(db.String(64), nullable=True, unique=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    brand_id = db.Column(db.Integer, nullable=True)
    category_id = db.Column(db.Integer, nullable=True)
    product_line_id = db.Column(db.Integer, nullable=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    sale_price = db.Column(db.Numeric(10, 2), nullable=True)
    image = db.Column(db.String(512), nullable=False, default="/placeholder-product.png")
    images = db.Column(db.JSON, nullable=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=False, default="Uncategorized")
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    enabled = db.Column(db.Boolean, nullable=False, default=False, index=True)
    badge = db.Column(db.String(64), nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_featured_slideshow = db.Column(db.Boolean, nullable=False, default=False)
    slideshow_position = db.Column(db.Integer, nullable=True)
    show_on_home_page = db.Column(db.Boolean, nullable=False, default=False)
    home_page_order = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "clover_item_id": self.clover_item_id,
            "name": self.name,
            "brand": self.brand,
            "brand_id": self.brand_id,
            "category_id": self.category_id,
            "product_line_id": self.product_line_id,
            "price": format_money(self.price),
            "sale_price": format_money(self.sale_price),
            "image": self.image,
            "images": self.images or [],
            "description": self.description,
            "category": self.category,
            "stock_quantity": self.stock_quantity,
            "enabled": self.enabled,
            "badge": self.badge,
            "display_order": self.display_order,
            "is_featured_slideshow": self.is_featured_slideshow,
            "slideshow_position": self.slideshow_position,
            "show_on_home_page": self.show_on_home_page,
            "home_page_order": self.home_page_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
