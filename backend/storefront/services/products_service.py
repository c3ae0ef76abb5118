# Overview: Service-layer operations for delivery products; storefront listing and curated-field edits.

from __future__ import annotations

from ..extensions import db
from ..models import CartItem, DeliveryOrderItem, DeliveryProduct
from ..validation import ValidationError, coerce_bool, coerce_int, coerce_money, require_fields


class ProductNotFoundError(Exception):
    status_code = 404


# Fields staff may edit locally. POS-owned fields are edited only for non-POS products.
_CURATED_INT_FIELDS = ("display_order", "slideshow_position", "home_page_order",
                       "brand_id", "category_id", "product_line_id")
_CURATED_BOOL_FIELDS = ("enabled", "is_featured_slideshow", "show_on_home_page")


def list_products(enabled_only: bool = True, category: str | None = None) -> list[dict]:
    q = db.session.query(DeliveryProduct)
    if enabled_only:
        q = q.filter(DeliveryProduct.enabled.is_(True))
    if category:
        q = q.filter(DeliveryProduct.category == category)
    rows = q.order_by(DeliveryProduct.display_order, DeliveryProduct.name).all()
    return [p.to_dict() for p in rows]


def get_product(product_id: int) -> DeliveryProduct:
    product = db.session.get(DeliveryProduct, product_id)
    if product is None:
        raise ProductNotFoundError("Product not found")
    return product


def create_product(data: dict) -> dict:
    """Manually managed product (not linked to the POS)."""
    require_fields(data, "name", "price")
    product = DeliveryProduct(
        name=data["name"].strip(),
        price=coerce_money(data["price"], "price"),
        description=data.get("description"),
        category=(data.get("category") or "Uncategorized").strip(),
        image=data.get("image") or "/placeholder-product.png",
        stock_quantity=coerce_int(data.get("stock_quantity", 0), "stock_quantity", minimum=0),
        enabled=coerce_bool(data.get("enabled", False)),
    )
    db.session.add(product)
    db.session.commit()
    return product.to_dict()


def update_product(product_id: int, data: dict) -> dict:
    product = get_product(product_id)

    for key in _CURATED_INT_FIELDS:
        if key in data:
            setattr(product, key, None if data[key] is None else coerce_int(data[key], key))
    for key in _CURATED_BOOL_FIELDS:
        if key in data:
            setattr(product, key, coerce_bool(data[key]))
    if "badge" in data:
        product.badge = (data["badge"] or "").strip() or None
    if "sale_price" in data:
        product.sale_price = None if data["sale_price"] in (None, "") else coerce_money(data["sale_price"], "sale_price")
    if "images" in data:
        if not isinstance(data["images"], list):
            raise ValidationError("images must be a list of URLs")
        product.images = [str(u) for u in data["images"]]

    pos_keys = [k for k in ("name", "price", "stock_quantity", "category", "description", "image") if k in data]
    if pos_keys and product.clover_item_id:
        raise ValidationError(f"{', '.join(pos_keys)} are managed by the POS for this product")
    if "name" in data:
        product.name = (data["name"] or "").strip() or product.name
    if "price" in data:
        product.price = coerce_money(data["price"], "price")
    if "stock_quantity" in data:
        product.stock_quantity = coerce_int(data["stock_quantity"], "stock_quantity", minimum=0)
    for key in ("category", "description", "image"):
        if key in data:
            setattr(product, key, data[key])

    db.session.commit()
    return product.to_dict()


def delete_product(product_id: int) -> None:
    product = get_product(product_id)
    db.session.query(CartItem).filter_by(product_id=product.id).delete()
    db.session.query(DeliveryOrderItem).filter_by(product_id=product.id).update(
        {DeliveryOrderItem.product_id: None}, synchronize_session=False
    )
    db.session.delete(product)
    db.session.commit()
