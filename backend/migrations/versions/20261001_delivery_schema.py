"""Delivery storefront schema

Revision ID: 20261001_delivery_schema
Revises:
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_delivery_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "delivery_customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("city", sa.String(128), nullable=True),
        sa.Column("state", sa.String(64), nullable=True),
        sa.Column("zip_code", sa.String(16), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("photo_id_url", sa.String(512), nullable=True),
        sa.Column("approval_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("approved_by", sa.String(128), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("must_change_password", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("password_setup_token", sa.String(128), nullable=True),
        sa.Column("password_setup_token_expiry", sa.DateTime(), nullable=True),
        sa.Column("password_reset_token", sa.String(128), nullable=True),
        sa.Column("password_reset_token_expiry", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("password_setup_token"),
        sa.UniqueConstraint("password_reset_token"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("delivery_customers", schema=None) as batch_op:
        batch_op.create_index("ix_delivery_customers_email", ["email"], unique=True)
        batch_op.create_index("ix_delivery_customers_approval_status", ["approval_status"], unique=False)

    op.create_table(
        "delivery_products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("clover_item_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand", sa.String(128), nullable=True),
        sa.Column("brand_id", sa.Integer(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("product_line_id", sa.Integer(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("sale_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("image", sa.String(512), nullable=False, server_default="/placeholder-product.png"),
        sa.Column("images", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(128), nullable=False, server_default="Uncategorized"),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("badge", sa.String(64), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_featured_slideshow", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("slideshow_position", sa.Integer(), nullable=True),
        sa.Column("show_on_home_page", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("home_page_order", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("delivery_products", schema=None) as batch_op:
        batch_op.create_index("ix_delivery_products_clover_item_id", ["clover_item_id"], unique=True)
        batch_op.create_index("ix_delivery_products_enabled", ["enabled"], unique=False)

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["delivery_customers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["delivery_products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", "product_id", name="uq_cart_items_customer_product"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("cart_items", schema=None) as batch_op:
        batch_op.create_index("ix_cart_items_customer_id", ["customer_id"], unique=False)

    op.create_table(
        "cart_reminders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("cart_last_updated", sa.DateTime(), nullable=False),
        sa.Column("last_reminder_sent", sa.DateTime(), nullable=True),
        sa.Column("reminder_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["delivery_customers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "delivery_windows",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("start_time", sa.String(16), nullable=False),
        sa.Column("end_time", sa.String(16), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("current_bookings", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("delivery_windows", schema=None) as batch_op:
        batch_op.create_index("ix_delivery_windows_date", ["date"], unique=False)
        batch_op.create_index("ix_delivery_windows_slot", ["date", "start_time", "end_time"], unique=False)

    op.create_table(
        "weekly_delivery_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(16), nullable=False),
        sa.Column("end_time", sa.String(16), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("weekly_delivery_templates", schema=None) as batch_op:
        batch_op.create_index("ix_weekly_delivery_templates_day_of_week", ["day_of_week"], unique=False)

    op.create_table(
        "promotions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("minimum_order_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("max_usage_count", sa.Integer(), nullable=True),
        sa.Column("current_usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_usage_per_customer", sa.Integer(), nullable=True, server_default=sa.text("1")),
        sa.Column("valid_from", sa.DateTime(), nullable=True),
        sa.Column("valid_until", sa.DateTime(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("promotions", schema=None) as batch_op:
        batch_op.create_index("ix_promotions_code", ["code"], unique=True)
        batch_op.create_index("ix_promotions_enabled", ["enabled"], unique=False)

    op.create_table(
        "delivery_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("delivery_window_id", sa.Integer(), nullable=True),
        sa.Column("delivery_address", sa.String(512), nullable=False),
        sa.Column("billing_address", sa.String(255), nullable=True),
        sa.Column("billing_city", sa.String(128), nullable=True),
        sa.Column("billing_state", sa.String(64), nullable=True),
        sa.Column("billing_zip_code", sa.String(16), nullable=True),
        sa.Column("billing_same_as_delivery", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("promo_code", sa.String(64), nullable=True),
        sa.Column("promotion_id", sa.Integer(), nullable=True),
        sa.Column("tax", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("delivery_fee", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default="cash"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("clover_charge_id", sa.String(128), nullable=True),
        sa.Column("clover_checkout_session_id", sa.String(128), nullable=True),
        sa.Column("card_last4", sa.String(4), nullable=True),
        sa.Column("card_brand", sa.String(32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("refunded_at", sa.DateTime(), nullable=True),
        sa.Column("clover_refund_id", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["delivery_customers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["delivery_window_id"], ["delivery_windows.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["promotion_id"], ["promotions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("delivery_orders", schema=None) as batch_op:
        batch_op.create_index("ix_delivery_orders_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_delivery_orders_status", ["status"], unique=False)
        batch_op.create_index("ix_delivery_orders_clover_checkout_session_id", ["clover_checkout_session_id"], unique=False)

    op.create_table(
        "delivery_order_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["delivery_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["delivery_products.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("delivery_order_items", schema=None) as batch_op:
        batch_op.create_index("ix_delivery_order_items_order_id", ["order_id"], unique=False)

    op.create_table(
        "promotion_usages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("promotion_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("used_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["promotion_id"], ["promotions.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["delivery_customers.id"]),
        sa.ForeignKeyConstraint(["order_id"], ["delivery_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("promotion_usages", schema=None) as batch_op:
        batch_op.create_index("ix_promotion_usages_promo_customer", ["promotion_id", "customer_id"], unique=False)

    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("settings")
    with op.batch_alter_table("promotion_usages", schema=None) as batch_op:
        batch_op.drop_index("ix_promotion_usages_promo_customer")
    op.drop_table("promotion_usages")
    with op.batch_alter_table("delivery_order_items", schema=None) as batch_op:
        batch_op.drop_index("ix_delivery_order_items_order_id")
    op.drop_table("delivery_order_items")
    with op.batch_alter_table("delivery_orders", schema=None) as batch_op:
        batch_op.drop_index("ix_delivery_orders_clover_checkout_session_id")
        batch_op.drop_index("ix_delivery_orders_status")
        batch_op.drop_index("ix_delivery_orders_customer_id")
    op.drop_table("delivery_orders")
    with op.batch_alter_table("promotions", schema=None) as batch_op:
        batch_op.drop_index("ix_promotions_enabled")
        batch_op.drop_index("ix_promotions_code")
    op.drop_table("promotions")
    with op.batch_alter_table("weekly_delivery_templates", schema=None) as batch_op:
        batch_op.drop_index("ix_weekly_delivery_templates_day_of_week")
    op.drop_table("weekly_delivery_templates")
    with op.batch_alter_table("delivery_windows", schema=None) as batch_op:
        batch_op.drop_index("ix_delivery_windows_slot")
        batch_op.drop_index("ix_delivery_windows_date")
    op.drop_table("delivery_windows")
    op.drop_table("cart_reminders")
    with op.batch_alter_table("cart_items", schema=None) as batch_op:
        batch_op.drop_index("ix_cart_items_customer_id")
    op.drop_table("cart_items")
    with op.batch_alter_table("delivery_products", schema=None) as batch_op:
        batch_op.drop_index("ix_delivery_products_enabled")
        batch_op.drop_index("ix_delivery_products_clover_item_id")
    op.drop_table("delivery_products")
    with op.batch_alter_table("delivery_customers", schema=None) as batch_op:
        batch_op.drop_index("ix_delivery_customers_approval_status")
        batch_op.drop_index("ix_delivery_customers_email")
    op.drop_table("delivery_customers")
