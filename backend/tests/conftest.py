"""
Pytest fixtures for the delivery backend tests.

Provides the test app (in-memory SQLite, jobs off, mail suppressed), a
per-test table wipe, model factories and auth headers.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from storefront import create_app
from storefront.config import TestConfig
from storefront.extensions import db
from storefront.models import (
    CartItem,
    DeliveryCustomer,
    DeliveryProduct,
    DeliveryWindow,
    Promotion,
)
from storefront.models.customers import APPROVAL_APPROVED
from storefront.services import clover_sync_service, reviews_service
from storefront.services.auth_service import issue_customer_token
from storefront.time_utils import utcnow

# Store location in TestConfig (inherited from Config)
STORE_LAT = 33.1507
STORE_LNG = -96.8236


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        reviews_service.invalidate()
        clover_sync_service._mark_synced(None)

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# FACTORIES
# =============================================================================

def make_customer(email="alice@example.com", approved=True, lat=STORE_LAT, lng=STORE_LNG, **kwargs):
    customer = DeliveryCustomer(
        email=email,
        full_name=kwargs.pop("full_name", "Alice Smith"),
        phone=kwargs.pop("phone", "555-0100"),
        address=kwargs.pop("address", "1 Main St"),
        city=kwargs.pop("city", "Frisco"),
        state=kwargs.pop("state", "TX"),
        zip_code=kwargs.pop("zip_code", "75034"),
        lat=lat,
        lng=lng,
        approval_status=APPROVAL_APPROVED if approved else "pending",
        **kwargs,
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def make_product(name="Mango Ice Disposable", price="19.99", stock=10, enabled=True, **kwargs):
    product = DeliveryProduct(
        name=name,
        price=Decimal(price),
        stock_quantity=stock,
        enabled=enabled,
        category=kwargs.pop("category", "Disposables"),
        **kwargs,
    )
    db.session.add(product)
    db.session.commit()
    return product


def make_window(days_from_now=1, start_time="5:00 PM", end_time="7:00 PM", capacity=10, **kwargs):
    day = (utcnow() + timedelta(days=days_from_now)).date()
    window = DeliveryWindow(
        date=kwargs.pop("date", day.isoformat()),
        start_time=start_time,
        end_time=end_time,
        capacity=capacity,
        current_bookings=kwargs.pop("current_bookings", 0),
        enabled=kwargs.pop("enabled", True),
    )
    db.session.add(window)
    db.session.commit()
    return window


def make_promo(code="SAVE10", discount_type="percentage", discount_value="10", **kwargs):
    promo = Promotion(
        code=code,
        discount_type=discount_type,
        discount_value=Decimal(discount_value),
        minimum_order_amount=Decimal(kwargs.pop("minimum_order_amount", "0")),
        max_usage_per_customer=kwargs.pop("max_usage_per_customer", 1),
        enabled=kwargs.pop("enabled", True),
        **kwargs,
    )
    db.session.add(promo)
    db.session.commit()
    return promo


def put_in_cart(customer, product, quantity=1, updated_at=None):
    when = updated_at or utcnow()
    item = CartItem(customer_id=customer.id, product_id=product.id, quantity=quantity,
                    created_at=when, updated_at=when)
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def customer(db_session):
    return make_customer()


@pytest.fixture
def product(db_session):
    return make_product()


@pytest.fixture
def window(db_session):
    return make_window()


# =============================================================================
# AUTH
# =============================================================================

def customer_headers(customer) -> dict:
    """Bearer header for a customer (call inside the app context)."""
    return {'Authorization': f'Bearer {issue_customer_token(customer.id)}'}


def admin_headers() -> dict:
    return {'X-Admin-Token': 'test-admin-token', 'X-Admin-Id': 'admin@test'}
