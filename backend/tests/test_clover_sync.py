# Overview: Pytest coverage for the Clover inventory client, full sync merge rules and the enabled-product refresh.

from decimal import Decimal

import httpx
import pytest

from conftest import make_product
from storefront.extensions import db
from storefront.models import CartItem, DeliveryProduct
from storefront.money import to_cents
from storefront.services import clover_sync_service
from storefront.services.clover_client import (
    INVENTORY_PAGE_SIZE,
    CloverAPIError,
    CloverInventoryClient,
    CloverProduct,
    transform_item,
)
from storefront.services.clover_sync_service import CloverSyncError


def _item(item_id, name="Mango Ice", price=1999, stock=5, **extra):
    item = {
        "id": item_id,
        "name": name,
        "price": price,
        "itemStock": {"quantity": stock},
        "categories": {"elements": [{"name": "Disposables"}]},
    }
    item.update(extra)
    return item


def _client(handler):
    return CloverInventoryClient(api_base="https://clover.test", api_token="tok", merchant_id="M1",
                                 transport=httpx.MockTransport(handler))


def _serving(items):
    """Mock transport handler that pages through items like Clover does."""
    calls = []

    def handler(request):
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        calls.append(offset)
        return httpx.Response(200, json={"elements": items[offset:offset + limit]})

    handler.calls = calls
    return handler


def _pos(item_id, name="Mango Ice", price="19.99", stock=5):
    return CloverProduct(clover_item_id=item_id, name=name, price=Decimal(price), image="/placeholder-product.png",
                         description=name, category="Disposables", stock_quantity=stock)


class TestTransform:
    def test_price_cents_round_trip(self):
        product = transform_item(_item("A1", price=1999))
        assert product.price == Decimal("19.99")
        assert to_cents(product.price) == 1999

    def test_defaults_for_missing_fields(self):
        product = transform_item({"id": "B2", "name": "Plain"})
        assert product.image == "/placeholder-product.png"
        assert product.category == "Uncategorized"
        assert product.stock_quantity == 0
        assert product.description == "Plain"

    def test_negative_stock_clamped(self):
        assert transform_item(_item("C3", stock=-4)).stock_quantity == 0


class TestInventoryClient:
    def test_pagination_stops_at_short_page(self):
        items = [_item(f"I{i}") for i in range(INVENTORY_PAGE_SIZE + 5)]
        handler = _serving(items)
        fetched = _client(handler).fetch_inventory_items()
        assert len(fetched) == INVENTORY_PAGE_SIZE + 5
        assert handler.calls == [0, INVENTORY_PAGE_SIZE]

    def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["expand"] = request.url.params["expand"]
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"elements": []})

        _client(handler).fetch_inventory_items()
        assert seen == {
            "path": "/v3/merchants/M1/items",
            "expand": "itemStock,categories,images",
            "auth": "Bearer tok",
        }

    def test_unauthorized_raises_with_guidance(self):
        client = _client(lambda request: httpx.Response(401, json={"message": "bad token"}))
        with pytest.raises(CloverAPIError) as exc_info:
            client.fetch_inventory_items()
        assert exc_info.value.status_code == 401
        assert "Read Inventory" in str(exc_info.value)

    def test_server_error_raises(self):
        client = _client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(CloverAPIError) as exc_info:
            client.fetch_inventory_items()
        assert exc_info.value.status_code == 500

    def test_hidden_items_filtered(self):
        handler = _serving([_item("A1"), _item("H1", hidden=True), _item("U1", available=False)])
        products = _client(handler).get_transformed_inventory()
        assert [p.clover_item_id for p in products] == ["A1"]

    def test_unconfigured_client_refuses(self):
        client = CloverInventoryClient(api_base="https://clover.test", api_token="", merchant_id="")
        with pytest.raises(CloverAPIError):
            client.fetch_inventory_items()


class TestFullSync:
    def test_new_products_created_disabled(self, db_session):
        result = clover_sync_service.sync_products_from_clover([_pos("A1"), _pos("B2", name="Blue Razz")])
        assert result.created == 2
        assert result.synced == 2
        products = db.session.query(DeliveryProduct).all()
        assert all(p.enabled is False for p in products)

    def test_curated_fields_preserved(self, db_session):
        local = make_product(name="Old name", price="10.00", stock=1, clover_item_id="A1",
                             badge="Best Seller", display_order=3, sale_price=Decimal("8.00"))
        result = clover_sync_service.sync_products_from_clover([_pos("A1", name="New name", price="12.50", stock=9)])
        assert result.updated == 1

        db.session.expire_all()
        refreshed = db.session.get(DeliveryProduct, local.id)
        assert refreshed.name == "New name"
        assert refreshed.price == Decimal("12.50")
        assert refreshed.stock_quantity == 9
        assert refreshed.enabled is True
        assert refreshed.badge == "Best Seller"
        assert refreshed.display_order == 3
        assert refreshed.sale_price == Decimal("8.00")

    def test_stale_products_deleted_with_cart_lines(self, db_session, customer):
        stale = make_product(name="Discontinued", clover_item_id="OLD")
        db.session.add(CartItem(customer_id=customer.id, product_id=stale.id, quantity=1))
        db.session.commit()
        manual = make_product(name="Local only")

        result = clover_sync_service.sync_products_from_clover([_pos("A1")])
        assert result.deleted == 1
        assert db.session.get(DeliveryProduct, manual.id) is not None
        assert db.session.query(DeliveryProduct).filter_by(clover_item_id="OLD").count() == 0
        assert db.session.query(CartItem).count() == 0

    def test_empty_batch_deletes_nothing(self, db_session):
        make_product(clover_item_id="A1")
        result = clover_sync_service.sync_products_from_clover([])
        assert result.deleted == 0
        assert db.session.query(DeliveryProduct).count() == 1

    def test_duplicate_ids_first_wins(self, db_session):
        result = clover_sync_service.sync_products_from_clover(
            [_pos("X1", name="First", price="1.00"), _pos("X1", name="Second", price="2.00")]
        )
        product = db.session.query(DeliveryProduct).one()
        assert (product.name, product.price) == ("First", Decimal("1.00"))
        assert result.created == 1

    def test_run_full_sync_records_status(self, db_session):
        client = _client(_serving([_item("A1")]))
        result = clover_sync_service.run_full_sync(client)
        assert result.created == 1
        assert clover_sync_service.sync_status()["last_sync_time"] is not None

    def test_run_full_sync_requires_credentials(self, db_session):
        client = CloverInventoryClient(api_base="https://clover.test", api_token="", merchant_id="")
        with pytest.raises(CloverSyncError):
            clover_sync_service.run_full_sync(client)


class TestRefresh:
    def test_updates_enabled_products_only(self, db_session):
        on = make_product(name="On", price="10.00", stock=1, clover_item_id="A1")
        off = make_product(name="Off", price="10.00", stock=1, clover_item_id="B2", enabled=False)
        client = _client(_serving([_item("A1", price=1250, stock=7), _item("B2", price=999, stock=0),
                                   _item("NEW", name="Brand new")]))

        result = clover_sync_service.refresh_enabled_products(client)
        assert result.refreshed == 1
        assert not result.skipped

        db.session.expire_all()
        assert db.session.get(DeliveryProduct, on.id).stock_quantity == 7
        assert db.session.get(DeliveryProduct, on.id).price == Decimal("12.50")
        assert db.session.get(DeliveryProduct, off.id).stock_quantity == 1
        assert db.session.query(DeliveryProduct).count() == 2

    def test_failure_reports_zero(self, db_session):
        make_product(clover_item_id="A1")
        client = _client(lambda request: httpx.Response(503, text="down"))
        assert clover_sync_service.refresh_enabled_products(client).refreshed == 0

    def test_overlapping_refresh_skipped(self, db_session):
        make_product(clover_item_id="A1")
        assert clover_sync_service._refresh_guard.try_acquire()
        try:
            result = clover_sync_service.refresh_enabled_products(_client(_serving([_item("A1")])))
        finally:
            clover_sync_service._refresh_guard.release()
        assert result.skipped
        assert result.refreshed == 0
