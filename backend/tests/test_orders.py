# Overview: Pytest coverage for checkout, card and hosted payments, the payment webhook, status changes, refunds and reorder.

import hashlib
import hmac
import json
from datetime import timedelta

import httpx
import pytest

from conftest import STORE_LAT, STORE_LNG, make_customer, make_product, make_promo, make_window, put_in_cart
from storefront.extensions import db, mail
from storefront.models import CartItem, DeliveryOrder, DeliveryProduct, DeliveryWindow, Promotion, PromotionUsage
from storefront.services import order_service, products_service, promotions_service
from storefront.services.clover_client import CloverHostedCheckoutClient, CloverPaymentClient
from storefront.services.order_service import (
    CheckoutError,
    InvalidTransitionError,
    OrderInUseError,
    OrderNotFoundError,
    PaymentFailedError,
    RefundError,
    WebhookSignatureError,
)
from storefront.services.pricing_service import ADDRESS_NEEDS_VERIFICATION
from storefront.time_utils import utcnow
from storefront.validation import ValidationError


def _payment_client(handler):
    return CloverPaymentClient(private_token="sk_test", transport=httpx.MockTransport(handler))


def _charge_ok(request):
    return httpx.Response(200, json={
        "id": "ch_123",
        "status": "succeeded",
        "amount": json.loads(request.content)["amount"],
        "source": {"last4": "4242", "brand": "VISA"},
    })


def _signed(body, secret="whsec-test", timestamp="1760000000"):
    digest = hmac.new(secret.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _hosted_client(captured=None, status="OPEN"):
    """Opens sessions CS1, CS2, ... and reports `status` for any of them; None makes the lookup fail."""
    opened = []

    def handler(request):
        if request.method == "GET":
            if status is None:
                return httpx.Response(503, json={"message": "Service unavailable"})
            return httpx.Response(200, json={"status": status, "paymentId": "pay_9"})
        if captured is not None:
            captured.update(json.loads(request.content))
        opened.append(request)
        session_id = f"CS{len(opened)}"
        return httpx.Response(200, json={"checkoutSessionId": session_id, "href": f"https://pay.test/{session_id}"})

    return CloverHostedCheckoutClient(private_token="hc_tok", merchant_id="MERCHANT1", webhook_secret="whsec-test",
                                      transport=httpx.MockTransport(handler))


def _webhook(session_id, status="APPROVED", payment_id="pay_1"):
    body = json.dumps({"type": "PAYMENT", "status": status, "data": session_id, "id": payment_id})
    return order_service.handle_payment_webhook(body, _signed(body))


@pytest.fixture
def cart_of_fifty(db_session, customer):
    """Two units at $25.00: a $50.00 subtotal."""
    product = make_product(price="25.00", stock=10)
    put_in_cart(customer, product, quantity=2)
    return product


class TestCashCheckout:
    def test_promo_order_totals_and_side_effects(self, db_session, customer, window, cart_of_fifty):
        promo = make_promo()
        with mail.record_messages() as outbox:
            order = order_service.create_order(customer, {
                "delivery_window_id": window.id,
                "payment_method": "cash",
                "promo_code": "save10",
            })

        data = order.to_dict(include_items=True)
        assert data["subtotal"] == "50.00"
        assert data["discount"] == "5.00"
        assert data["delivery_fee"] == "10.00"
        assert data["tax"] == "3.71"
        assert data["total"] == "58.71"
        assert data["promo_code"] == "SAVE10"
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["items"][0]["price"] == "25.00"
        assert data["billing_same_as_delivery"] is True

        db.session.expire_all()
        assert db.session.get(DeliveryWindow, window.id).current_bookings == 1
        assert db.session.query(CartItem).filter_by(customer_id=customer.id).count() == 0
        assert db.session.get(Promotion, promo.id).current_usage_count == 1
        assert db.session.query(PromotionUsage).filter_by(order_id=order.id).count() == 1
        assert any(m.subject == f"Order #{order.id} confirmed" for m in outbox)

    def test_item_price_is_snapshotted(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(customer, {"delivery_window_id": window.id})
        cart_of_fifty.price = 99
        db.session.commit()
        db.session.expire_all()
        assert db.session.get(DeliveryOrder, order.id).items[0].to_dict()["price"] == "25.00"

    def test_invalid_promo_is_dropped(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(customer, {"delivery_window_id": window.id, "promo_code": "BOGUS"})
        assert order.promo_code is None
        assert order.to_dict()["discount"] == "0.00"
        assert order.to_dict()["total"] == "64.13"

    def test_client_totals_are_ignored(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(customer, {
            "delivery_window_id": window.id, "total": "1.00", "delivery_fee": "0", "discount": "50",
        })
        assert order.to_dict()["total"] == "64.13"

    def test_separate_billing_address_required_fields(self, db_session, customer, window, cart_of_fifty):
        with pytest.raises(ValidationError):
            order_service.create_order(customer, {
                "delivery_window_id": window.id, "billing_same_as_delivery": False, "billing_address": "9 Elm",
            })


class TestCheckoutFailures:
    def test_empty_cart(self, db_session, customer, window):
        with pytest.raises(CheckoutError, match="Cart is empty"):
            order_service.create_order(customer, {"delivery_window_id": window.id})

    def test_disabled_product_in_cart(self, db_session, customer, window, cart_of_fifty):
        cart_of_fifty.enabled = False
        db.session.commit()
        with pytest.raises(CheckoutError, match="is no longer available"):
            order_service.create_order(customer, {"delivery_window_id": window.id})

    def test_insufficient_stock(self, db_session, customer, window, cart_of_fifty):
        cart_of_fifty.stock_quantity = 1
        db.session.commit()
        with pytest.raises(CheckoutError, match="Only 1 available in stock"):
            order_service.create_order(customer, {"delivery_window_id": window.id})

    def test_outside_delivery_zone(self, db_session, window):
        far = make_customer(email="far@example.com", lat=STORE_LAT + 0.1, lng=STORE_LNG)
        put_in_cart(far, make_product())
        with pytest.raises(CheckoutError, match="outside our 3-mile delivery zone"):
            order_service.create_order(far, {"delivery_window_id": window.id})

    def test_missing_coordinates_fail_closed(self, db_session, window):
        unplaced = make_customer(email="nowhere@example.com", lat=None, lng=None)
        put_in_cart(unplaced, make_product())
        with pytest.raises(CheckoutError) as exc_info:
            order_service.create_order(unplaced, {"delivery_window_id": window.id})
        assert str(exc_info.value) == ADDRESS_NEEDS_VERIFICATION

    def test_window_required(self, db_session, customer, cart_of_fifty):
        with pytest.raises(CheckoutError, match="Please select a delivery window"):
            order_service.create_order(customer, {})

    def test_closed_window(self, db_session, customer, cart_of_fifty):
        closed = make_window(days_from_now=0, start_time="00:01", end_time="00:30")
        with pytest.raises(CheckoutError, match="has closed"):
            order_service.create_order(customer, {"delivery_window_id": closed.id})

    def test_full_window(self, db_session, customer, cart_of_fifty):
        full = make_window(capacity=1, current_bookings=1)
        with pytest.raises(CheckoutError, match="Selected delivery window is full"):
            order_service.create_order(customer, {"delivery_window_id": full.id})

    def test_reserve_refuses_last_slot_taken(self, db_session):
        window = make_window(capacity=1, current_bookings=1)
        with pytest.raises(CheckoutError, match="full"):
            order_service._reserve_window(window)

    def test_nothing_persisted_on_failure(self, db_session, customer, cart_of_fifty):
        full = make_window(capacity=1, current_bookings=1)
        with pytest.raises(CheckoutError):
            order_service.create_order(customer, {"delivery_window_id": full.id})
        assert db.session.query(DeliveryOrder).count() == 0
        assert db.session.query(CartItem).count() == 1


class TestCardCheckout:
    def test_successful_charge_confirms_order(self, db_session, customer, window, cart_of_fifty):
        charged = {}

        def handler(request):
            charged.update(json.loads(request.content))
            return _charge_ok(request)

        order = order_service.create_order(
            customer,
            {"delivery_window_id": window.id, "payment_method": "credit_card", "card_token": "clv_tok"},
            payment_client=_payment_client(handler),
        )
        assert charged["amount"] == 6413
        assert charged["source"] == "clv_tok"
        assert order.status == "confirmed"
        assert order.payment_status == "paid"
        assert order.clover_charge_id == "ch_123"
        assert order.card_last4 == "4242"

    def test_declined_charge_persists_nothing(self, db_session, customer, window, cart_of_fifty):
        def declined(request):
            return httpx.Response(402, json={"error": {"message": "Card declined", "code": "card_declined"}})

        with pytest.raises(PaymentFailedError) as exc_info:
            order_service.create_order(
                customer,
                {"delivery_window_id": window.id, "payment_method": "credit_card", "card_token": "clv_tok"},
                payment_client=_payment_client(declined),
            )
        assert exc_info.value.status_code == 402
        assert str(exc_info.value) == order_service.PAYMENT_FAILED_MESSAGE

        db.session.expire_all()
        assert db.session.query(DeliveryOrder).count() == 0
        assert db.session.get(DeliveryWindow, window.id).current_bookings == 0
        assert db.session.query(CartItem).count() == 1

    def test_non_succeeded_status_is_failure(self, db_session, customer, window, cart_of_fifty):
        def pending(request):
            return httpx.Response(200, json={"id": "ch_9", "status": "pending", "amount": 1})

        with pytest.raises(PaymentFailedError):
            order_service.create_order(
                customer,
                {"delivery_window_id": window.id, "payment_method": "credit_card", "card_token": "clv_tok"},
                payment_client=_payment_client(pending),
            )

    def test_card_token_required(self, db_session, customer, window, cart_of_fifty):
        with pytest.raises(ValidationError, match="card_token"):
            order_service.create_order(customer, {"delivery_window_id": window.id, "payment_method": "credit_card"})

    def test_promo_cap_filled_after_validation_charges_full_price(self, db_session, customer, window,
                                                                 cart_of_fifty, monkeypatch):
        promo = make_promo(max_usage_count=1, max_usage_per_customer=None)
        validate = promotions_service.validate_promo_code

        def validate_then_lose_last_use(*args, **kwargs):
            result = validate(*args, **kwargs)
            # another checkout redeems the last use in between
            db.session.query(Promotion).filter_by(id=promo.id).update({Promotion.current_usage_count: 1})
            return result

        monkeypatch.setattr(promotions_service, "validate_promo_code", validate_then_lose_last_use)
        charged = {}

        def handler(request):
            charged.update(json.loads(request.content))
            return _charge_ok(request)

        order = order_service.create_order(
            customer,
            {"delivery_window_id": window.id, "payment_method": "credit_card", "card_token": "clv_tok",
             "promo_code": "SAVE10"},
            payment_client=_payment_client(handler),
        )
        assert charged["amount"] == 6413
        assert order.promo_code is None
        assert order.to_dict()["discount"] == "0.00"

        db.session.expire_all()
        assert db.session.get(Promotion, promo.id).current_usage_count == 1
        assert db.session.query(PromotionUsage).count() == 0

    def test_declined_charge_gives_back_promo_claim(self, db_session, customer, window, cart_of_fifty):
        promo = make_promo()

        def declined(request):
            return httpx.Response(402, json={"error": {"message": "Card declined", "code": "card_declined"}})

        with pytest.raises(PaymentFailedError):
            order_service.create_order(
                customer,
                {"delivery_window_id": window.id, "payment_method": "credit_card", "card_token": "clv_tok",
                 "promo_code": "SAVE10"},
                payment_client=_payment_client(declined),
            )
        db.session.expire_all()
        assert db.session.get(Promotion, promo.id).current_usage_count == 0


class TestHostedCheckout:
    def test_session_creates_pending_payment_order(self, db_session, customer, window, cart_of_fifty):
        captured = {}
        result = order_service.create_checkout_session(customer, {"delivery_window_id": window.id},
                                                       checkout_client=_hosted_client(captured))
        assert result["checkout_url"] == "https://pay.test/CS1"
        order = db.session.get(DeliveryOrder, result["order_id"])
        assert order.status == "pending_payment"
        assert order.clover_checkout_session_id == "CS1"
        names = [line["name"] for line in captured["shoppingCart"]["lineItems"]]
        assert "Delivery fee" in names
        assert "Sales tax" in names
        # cart is kept until payment is confirmed
        assert db.session.query(CartItem).count() == 1

    def test_discounted_session_uses_single_line(self, db_session, customer, window, cart_of_fifty):
        make_promo()
        captured = {}
        order_service.create_checkout_session(customer, {"delivery_window_id": window.id, "promo_code": "SAVE10"},
                                              checkout_client=_hosted_client(captured))
        lines = captured["shoppingCart"]["lineItems"]
        assert len(lines) == 1
        assert lines[0]["price"] == 5871

    def test_webhook_confirms_once(self, db_session, customer, window, cart_of_fifty):
        make_promo()
        result = order_service.create_checkout_session(customer, {"delivery_window_id": window.id, "promo_code": "SAVE10"},
                                                       checkout_client=_hosted_client())

        first = _webhook("CS1")
        second = _webhook("CS1")
        assert first["handled"] is True
        assert second["handled"] is False

        db.session.expire_all()
        order = db.session.get(DeliveryOrder, result["order_id"])
        assert order.status == "confirmed"
        assert order.payment_status == "paid"
        assert order.clover_charge_id == "pay_1"
        assert db.session.query(PromotionUsage).count() == 1
        assert db.session.query(CartItem).count() == 0

    def test_webhook_bad_signature(self, db_session):
        body = json.dumps({"type": "PAYMENT", "status": "APPROVED", "data": "CS1"})
        with pytest.raises(WebhookSignatureError):
            order_service.handle_payment_webhook(body, _signed(body, secret="wrong"))
        with pytest.raises(WebhookSignatureError):
            order_service.handle_payment_webhook(body, None)

    def test_webhook_ignores_other_events(self, db_session):
        body = json.dumps({"type": "REFUND", "status": "APPROVED", "data": "CS1"})
        assert order_service.handle_payment_webhook(body, _signed(body))["handled"] is False
        assert _webhook("UNKNOWN", status="DECLINED")["handled"] is False

    def test_declined_webhook_cancels_and_releases_window(self, db_session, customer, window, cart_of_fifty):
        make_promo()
        result = order_service.create_checkout_session(customer, {"delivery_window_id": window.id, "promo_code": "SAVE10"},
                                                       checkout_client=_hosted_client())
        db.session.expire_all()
        assert db.session.get(DeliveryWindow, window.id).current_bookings == 1

        assert _webhook("CS1", status="DECLINED")["handled"] is True
        # a late approval for the same session changes nothing
        assert _webhook("CS1")["handled"] is False

        db.session.expire_all()
        order = db.session.get(DeliveryOrder, result["order_id"])
        assert order.status == "cancelled"
        assert order.payment_status == "failed"
        assert db.session.get(DeliveryWindow, window.id).current_bookings == 0
        assert db.session.query(PromotionUsage).count() == 0
        assert db.session.query(CartItem).count() == 1

    def test_redirect_does_not_confirm_unpaid_session(self, db_session, customer, window, cart_of_fifty):
        client = _hosted_client(status="OPEN")
        result = order_service.create_checkout_session(customer, {"delivery_window_id": window.id},
                                                       checkout_client=client)
        order = order_service.verify_hosted_payment(customer.id, "CS1", checkout_client=client)
        assert order.id == result["order_id"]
        assert order.status == "pending_payment"
        assert order.payment_status == "pending"
        assert order.clover_charge_id is None

        db.session.expire_all()
        assert db.session.query(CartItem).count() == 1
        assert db.session.get(DeliveryWindow, window.id).current_bookings == 1

    def test_redirect_confirms_when_gateway_reports_paid(self, db_session, customer, window, cart_of_fifty):
        client = _hosted_client(status="PAID")
        order_service.create_checkout_session(customer, {"delivery_window_id": window.id}, checkout_client=client)
        order = order_service.verify_hosted_payment(customer.id, "CS1", checkout_client=client)
        assert order.status == "confirmed"
        assert order.payment_status == "paid"
        assert order.clover_charge_id == "pay_9"
        assert db.session.query(CartItem).count() == 0

    def test_redirect_with_unreachable_gateway_leaves_order(self, db_session, customer, window, cart_of_fifty):
        client = _hosted_client(status=None)
        order_service.create_checkout_session(customer, {"delivery_window_id": window.id}, checkout_client=client)
        order = order_service.verify_hosted_payment(customer.id, "CS1", checkout_client=client)
        assert order.status == "pending_payment"
        assert order.payment_status == "pending"

    def test_redirect_after_gateway_decline_cancels(self, db_session, customer, window, cart_of_fifty):
        client = _hosted_client(status="DECLINED")
        order_service.create_checkout_session(customer, {"delivery_window_id": window.id}, checkout_client=client)
        order = order_service.verify_hosted_payment(customer.id, "CS1", checkout_client=client)
        assert order.status == "cancelled"
        assert order.payment_status == "failed"

    def test_redirect_for_unknown_session(self, db_session, customer):
        with pytest.raises(OrderNotFoundError):
            order_service.verify_hosted_payment(customer.id, "NOPE", checkout_client=_hosted_client())


class TestHostedPromoCaps:
    def test_second_session_cannot_hold_last_redemption(self, db_session, customer, window, cart_of_fifty):
        promo = make_promo(max_usage_count=1, max_usage_per_customer=None)
        bob = make_customer(email="bob@example.com")
        put_in_cart(bob, cart_of_fifty, quantity=2)
        client = _hosted_client()
        payload = {"delivery_window_id": window.id, "promo_code": "SAVE10"}

        first = order_service.create_checkout_session(customer, payload, checkout_client=client)
        second = order_service.create_checkout_session(bob, payload, checkout_client=client)
        first_order = db.session.get(DeliveryOrder, first["order_id"]).to_dict()
        second_order = db.session.get(DeliveryOrder, second["order_id"]).to_dict()
        assert first_order["promo_code"] == "SAVE10"
        assert first_order["total"] == "58.71"
        assert second_order["promo_code"] is None
        assert second_order["total"] == "64.13"

        assert _webhook("CS1", payment_id="pay_1")["handled"] is True
        assert _webhook("CS2", payment_id="pay_2")["handled"] is True

        db.session.expire_all()
        assert db.session.get(Promotion, promo.id).current_usage_count == 1
        assert db.session.query(PromotionUsage).count() == 1

    def test_same_customer_cannot_stack_pending_sessions(self, db_session, customer, window, cart_of_fifty):
        make_promo(max_usage_per_customer=1)
        client = _hosted_client()
        payload = {"delivery_window_id": window.id, "promo_code": "SAVE10"}

        order_service.create_checkout_session(customer, payload, checkout_client=client)
        second = order_service.create_checkout_session(customer, payload, checkout_client=client)
        order = db.session.get(DeliveryOrder, second["order_id"])
        assert order.promo_code is None
        assert order.to_dict()["discount"] == "0.00"

    def test_cap_taken_before_payment_confirms_without_ledger_row(self, db_session, customer, window,
                                                                 cart_of_fifty):
        promo = make_promo(max_usage_count=1, max_usage_per_customer=None)
        result = order_service.create_checkout_session(customer, {"delivery_window_id": window.id,
                                                                  "promo_code": "SAVE10"},
                                                       checkout_client=_hosted_client())
        # a cash order redeems the last use while the hosted payment is open
        bob = make_customer(email="bob@example.com")
        put_in_cart(bob, cart_of_fifty, quantity=2)
        cash = order_service.create_order(bob, {"delivery_window_id": window.id, "promo_code": "SAVE10"})
        assert cash.promo_code == "SAVE10"

        assert _webhook("CS1")["handled"] is True

        db.session.expire_all()
        assert db.session.get(DeliveryOrder, result["order_id"]).status == "confirmed"
        assert db.session.get(Promotion, promo.id).current_usage_count == 1
        assert [u.order_id for u in db.session.query(PromotionUsage).all()] == [cash.id]


class TestStaleCheckouts:
    def _age(self, order_id, hours=2):
        order = db.session.get(DeliveryOrder, order_id)
        order.created_at = utcnow() - timedelta(hours=hours)
        db.session.commit()

    def test_expires_stale_unpaid_sessions_only(self, db_session, customer, window, cart_of_fifty):
        client = _hosted_client(status="OPEN")
        stale = order_service.create_checkout_session(customer, {"delivery_window_id": window.id},
                                                      checkout_client=client)
        fresh = order_service.create_checkout_session(customer, {"delivery_window_id": window.id},
                                                      checkout_client=client)
        self._age(stale["order_id"])

        assert order_service.expire_stale_checkouts(checkout_client=client) == 1

        db.session.expire_all()
        expired = db.session.get(DeliveryOrder, stale["order_id"])
        assert expired.status == "cancelled"
        assert expired.payment_status == "failed"
        assert db.session.get(DeliveryOrder, fresh["order_id"]).status == "pending_payment"
        assert db.session.get(DeliveryWindow, window.id).current_bookings == 1

    def test_stale_session_paid_at_gateway_is_confirmed(self, db_session, customer, window, cart_of_fifty):
        client = _hosted_client(status="PAID")
        result = order_service.create_checkout_session(customer, {"delivery_window_id": window.id},
                                                       checkout_client=client)
        self._age(result["order_id"])

        assert order_service.expire_stale_checkouts(checkout_client=client) == 0
        db.session.expire_all()
        assert db.session.get(DeliveryOrder, result["order_id"]).status == "confirmed"

    def test_unreachable_gateway_leaves_stale_order_for_next_run(self, db_session, customer, window,
                                                                cart_of_fifty):
        client = _hosted_client(status=None)
        result = order_service.create_checkout_session(customer, {"delivery_window_id": window.id},
                                                       checkout_client=client)
        self._age(result["order_id"])

        assert order_service.expire_stale_checkouts(checkout_client=client) == 0
        db.session.expire_all()
        assert db.session.get(DeliveryOrder, result["order_id"]).status == "pending_payment"


class TestStatusAndRefunds:
    @pytest.fixture
    def order(self, db_session, customer, window, cart_of_fifty):
        return order_service.create_order(customer, {"delivery_window_id": window.id})

    def test_forward_transitions(self, order):
        for status in ("confirmed", "preparing", "out_for_delivery", "delivered"):
            assert order_service.update_order_status(order.id, status).status == status

    def test_invalid_transition(self, order):
        with pytest.raises(InvalidTransitionError, match="from pending to delivered"):
            order_service.update_order_status(order.id, "delivered")

    def test_cancel_releases_window(self, order, window):
        order_service.update_order_status(order.id, "cancelled")
        db.session.expire_all()
        assert db.session.get(DeliveryWindow, window.id).current_bookings == 0
        with pytest.raises(InvalidTransitionError):
            order_service.update_order_status(order.id, "confirmed")

    def test_payment_status_moves(self, order):
        assert order_service.update_payment_status(order.id, "paid").payment_status == "paid"
        with pytest.raises(InvalidTransitionError, match="refund endpoint"):
            order_service.update_payment_status(order.id, "refunded")

    @pytest.mark.parametrize("amount", ["0", "64.14", "-1", "abc"])
    def test_refund_bounds(self, order, amount):
        with pytest.raises(RefundError, match=r"between \$0.01 and \$64.13"):
            order_service.process_refund(order.id, amount, "damaged")

    def test_refund_requires_reason(self, order):
        with pytest.raises(RefundError, match="amount and reason are required"):
            order_service.process_refund(order.id, "5.00", "  ")

    def test_partial_refund_then_second_rejected(self, order):
        refunded = order_service.process_refund(order.id, "10.00", "late delivery")
        assert refunded.payment_status == "refunded"
        assert refunded.to_dict()["refund_amount"] == "10.00"
        with pytest.raises(RefundError, match="already been refunded"):
            order_service.process_refund(order.id, "1.00", "again")

    def test_card_refund_goes_through_gateway(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(
            customer,
            {"delivery_window_id": window.id, "payment_method": "credit_card", "card_token": "clv_tok"},
            payment_client=_payment_client(_charge_ok),
        )
        sent = {}

        def refund_handler(request):
            sent.update(json.loads(request.content))
            return httpx.Response(200, json={"id": "rf_1", "status": "succeeded"})

        refunded = order_service.process_refund(order.id, "64.13", "customer request",
                                                payment_client=_payment_client(refund_handler))
        assert sent == {"charge": "ch_123", "amount": 6413}
        assert refunded.clover_refund_id == "rf_1"


class TestReorder:
    def test_reorder_reports_unavailable(self, db_session, customer, window, cart_of_fifty):
        other = make_product(name="Blue Razz", price="15.00")
        put_in_cart(customer, other)
        order = order_service.create_order(customer, {"delivery_window_id": window.id})

        other.enabled = False
        db.session.commit()

        result = order_service.reorder(customer.id, order.id)
        assert result["added_count"] == 1
        assert result["unavailable_items"] == [{"name": "Blue Razz", "reason": "Product no longer available"}]

    def test_reorder_after_product_deleted(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(customer, {"delivery_window_id": window.id})
        products_service.delete_product(cart_of_fifty.id)

        result = order_service.reorder(customer.id, order.id)
        assert result["added_count"] == 0
        assert result["unavailable_items"][0]["name"] == "Mango Ice Disposable"
        assert db.session.query(DeliveryProduct).count() == 0


class TestReceipt:
    def test_receipt_lines_and_totals(self, db_session, customer, window, cart_of_fifty):
        make_promo()
        order = order_service.create_order(customer, {"delivery_window_id": window.id, "promo_code": "SAVE10"})

        receipt = order_service.get_receipt(order.id, customer.id)
        assert receipt["order_id"] == order.id
        assert receipt["customer"]["email"] == customer.email
        assert receipt["delivery_window"]["date"] == window.date
        assert receipt["items"] == [{
            "name": "Mango Ice Disposable", "quantity": 2, "unit_price": "25.00", "line_total": "50.00",
        }]
        assert receipt["discount"] == "5.00"
        assert receipt["total"] == "58.71"
        assert receipt["placed_at"].endswith("Z")

    def test_receipt_keeps_snapshot_price(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(customer, {"delivery_window_id": window.id})
        cart_of_fifty.price = 99
        db.session.commit()
        assert order_service.get_receipt(order.id, customer.id)["items"][0]["unit_price"] == "25.00"

    def test_other_customers_receipt(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(customer, {"delivery_window_id": window.id})
        other = make_customer(email="bob@example.com")
        with pytest.raises(OrderNotFoundError):
            order_service.get_receipt(order.id, other.id)


class TestDeleteOrder:
    def test_plain_order_is_deleted(self, db_session, customer, window, cart_of_fifty):
        order = order_service.create_order(customer, {"delivery_window_id": window.id})
        order_service.delete_order(order.id)
        assert db.session.query(DeliveryOrder).count() == 0

    def test_order_with_redemption_is_kept(self, db_session, customer, window, cart_of_fifty):
        make_promo()
        order = order_service.create_order(customer, {"delivery_window_id": window.id, "promo_code": "SAVE10"})
        with pytest.raises(OrderInUseError):
            order_service.delete_order(order.id)

        db.session.expire_all()
        assert db.session.get(DeliveryOrder, order.id) is not None
        usage = db.session.query(PromotionUsage).one()
        assert usage.order_id == order.id
