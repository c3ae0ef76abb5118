# Overview: Pytest coverage for the HTTP layer; auth decorators, status codes and response shapes.

import json

from conftest import admin_headers, customer_headers, make_customer, make_product, make_promo
from storefront import create_app, start_background
from storefront.config import TestConfig
from storefront.extensions import db
from storefront.models import DeliveryCustomer
from storefront.services import jobs, promotions_service, windows_service
from storefront.services.auth_service import hash_password


class TestHealth:
    def test_health_ok(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        body = response.get_json()
        assert body['status'] == 'ok'
        assert body['database']['status'] == 'healthy'
        assert body['jobs']['enabled'] is False


class TestCustomerAuth:
    def test_missing_token(self, client, db_session):
        response = client.get('/api/delivery/cart')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Authentication required'

    def test_bad_token(self, client, db_session):
        response = client.get('/api/delivery/cart', headers={'Authorization': 'Bearer nope'})
        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid or expired token'

    def test_unapproved_customer_forbidden(self, client, db_session):
        pending = make_customer(email='p@example.com', approved=False)
        response = client.get('/api/delivery/cart', headers=customer_headers(pending))
        assert response.status_code == 403

    def test_login_returns_usable_token(self, client, db_session):
        make_customer(email='a@example.com', password_hash=hash_password('Passw0rdOK'))
        response = client.post('/api/delivery/login', json={'email': 'a@example.com', 'password': 'Passw0rdOK'})
        assert response.status_code == 200
        token = response.get_json()['token']

        me = client.get('/api/delivery/customers/me', headers={'Authorization': f'Bearer {token}'})
        assert me.status_code == 200
        assert me.get_json()['customer']['email'] == 'a@example.com'

    def test_login_wrong_password(self, client, db_session):
        make_customer(email='a@example.com', password_hash=hash_password('Passw0rdOK'))
        response = client.post('/api/delivery/login', json={'email': 'a@example.com', 'password': 'bad'})
        assert response.status_code == 401

    def test_signup_is_pending(self, client, db_session):
        response = client.post('/api/delivery/customers', json={
            'email': 'new@example.com', 'full_name': 'Nora New', 'phone': '555-0199',
            'address': '1 Main St', 'lat': 33.15, 'lng': -96.82,
        })
        assert response.status_code == 201
        assert response.get_json()['customer']['approval_status'] == 'pending'

    def test_password_reset_flow(self, client, db_session):
        make_customer(email='a@example.com', password_hash=hash_password('Passw0rdOK'))
        response = client.post('/api/delivery/password-reset', json={'email': 'a@example.com'})
        assert response.status_code == 200

        db.session.expire_all()
        token = db.session.query(DeliveryCustomer).filter_by(email='a@example.com').one().password_reset_token
        response = client.post('/api/delivery/reset-password', json={'token': token, 'password': 'N3wPassword'})
        assert response.status_code == 200
        assert response.get_json()['token']

        login = client.post('/api/delivery/login', json={'email': 'a@example.com', 'password': 'N3wPassword'})
        assert login.status_code == 200

    def test_password_reset_unknown_email_is_200(self, client, db_session):
        response = client.post('/api/delivery/password-reset', json={'email': 'nobody@example.com'})
        assert response.status_code == 200

    def test_password_reset_unapproved_is_403(self, client, db_session):
        make_customer(email='p@example.com', approved=False)
        response = client.post('/api/delivery/password-reset', json={'email': 'p@example.com'})
        assert response.status_code == 403


class TestAdminAuth:
    def test_admin_token_required(self, client, db_session):
        assert client.get('/api/admin/delivery/orders').status_code == 401
        assert client.get('/api/admin/delivery/orders',
                          headers={'X-Admin-Token': 'wrong'}).status_code == 401

    def test_admin_token_accepted(self, client, db_session):
        response = client.get('/api/admin/delivery/orders', headers=admin_headers())
        assert response.status_code == 200
        assert response.get_json() == {'orders': []}

    def test_approval_records_admin(self, client, db_session):
        pending = make_customer(email='p@example.com', approved=False)
        response = client.post(f'/api/admin/delivery/customers/{pending.id}/approval',
                               json={'status': 'approved'}, headers=admin_headers())
        assert response.status_code == 200
        db.session.expire_all()
        assert db.session.get(DeliveryCustomer, pending.id).approved_by == 'admin@test'


class TestCatalogRoutes:
    def test_only_enabled_products_listed(self, client, db_session):
        make_product(name='Visible')
        hidden = make_product(name='Hidden', enabled=False)
        names = [p['name'] for p in client.get('/api/delivery/products').get_json()['products']]
        assert names == ['Visible']
        assert client.get(f'/api/delivery/products/{hidden.id}').status_code == 404

    def test_admin_edit_of_pos_field_rejected(self, client, db_session):
        linked = make_product(clover_item_id='A1')
        response = client.patch(f'/api/admin/delivery/products/{linked.id}',
                                json={'price': '1.00'}, headers=admin_headers())
        assert response.status_code == 400
        assert 'managed by the POS' in response.get_json()['error']


class TestCartRoutes:
    def test_add_and_read(self, client, customer, product):
        headers = customer_headers(customer)
        response = client.post('/api/delivery/cart', json={'product_id': product.id, 'quantity': 2}, headers=headers)
        assert response.status_code == 201
        assert response.get_json()['cart']['subtotal'] == '39.98'

    def test_add_error_is_400(self, client, customer):
        empty = make_product(stock=0)
        response = client.post('/api/delivery/cart', json={'product_id': empty.id}, headers=customer_headers(customer))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'This product is out of stock'

    def test_bad_quantity_type(self, client, customer, product):
        response = client.post('/api/delivery/cart', json={'product_id': product.id, 'quantity': 1.5},
                               headers=customer_headers(customer))
        assert response.status_code == 400


class TestPromoRoutes:
    def test_missing_code(self, client, customer):
        response = client.post('/api/delivery/promo/validate', json={}, headers=customer_headers(customer))
        assert response.status_code == 400
        assert response.get_json() == {'valid': False, 'error_message': 'Promo code is required'}

    def test_valid_code_with_explicit_subtotal(self, client, customer):
        make_promo()
        response = client.post('/api/delivery/promo/validate', json={'code': 'SAVE10', 'order_subtotal': '80'},
                               headers=customer_headers(customer))
        body = response.get_json()
        assert body['valid'] is True
        assert body['discount_amount'] == '8.00'

    def test_admin_create_missing_fields(self, client, db_session):
        response = client.post('/api/admin/promotions', json={'code': 'X'}, headers=admin_headers())
        assert response.status_code == 400
        assert 'discount_type' in response.get_json()['error']

    def test_redeemed_promotion_delete_is_409(self, client, customer):
        promo = make_promo()
        promotions_service.record_promotion_usage(promo.id, customer.id, None, '5.00')
        response = client.delete(f'/api/admin/promotions/{promo.id}', headers=admin_headers())
        assert response.status_code == 409
        assert 'Disable it instead' in response.get_json()['error']


class TestOrderRoutes:
    def test_checkout_round_trip(self, client, customer, product, window):
        headers = customer_headers(customer)
        client.post('/api/delivery/cart', json={'product_id': product.id, 'quantity': 1}, headers=headers)
        response = client.post('/api/delivery/orders', json={'delivery_window_id': window.id}, headers=headers)
        assert response.status_code == 201
        order = response.get_json()['order']
        assert order['subtotal'] == '19.99'
        assert order['items'][0]['quantity'] == 1

        listed = client.get('/api/delivery/orders', headers=headers).get_json()['orders']
        assert [o['id'] for o in listed] == [order['id']]

    def test_other_customers_order_is_404(self, client, customer, product, window):
        headers = customer_headers(customer)
        client.post('/api/delivery/cart', json={'product_id': product.id}, headers=headers)
        order_id = client.post('/api/delivery/orders', json={'delivery_window_id': window.id},
                               headers=headers).get_json()['order']['id']
        other = make_customer(email='bob@example.com')
        assert client.get(f'/api/delivery/orders/{order_id}', headers=customer_headers(other)).status_code == 404

    def test_empty_cart_is_400(self, client, customer, window):
        response = client.post('/api/delivery/orders', json={'delivery_window_id': window.id},
                               headers=customer_headers(customer))
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Cart is empty'

    def test_webhook_rejects_unsigned(self, client, db_session):
        response = client.post('/api/clover-webhook', data=json.dumps({'type': 'PAYMENT'}),
                               content_type='application/json')
        assert response.status_code == 401

    def test_invalid_status_transition_is_400(self, client, customer, product, window):
        headers = customer_headers(customer)
        client.post('/api/delivery/cart', json={'product_id': product.id}, headers=headers)
        order_id = client.post('/api/delivery/orders', json={'delivery_window_id': window.id},
                               headers=headers).get_json()['order']['id']
        response = client.patch(f'/api/admin/delivery/orders/{order_id}/status',
                                json={'status': 'delivered'}, headers=admin_headers())
        assert response.status_code == 400
        assert response.get_json()['details'] == {'from': 'pending', 'to': 'delivered'}


class TestSettingsRoutes:
    def test_fee_settings_update_is_public(self, client, db_session):
        response = client.patch('/api/admin/delivery/fee-settings',
                                json={'fee_type': 'per_mile', 'per_mile_fee': '2.25'}, headers=admin_headers())
        assert response.status_code == 200
        public = client.get('/api/delivery/fee-settings').get_json()
        assert public['fee_type'] == 'per_mile'
        assert public['per_mile_fee'] == '2.25'

    def test_unknown_fee_type(self, client, db_session):
        response = client.patch('/api/admin/delivery/fee-settings', json={'fee_type': 'surge'},
                                headers=admin_headers())
        assert response.status_code == 400

    def test_calculate_fee_defaults_to_flat(self, client, customer):
        response = client.post('/api/delivery/calculate-fee', json={'item_count': 3},
                               headers=customer_headers(customer))
        body = response.get_json()
        assert body['delivery_fee'] == '10.00'
        assert body['item_count'] == 3


class TestWindowRoutes:
    def test_generate_windows_endpoint(self, client, db_session):
        response = client.post('/api/admin/delivery/generate-windows', json={'days_ahead': 4},
                               headers=admin_headers())
        assert response.status_code == 200
        assert response.get_json() == {'created': 0, 'skipped': 0}

    def test_bad_date_filter(self, client, db_session):
        assert client.get('/api/delivery/windows?date=tomorrow').status_code == 400


class TestReceiptRoute:
    def test_receipt(self, client, customer, product, window):
        headers = customer_headers(customer)
        client.post('/api/delivery/cart', json={'product_id': product.id, 'quantity': 2}, headers=headers)
        order_id = client.post('/api/delivery/orders', json={'delivery_window_id': window.id},
                               headers=headers).get_json()['order']['id']
        response = client.get(f'/api/delivery/orders/{order_id}/receipt', headers=headers)
        assert response.status_code == 200
        receipt = response.get_json()
        assert receipt['order_id'] == order_id
        assert receipt['items'][0]['line_total'] == '39.98'
        assert receipt['subtotal'] == '39.98'

    def test_receipt_unknown_order(self, client, customer):
        response = client.get('/api/delivery/orders/9999/receipt', headers=customer_headers(customer))
        assert response.status_code == 404


class ServingConfig(TestConfig):
    BACKGROUND_JOBS_ENABLED = True
    GENERATE_WINDOWS_ON_STARTUP = True


class TestAppStartup:
    def test_factory_has_no_startup_side_effects(self, monkeypatch):
        calls = []
        monkeypatch.setattr(jobs, 'start_background_jobs', lambda app: calls.append('jobs') or [])
        monkeypatch.setattr(windows_service, 'generate_windows_from_templates',
                            lambda days_ahead: calls.append('windows'))

        app = create_app(ServingConfig)
        assert calls == []
        assert 'storefront_jobs' not in app.extensions

        start_background(app)
        assert calls == ['windows', 'jobs']
        start_background(app)
        assert calls == ['windows', 'jobs', 'windows']
