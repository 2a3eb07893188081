"""
Integration tests for the orders endpoints.
"""

from prometheus_client import REGISTRY
from sqlalchemy.exc import OperationalError

from betterbeing.models import CartItem, Order, Product, User
from betterbeing.services import order_service


def _checkout_body(address):
    return {'shippingAddress': address, 'paymentMethod': 'card'}


def _lost_connection(*args, **kwargs):
    raise OperationalError('UPDATE users', {}, Exception('connection lost'))


def _failure_count(reason):
    return REGISTRY.get_sample_value('checkout_failures_total', {'reason': reason}) or 0


class TestCreateFromCart:
    """POST /api/orders/create-from-cart"""

    def test_requires_token(self, client, shipping_address):
        response = client.post('/api/orders/create-from-cart', json=_checkout_body(shipping_address))

        assert response.status_code == 401
        assert response.get_json()['status'] == 'error'

    def test_rejects_bad_token(self, client, shipping_address):
        response = client.post(
            '/api/orders/create-from-cart',
            json=_checkout_body(shipping_address),
            headers={'Authorization': 'Bearer not-a-token'}
        )

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Not authorized, token failed'

    def test_creates_order(self, client, session, user, product_a, put_in_cart, auth_headers,
                           shipping_address):
        put_in_cart(user, product_a, 2)

        response = client.post(
            '/api/orders/create-from-cart',
            json=_checkout_body(shipping_address),
            headers=auth_headers(user)
        )

        assert response.status_code == 201
        data = response.get_json()
        assert data['message'] == 'Order created successfully'
        assert data['loyaltyPointsEarned'] == 280
        assert data['order']['total'] == '280.00'
        assert data['order']['subtotal'] == '200.00'
        assert data['order']['tax'] == '30.00'
        assert data['order']['shipping'] == '50.00'
        assert data['order']['status'] == 'pending'
        assert data['order']['shipping_address'] == shipping_address
        assert len(data['order']['items']) == 1
        assert data['order']['items'][0]['name'] == 'Product A'

        assert session.query(Product.stock_count).filter(Product.id == product_a.id).scalar() == 3
        assert session.query(CartItem).filter_by(user_id=user.id).count() == 0

    def test_empty_cart(self, client, user, auth_headers, shipping_address):
        response = client.post(
            '/api/orders/create-from-cart',
            json=_checkout_body(shipping_address),
            headers=auth_headers(user)
        )

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Cart is empty'

    def test_insufficient_stock(self, client, session, user, product_a, put_in_cart, auth_headers,
                                shipping_address):
        put_in_cart(user, product_a, 6)

        response = client.post(
            '/api/orders/create-from-cart',
            json=_checkout_body(shipping_address),
            headers=auth_headers(user)
        )

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Insufficient stock for Product A'
        assert session.query(Order).count() == 0

    def test_database_failure_shows_detail_outside_production(self, client, user, product_a, put_in_cart,
                                                             auth_headers, shipping_address, monkeypatch):
        put_in_cart(user, product_a, 2)
        monkeypatch.delenv('FLASK_ENV', raising=False)
        monkeypatch.setattr(order_service, 'credit_points', _lost_connection)
        failures_before = _failure_count('PersistenceError')

        response = client.post(
            '/api/orders/create-from-cart',
            json=_checkout_body(shipping_address),
            headers=auth_headers(user)
        )

        assert response.status_code == 500
        data = response.get_json()
        assert data['message'] == 'Server error creating order'
        assert 'connection lost' in data['detail']
        assert _failure_count('PersistenceError') == failures_before + 1

    def test_database_failure_is_generic_in_production(self, app, client, user, product_a, put_in_cart,
                                                       auth_headers, shipping_address, monkeypatch):
        put_in_cart(user, product_a, 2)
        monkeypatch.setitem(app.config, 'ENV', 'production')
        monkeypatch.setattr(order_service, 'credit_points', _lost_connection)

        response = client.post(
            '/api/orders/create-from-cart',
            json=_checkout_body(shipping_address),
            headers=auth_headers(user)
        )

        assert response.status_code == 500
        assert response.get_json() == {'message': 'Server error creating order', 'status': 'error'}

    def test_missing_fields(self, client, user, auth_headers):
        response = client.post('/api/orders/create-from-cart', json={}, headers=auth_headers(user))

        assert response.status_code == 400
        fields = {e['field'] for e in response.get_json()['errors']}
        assert {'shippingAddress', 'paymentMethod'} <= fields


class TestCreateFromItems:
    """POST /api/orders"""

    def test_creates_order(self, client, user, product_a, auth_headers, shipping_address):
        body = _checkout_body(shipping_address)
        body['orderItems'] = [{'productId': product_a.id, 'quantity': 1, 'size': 'M'}]

        response = client.post('/api/orders', json=body, headers=auth_headers(user))

        assert response.status_code == 201
        data = response.get_json()
        assert data['loyaltyPointsEarned'] == 165
        assert data['order']['items'][0]['size'] == 'M'

    def test_empty_items(self, client, user, auth_headers, shipping_address):
        body = _checkout_body(shipping_address)
        body['orderItems'] = []

        response = client.post('/api/orders', json=body, headers=auth_headers(user))

        assert response.status_code == 400

    def test_unknown_product(self, client, user, auth_headers, shipping_address):
        body = _checkout_body(shipping_address)
        body['orderItems'] = [{'productId': 999999, 'quantity': 1}]

        response = client.post('/api/orders', json=body, headers=auth_headers(user))

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Product not found: 999999'


class TestOrderReads:
    """GET /api/orders/my-orders and /api/orders/<id>"""

    def _order_for(self, client, user, product, auth_headers, address):
        body = _checkout_body(address)
        body['orderItems'] = [{'productId': product.id, 'quantity': 1}]
        return client.post('/api/orders', json=body, headers=auth_headers(user)).get_json()['order']

    def test_my_orders(self, client, user, other_user, product_a, auth_headers, shipping_address):
        self._order_for(client, user, product_a, auth_headers, shipping_address)
        self._order_for(client, other_user, product_a, auth_headers, shipping_address)

        response = client.get('/api/orders/my-orders', headers=auth_headers(user))

        assert response.status_code == 200
        orders = response.get_json()
        assert len(orders) == 1
        assert orders[0]['item_count'] == 1

    def test_order_detail(self, client, user, product_a, auth_headers, shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)

        response = client.get(f"/api/orders/{order['id']}", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.get_json()['order_number'] == order['order_number']
        assert len(response.get_json()['items']) == 1

    def test_other_users_order_is_not_found(self, client, user, other_user, product_a, auth_headers,
                                            shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)

        response = client.get(f"/api/orders/{order['id']}", headers=auth_headers(other_user))

        assert response.status_code == 404


class TestCancelAndStatus:
    """PUT /api/orders/<id>/cancel and /api/orders/<id>/status"""

    def _order_for(self, client, user, product, auth_headers, address):
        body = _checkout_body(address)
        body['orderItems'] = [{'productId': product.id, 'quantity': 2}]
        return client.post('/api/orders', json=body, headers=auth_headers(user)).get_json()['order']

    def test_cancel(self, client, session, user, product_a, auth_headers, shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)

        response = client.put(f"/api/orders/{order['id']}/cancel", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.get_json()['message'] == 'Order cancelled successfully'
        assert response.get_json()['order']['status'] == 'cancelled'
        assert session.query(Product.stock_count).filter(Product.id == product_a.id).scalar() == 5
        assert session.query(User.loyalty_points).filter(User.id == user.id).scalar() == 0

    def test_cancel_twice(self, client, user, product_a, auth_headers, shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)
        client.put(f"/api/orders/{order['id']}/cancel", headers=auth_headers(user))

        response = client.put(f"/api/orders/{order['id']}/cancel", headers=auth_headers(user))

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Order cannot be cancelled'

    def test_cancel_unknown_order(self, client, user, auth_headers):
        response = client.put('/api/orders/424242/cancel', headers=auth_headers(user))

        assert response.status_code == 404
        assert response.get_json()['message'] == 'Order not found'

    def test_status_requires_admin(self, client, user, product_a, auth_headers, shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)

        response = client.put(
            f"/api/orders/{order['id']}/status",
            json={'status': 'confirmed'},
            headers=auth_headers(user)
        )

        assert response.status_code == 403

    def test_admin_updates_status(self, client, user, admin, product_a, auth_headers, shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)

        response = client.put(
            f"/api/orders/{order['id']}/status",
            json={'status': 'confirmed'},
            headers=auth_headers(admin)
        )

        assert response.status_code == 200
        assert response.get_json()['order']['status'] == 'confirmed'

    def test_admin_invalid_transition(self, client, user, admin, product_a, auth_headers, shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)

        response = client.put(
            f"/api/orders/{order['id']}/status",
            json={'status': 'delivered'},
            headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.get_json()['from'] == 'pending'

    def test_admin_unknown_status(self, client, user, admin, product_a, auth_headers, shipping_address):
        order = self._order_for(client, user, product_a, auth_headers, shipping_address)

        response = client.put(
            f"/api/orders/{order['id']}/status",
            json={'status': 'lost'},
            headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid status'
