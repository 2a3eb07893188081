"""Orders blueprint - checkout, order history, cancellation and admin status changes."""
from flask import Blueprint, jsonify, current_app, g

from betterbeing.database import get_session
from betterbeing.exceptions import StorefrontError, OrderNotCancellableError
from betterbeing.middleware import require_auth, require_admin
from betterbeing.schemas import CheckoutRequest, CreateOrderRequest, UpdateStatusRequest, parse_body
from betterbeing.services import order_service
from betterbeing.services.cache_service import get_cache, user_scope
from betterbeing.blueprints.metrics import (
    orders_created_total, orders_cancelled_total, checkout_failures_total, loyalty_points_awarded_total
)

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _created_response(order, points, source):
    orders_created_total.labels(source=source).inc()
    loyalty_points_awarded_total.inc(points)
    return jsonify({
        'message': 'Order created successfully',
        'order': order.to_dict(include_items=True),
        'loyaltyPointsEarned': points
    }), 201


@orders_bp.route('/create-from-cart', methods=['POST'])
@require_auth
def create_from_cart():
    """Checkout the current user's cart."""
    body = parse_body(CheckoutRequest)
    session = get_session()

    try:
        order, points = order_service.create_order_from_cart(
            session,
            g.user_id,
            shipping_address=body.shipping_address,
            billing_address=body.billing_address,
            payment_method=body.payment_method
        )
    except StorefrontError as e:
        checkout_failures_total.labels(reason=type(e).__name__).inc()
        raise

    current_app.logger.info(f"Checkout from cart: user={g.user_id}, order={order.order_number}")
    return _created_response(order, points, 'cart')


@orders_bp.route('', methods=['POST'])
@require_auth
def create_order():
    """Checkout an explicit list of items."""
    body = parse_body(CreateOrderRequest)
    session = get_session()

    items = [
        {'product_id': item.product_id, 'quantity': item.quantity, 'size': item.size}
        for item in body.order_items
    ]
    try:
        order, points = order_service.create_order_from_items(
            session,
            g.user_id,
            items,
            shipping_address=body.shipping_address,
            billing_address=body.billing_address,
            payment_method=body.payment_method
        )
    except StorefrontError as e:
        checkout_failures_total.labels(reason=type(e).__name__).inc()
        raise

    current_app.logger.info(f"Checkout from items: user={g.user_id}, order={order.order_number}")
    return _created_response(order, points, 'items')


@orders_bp.route('/my-orders', methods=['GET'])
@require_auth
def my_orders():
    """List the user's orders, newest first."""
    session = get_session()
    cache = get_cache()
    ttl = current_app.config.get('CACHE_ORDERS_TTL', 30)
    orders = cache.memoize(
        user_scope(g.user_id), 'orders', 'list',
        lambda: order_service.list_user_orders(session, g.user_id),
        ttl
    )
    return jsonify(orders)


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_auth
def order_detail(order_id):
    """Order detail with items."""
    session = get_session()
    order = order_service.get_order_detail(session, order_id, g.user_id)
    return jsonify(order.to_dict(include_items=True))


@orders_bp.route('/<int:order_id>/status', methods=['PUT'])
@require_auth
@require_admin
def update_status(order_id):
    """Admin: move an order along its status workflow."""
    body = parse_body(UpdateStatusRequest)
    session = get_session()

    order = order_service.update_order_status(session, order_id, body.status)
    if order.status == 'cancelled':
        orders_cancelled_total.inc()

    current_app.logger.info(f"Admin {g.user_id} set order {order.order_number} to {order.status}")
    return jsonify({
        'message': 'Order status updated successfully',
        'order': order.to_dict()
    })


@orders_bp.route('/<int:order_id>/cancel', methods=['PUT'])
@require_auth
def cancel(order_id):
    """Cancel the user's order, restoring stock and reversing loyalty points."""
    session = get_session()
    try:
        order = order_service.cancel_order(session, order_id, g.user_id)
    except OrderNotCancellableError as e:
        current_app.logger.info(f"Order {order_id} not cancellable: status={e.status}")
        raise

    orders_cancelled_total.inc()
    return jsonify({
        'message': 'Order cancelled successfully',
        'order': order.to_dict()
    })
