"""Cart blueprint - persistent per-user cart."""
from flask import Blueprint, jsonify, current_app, g

from betterbeing.database import get_session
from betterbeing.middleware import require_auth
from betterbeing.schemas import CartAddRequest, CartUpdateRequest, parse_body
from betterbeing.services import cart_service

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


@cart_bp.route('', methods=['GET'])
@require_auth
def get_cart():
    session = get_session()
    lines = cart_service.get_cart(session, g.user_id)
    return jsonify([line.to_dict() for line in lines])


@cart_bp.route('/add', methods=['POST'])
@require_auth
def add():
    """Add a product, merging with an existing (product, size) line."""
    body = parse_body(CartAddRequest)
    session = get_session()

    line, created = cart_service.add_to_cart(
        session, g.user_id, body.product_id, body.quantity, body.size
    )
    if created:
        return jsonify({'message': 'Item added to cart', 'item': line.to_dict()}), 201
    return jsonify({'message': 'Cart updated', 'item': line.to_dict()})


@cart_bp.route('/update/<int:cart_item_id>', methods=['PUT'])
@require_auth
def update(cart_item_id):
    body = parse_body(CartUpdateRequest)
    session = get_session()

    line = cart_service.update_cart_line(session, g.user_id, cart_item_id, body.quantity)
    return jsonify({'message': 'Cart item updated', 'item': line.to_dict()})


@cart_bp.route('/remove/<int:cart_item_id>', methods=['DELETE'])
@require_auth
def remove(cart_item_id):
    session = get_session()
    cart_service.remove_cart_line(session, g.user_id, cart_item_id)
    return jsonify({'message': 'Item removed from cart'})


@cart_bp.route('/clear', methods=['DELETE'])
@require_auth
def clear():
    session = get_session()
    removed = cart_service.clear_cart(session, g.user_id)
    current_app.logger.info(f"Cart cleared: user={g.user_id}, lines={removed}")
    return jsonify({'message': 'Cart cleared'})


@cart_bp.route('/summary', methods=['GET'])
@require_auth
def summary():
    session = get_session()
    return jsonify(cart_service.cart_summary(session, g.user_id))
