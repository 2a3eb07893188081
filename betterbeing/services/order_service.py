"""
Order service with transactional checkout logic.
Handles order creation (from cart or explicit items), cancellation,
status changes, stock movements and loyalty accrual.
"""
import logging
import secrets
import time
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from betterbeing.models import (
    CartItem, Order, OrderItem, OrderStatus, Product, can_transition
)
from betterbeing.exceptions import (
    StorefrontError, EmptyCartError, InsufficientStockError, InvalidOrderStatusError,
    InvalidRequestError, InvalidStatusTransitionError, OrderNotCancellableError,
    OrderNotFoundError, PersistenceError, ProductNotFoundError
)
from betterbeing.services.cache_service import invalidate_after_stock_change
from betterbeing.services.loyalty_service import credit_points, debit_points
from betterbeing.services.pricing_service import calculate_order_totals, pricing_from_config
from betterbeing.utils.formatters import dump_address

logger = logging.getLogger(__name__)


def generate_order_number(prefix: str = 'ORD') -> str:
    """ORD-<epoch ms>-<6 hex>; uniqueness is enforced by the orders table."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(3).upper()}"


def create_order_from_cart(
    session,
    user_id: int,
    shipping_address: Any,
    payment_method: str,
    billing_address: Any = None
) -> Tuple[Order, int]:
    """
    Convert the user's cart into an order in one transaction.

    Steps:
    1. Load cart lines and lock their products
    2. Validate stock for every line
    3. Create order + order items (price snapshot)
    4. Decrement stock with a guarded UPDATE
    5. Clear the cart
    6. Credit loyalty points
    7. Commit (rollback of everything on any failure)

    Returns:
        (order, loyalty points earned)

    Raises:
        EmptyCartError, InsufficientStockError: business rule violations
        PersistenceError: database failure
    """
    _require_checkout_fields(shipping_address, payment_method)

    try:
        cart_lines = session.query(CartItem).filter(
            CartItem.user_id == user_id
        ).order_by(CartItem.id).all()

        if not cart_lines:
            raise EmptyCartError()

        products = _lock_products(session, [line.product_id for line in cart_lines])

        order_lines = []
        for cart_line in cart_lines:
            product = products.get(cart_line.product_id)
            if product is None:
                raise ProductNotFoundError(cart_line.product_id)
            order_lines.append(_order_line(product, cart_line.quantity, cart_line.size))

        _validate_stock(order_lines)

        order, points = _place_order(
            session, user_id, order_lines, shipping_address, billing_address, payment_method
        )

        # Only the lines that were priced; lines added meanwhile stay in the cart
        session.query(CartItem).filter(
            CartItem.user_id == user_id,
            CartItem.id.in_([line.id for line in cart_lines])
        ).delete(synchronize_session=False)

        session.commit()

    except StorefrontError as e:
        session.rollback()
        logger.warning(f"Checkout rejected for user {user_id}: {e.message}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error creating order from cart for user {user_id}: {e}", exc_info=True)
        raise PersistenceError('Server error creating order', detail=str(e)) from e

    logger.info(f"Order {order.order_number} created from cart: user={user_id}, total={order.total}, points={points}")
    invalidate_after_stock_change(user_id)
    return order, points


def create_order_from_items(
    session,
    user_id: int,
    order_items: List[Dict[str, Any]],
    shipping_address: Any,
    payment_method: str,
    billing_address: Any = None
) -> Tuple[Order, int]:
    """
    Create an order from explicit items ({product_id, quantity, size}).

    Same contract as create_order_from_cart; the cart is left untouched.
    """
    if not order_items:
        raise InvalidRequestError('No order items provided')
    _require_checkout_fields(shipping_address, payment_method)

    try:
        product_ids = [int(item['product_id']) for item in order_items]
        products = _lock_products(session, product_ids)

        order_lines = []
        for item in order_items:
            product = products.get(int(item['product_id']))
            if product is None:
                raise ProductNotFoundError(item['product_id'])
            quantity = int(item['quantity'])
            if quantity <= 0:
                raise InvalidRequestError('Quantity must be greater than 0')
            order_lines.append(_order_line(product, quantity, item.get('size')))

        _validate_stock(order_lines)

        order, points = _place_order(
            session, user_id, order_lines, shipping_address, billing_address, payment_method
        )
        session.commit()

    except StorefrontError as e:
        session.rollback()
        logger.warning(f"Order rejected for user {user_id}: {e.message}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error creating order for user {user_id}: {e}", exc_info=True)
        raise PersistenceError('Server error creating order', detail=str(e)) from e

    logger.info(f"Order {order.order_number} created: user={user_id}, total={order.total}, points={points}")
    invalidate_after_stock_change(user_id)
    return order, points


def cancel_order(session, order_id: int, user_id: int) -> Order:
    """
    Cancel a user's order: restock items, mark cancelled, reverse points.

    Raises:
        OrderNotFoundError: order missing or owned by another user
        OrderNotCancellableError: order already shipped, delivered or cancelled
    """
    try:
        order = session.query(Order).filter(
            Order.id == order_id,
            Order.user_id == user_id
        ).with_for_update().first()

        if not order:
            raise OrderNotFoundError(order_id)

        _cancel(session, order)
        session.commit()

    except StorefrontError as e:
        session.rollback()
        logger.warning(f"Cancel rejected for order {order_id}: {e.message}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error cancelling order {order_id}: {e}", exc_info=True)
        raise PersistenceError('Server error cancelling order', detail=str(e)) from e

    logger.info(f"Order {order.order_number} cancelled by user {user_id}")
    invalidate_after_stock_change(user_id)
    return order


def update_order_status(session, order_id: int, new_status: str) -> Order:
    """
    Move an order to a new status following ORDER_STATUS_TRANSITIONS.

    A move to 'cancelled' performs the same restock and points reversal as
    cancel_order.

    Raises:
        InvalidOrderStatusError: unknown status
        OrderNotFoundError: order missing
        InvalidStatusTransitionError: move not allowed from current status
    """
    status = OrderStatus.parse(new_status)
    if status is None:
        raise InvalidOrderStatusError(new_status)

    try:
        order = session.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise OrderNotFoundError(order_id)

        previous = order.status
        if not can_transition(previous, status):
            raise InvalidStatusTransitionError(previous, status.value)

        if status is OrderStatus.CANCELLED:
            _cancel(session, order)
        else:
            order.status = status.value
        session.commit()

    except StorefrontError as e:
        session.rollback()
        logger.warning(f"Status change rejected for order {order_id}: {e.message}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error updating status of order {order_id}: {e}", exc_info=True)
        raise PersistenceError('Server error updating order status', detail=str(e)) from e

    logger.info(f"Order {order.order_number} status {previous} -> {status.value}")
    invalidate_after_stock_change(order.user_id)
    return order


def list_user_orders(session, user_id: int) -> List[Dict[str, Any]]:
    """User's orders, newest first, each with item_count."""
    rows = session.query(
        Order,
        func.count(OrderItem.id).label('item_count')
    ).outerjoin(
        OrderItem, OrderItem.order_id == Order.id
    ).filter(
        Order.user_id == user_id
    ).group_by(
        Order.id
    ).order_by(
        Order.created_at.desc(),
        Order.id.desc()
    ).all()

    result = []
    for order, item_count in rows:
        data = order.to_dict()
        data['item_count'] = item_count
        result.append(data)
    return result


def get_order_detail(session, order_id: int, user_id: int) -> Order:
    """Order with its items, scoped to the owner."""
    order = session.query(Order).filter(
        Order.id == order_id,
        Order.user_id == user_id
    ).first()
    if not order:
        raise OrderNotFoundError(order_id)
    return order


# =====================================================
# PRIVATE HELPERS
# =====================================================

def _require_checkout_fields(shipping_address: Any, payment_method: Optional[str]) -> None:
    if not shipping_address or not payment_method or not str(payment_method).strip():
        raise InvalidRequestError('Shipping address and payment method are required')
    if isinstance(shipping_address, str) and not shipping_address.strip():
        raise InvalidRequestError('Shipping address and payment method are required')


def _order_line(product: Product, quantity: int, size: Optional[str]) -> Dict[str, Any]:
    return {
        'product_id': product.id,
        'product': product,
        'quantity': quantity,
        'size': size,
        'unit_price': product.price,
    }


def _lock_products(session, product_ids: List[int]) -> Dict[int, Product]:
    """Lock product rows FOR UPDATE and return them by id."""
    if not product_ids:
        return {}
    products = session.query(Product).filter(
        Product.id.in_(set(product_ids))
    ).order_by(Product.id).with_for_update().all()
    return {p.id: p for p in products}


def _validate_stock(order_lines: List[Dict[str, Any]]) -> None:
    """Every product must be in stock and cover the summed quantity of its lines."""
    required: Dict[int, int] = {}
    for line in order_lines:
        required[line['product_id']] = required.get(line['product_id'], 0) + line['quantity']

    for line in order_lines:
        product = line['product']
        if not product.is_available(required[product.id]):
            raise InsufficientStockError(product.name, required[product.id], product.stock_count)


def _decrement_stock(session, product: Product, quantity: int) -> None:
    """Guarded decrement: affects no row when stock would go negative."""
    updated = session.query(Product).filter(
        Product.id == product.id,
        Product.stock_count >= quantity
    ).update(
        {Product.stock_count: Product.stock_count - quantity},
        synchronize_session=False
    )
    if updated != 1:
        raise InsufficientStockError(product.name)


def _restore_stock(session, product_id: int, quantity: int) -> None:
    session.query(Product).filter(Product.id == product_id).update(
        {Product.stock_count: Product.stock_count + quantity},
        synchronize_session=False
    )


def _insert_order(session, order: Order) -> Order:
    """Insert the order, drawing a fresh order number on a unique-key collision."""
    prefix = current_app.config.get('ORDER_NUMBER_PREFIX', 'ORD')
    attempts = current_app.config.get('ORDER_NUMBER_ATTEMPTS', 5)

    for attempt in range(1, attempts + 1):
        order.order_number = generate_order_number(prefix)
        try:
            with session.begin_nested():
                session.add(order)
                session.flush()
            return order
        except IntegrityError:
            taken = session.query(Order.id).filter(
                Order.order_number == order.order_number
            ).first()
            if taken is None:
                raise
            logger.warning(f"Order number collision on {order.order_number} (attempt {attempt}/{attempts})")

    raise PersistenceError('Could not allocate a unique order number')


def _place_order(
    session,
    user_id: int,
    order_lines: List[Dict[str, Any]],
    shipping_address: Any,
    billing_address: Any,
    payment_method: str
) -> Tuple[Order, int]:
    """Write order, items, stock decrements and loyalty credit (no commit)."""
    totals = calculate_order_totals(order_lines, **pricing_from_config(current_app.config))

    order = Order(
        user_id=user_id,
        status=OrderStatus.PENDING.value,
        subtotal=totals['subtotal'],
        tax=totals['tax'],
        shipping=totals['shipping'],
        total=totals['total'],
        shipping_address=dump_address(shipping_address),
        billing_address=dump_address(billing_address or shipping_address),
        payment_method=payment_method,
        loyalty_points_earned=0
    )
    _insert_order(session, order)

    for line in order_lines:
        session.add(OrderItem(
            order_id=order.id,
            product_id=line['product_id'],
            quantity=line['quantity'],
            price=line['unit_price'],
            size=line['size']
        ))
        _decrement_stock(session, line['product'], line['quantity'])

    points = totals['loyalty_points']
    if points > 0:
        credit_points(
            session, user_id, points,
            f'Order {order.order_number} - Loyalty points earned',
            order_id=order.id
        )
    order.loyalty_points_earned = points
    session.flush()
    return order, points


def _cancel(session, order: Order) -> None:
    """Restock, mark cancelled and reverse the points credited at checkout (no commit)."""
    if not order.is_cancellable:
        raise OrderNotCancellableError(order.order_number, order.status)

    for item in order.items:
        _restore_stock(session, item.product_id, item.quantity)

    order.status = OrderStatus.CANCELLED.value

    points = order.loyalty_points_earned or 0
    if points > 0:
        debit_points(
            session, order.user_id, points,
            f'Order {order.order_number} cancelled - Points reversed',
            order_id=order.id,
            allow_negative=True
        )
    session.flush()
