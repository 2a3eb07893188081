"""Models package - exports all SQLAlchemy models."""
from betterbeing.models.user import User
from betterbeing.models.product import Product
from betterbeing.models.cart_item import CartItem
from betterbeing.models.order import (
    Order, OrderStatus, ORDER_STATUS_TRANSITIONS, NON_CANCELLABLE_STATUSES, can_transition
)
from betterbeing.models.order_item import OrderItem
from betterbeing.models.loyalty_transaction import LoyaltyTransaction, LoyaltyTransactionType

__all__ = [
    'User', 'Product', 'CartItem',
    'Order', 'OrderStatus', 'ORDER_STATUS_TRANSITIONS', 'NON_CANCELLABLE_STATUSES', 'can_transition',
    'OrderItem',
    'LoyaltyTransaction', 'LoyaltyTransactionType',
]
