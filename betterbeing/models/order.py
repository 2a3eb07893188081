"""Order model and its status state machine."""
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from betterbeing.database import Base
from betterbeing.utils.formatters import money_str, iso, load_address
import enum


class OrderStatus(str, enum.Enum):
    """Order status enum."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'

    @classmethod
    def parse(cls, value):
        """Return the member for `value`, or None if it is not a known status."""
        try:
            return cls(value)
        except ValueError:
            return None


# pending -> confirmed -> processing -> shipped -> delivered,
# cancellation only before shipping.
ORDER_STATUS_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

NON_CANCELLABLE_STATUSES = frozenset({
    OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED
})


def can_transition(current, requested):
    """Check whether an order may move from `current` to `requested`."""
    return OrderStatus(requested) in ORDER_STATUS_TRANSITIONS[OrderStatus(current)]


class Order(Base):
    """Order placed at checkout."""

    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    order_number = Column(String(64), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    shipping = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    # JSON text, billing falls back to shipping at checkout
    shipping_address = Column(Text, nullable=False)
    billing_address = Column(Text, nullable=False)
    payment_method = Column(String(50), nullable=True)

    # Points credited at checkout; cancellation reverses exactly this amount
    loyalty_points_earned = Column(Integer, nullable=False, default=0, server_default='0')

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship('User', back_populates='orders')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')

    @property
    def is_cancellable(self):
        return OrderStatus(self.status) not in NON_CANCELLABLE_STATUSES

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'order_number': self.order_number,
            'status': self.status,
            'subtotal': money_str(self.subtotal),
            'tax': money_str(self.tax),
            'shipping': money_str(self.shipping),
            'total': money_str(self.total),
            'shipping_address': load_address(self.shipping_address),
            'billing_address': load_address(self.billing_address),
            'payment_method': self.payment_method,
            'loyalty_points_earned': self.loyalty_points_earned,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Order(id={self.id}, order_number='{self.order_number}', status={self.status})>"
