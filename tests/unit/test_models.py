"""
Unit tests for SQLAlchemy models.
"""

import re
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from betterbeing.models import (
    User, CartItem, Order, OrderItem, OrderStatus, LoyaltyTransaction, can_transition
)
from betterbeing.services.order_service import generate_order_number
from betterbeing.utils.formatters import dump_address


def _order(user, number='ORD-1-ABCDEF', status='pending'):
    return Order(
        user_id=user.id,
        order_number=number,
        status=status,
        subtotal=Decimal('200.00'),
        tax=Decimal('30.00'),
        shipping=Decimal('50.00'),
        total=Decimal('280.00'),
        shipping_address=dump_address({'city': 'Durban'}),
        billing_address=dump_address('PO Box 7, Durban'),
        payment_method='card',
        loyalty_points_earned=280
    )


class TestUserModel:
    """Tests for User model."""

    def test_password_hashing(self):
        """Test password hashing and verification."""
        user = User(email='user@test.com', active=True)
        user.set_password('mypassword')

        assert user.password_hash != 'mypassword'
        assert user.check_password('mypassword') is True
        assert user.check_password('wrongpassword') is False

    def test_user_without_password_never_matches(self):
        assert User(email='x@test.com').check_password('') is False

    def test_user_email_unique(self, session, user):
        """Test that user email must be unique."""
        session.add(User(email=user.email, full_name='Duplicate User'))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_new_user_starts_without_points(self, user):
        assert user.loyalty_points == 0
        assert user.to_dict()['loyalty_points'] == 0


class TestOrderStatus:
    """Tests for the order status workflow."""

    @pytest.mark.parametrize('current,requested', [
        ('pending', 'confirmed'),
        ('pending', 'cancelled'),
        ('confirmed', 'processing'),
        ('confirmed', 'cancelled'),
        ('processing', 'shipped'),
        ('processing', 'cancelled'),
        ('shipped', 'delivered'),
    ])
    def test_allowed_transitions(self, current, requested):
        assert can_transition(current, requested) is True

    @pytest.mark.parametrize('current,requested', [
        ('pending', 'shipped'),
        ('pending', 'pending'),
        ('shipped', 'cancelled'),
        ('delivered', 'cancelled'),
        ('delivered', 'pending'),
        ('cancelled', 'pending'),
        ('cancelled', 'confirmed'),
    ])
    def test_rejected_transitions(self, current, requested):
        assert can_transition(current, requested) is False

    def test_parse_unknown_status(self):
        assert OrderStatus.parse('refunded') is None
        assert OrderStatus.parse('shipped') is OrderStatus.SHIPPED

    @pytest.mark.parametrize('status,cancellable', [
        ('pending', True),
        ('confirmed', True),
        ('processing', True),
        ('shipped', False),
        ('delivered', False),
        ('cancelled', False),
    ])
    def test_is_cancellable(self, status, cancellable):
        assert Order(status=status).is_cancellable is cancellable


class TestOrderModel:
    """Tests for Order and OrderItem models."""

    def test_order_number_format(self):
        number = generate_order_number()

        assert re.fullmatch(r'ORD-\d{13}-[0-9A-F]{6}', number)
        assert generate_order_number() != number

    def test_order_number_unique(self, session, user):
        session.add(_order(user, number='ORD-DUP'))
        session.commit()
        session.add(_order(user, number='ORD-DUP'))

        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_to_dict_formats_money_and_addresses(self, session, user, product_a):
        order = _order(user)
        session.add(order)
        session.flush()
        session.add(OrderItem(order_id=order.id, product_id=product_a.id, quantity=2,
                              price=Decimal('100.00'), size='M'))
        session.commit()

        data = order.to_dict(include_items=True)

        assert data['total'] == '280.00'
        assert data['tax'] == '30.00'
        assert data['shipping_address'] == {'city': 'Durban'}
        assert data['billing_address'] == 'PO Box 7, Durban'
        assert data['loyalty_points_earned'] == 280
        assert len(data['items']) == 1
        assert data['items'][0]['name'] == 'Product A'
        assert data['items'][0]['price'] == '100.00'
        assert data['items'][0]['size'] == 'M'

    def test_to_dict_without_items(self, session, user):
        order = _order(user)
        session.add(order)
        session.commit()

        assert 'items' not in order.to_dict()


class TestCartAndLedgerModels:
    """Tests for CartItem and LoyaltyTransaction models."""

    def test_cart_line_unique_per_size(self, session, user, product_a):
        session.add(CartItem(user_id=user.id, product_id=product_a.id, quantity=1, size='S'))
        session.add(CartItem(user_id=user.id, product_id=product_a.id, quantity=1, size='M'))
        session.commit()

        session.add(CartItem(user_id=user.id, product_id=product_a.id, quantity=3, size='S'))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_cart_line_without_size_is_unique_too(self, session, user, product_a):
        session.add(CartItem(user_id=user.id, product_id=product_a.id, quantity=1))
        session.commit()

        session.add(CartItem(user_id=user.id, product_id=product_a.id, quantity=2))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_cart_line_to_dict(self, session, user, product_a):
        line = CartItem(user_id=user.id, product_id=product_a.id, quantity=2)
        session.add(line)
        session.commit()

        data = line.to_dict()
        assert data['cart_id'] == line.id
        assert data['price'] == '100.00'
        assert data['stock_count'] == 5

    def test_ledger_row_to_dict(self, session, user):
        entry = LoyaltyTransaction(user_id=user.id, transaction_type='redeemed',
                                   points=-40, description='Voucher')
        session.add(entry)
        session.commit()

        data = entry.to_dict()
        assert data['points'] == -40
        assert data['transaction_type'] == 'redeemed'
        assert data['order_id'] is None
