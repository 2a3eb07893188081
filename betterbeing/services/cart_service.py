"""Cart Service - Persistent per-user cart operations."""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from betterbeing.models import CartItem, Product
from betterbeing.exceptions import (
    BusinessLogicError, CartItemNotFoundError, InvalidRequestError, NotFoundError
)
from betterbeing.utils.formatters import to_money

logger = logging.getLogger(__name__)


def get_cart(session: Session, user_id: int) -> List[CartItem]:
    """Cart lines with their products, newest first."""
    return session.query(CartItem).options(
        joinedload(CartItem.product)
    ).filter(
        CartItem.user_id == user_id
    ).order_by(
        CartItem.created_at.desc(),
        CartItem.id.desc()
    ).all()


def add_to_cart(
    session: Session,
    user_id: int,
    product_id: int,
    quantity: int = 1,
    size: Optional[str] = None
) -> Tuple[CartItem, bool]:
    """
    Add product to cart or increase quantity if the (product, size) line exists.

    Returns:
        (line, created)
    """
    if quantity is None or quantity < 1:
        raise InvalidRequestError('Valid quantity is required')

    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError('Product not found')
    if not product.in_stock:
        raise BusinessLogicError('Product is out of stock')

    size = size or None
    line = _find_line(session, user_id, product_id, size)

    created = line is None
    if line:
        line.quantity = line.quantity + quantity
        session.commit()
    else:
        line = CartItem(user_id=user_id, product_id=product_id, quantity=quantity, size=size)
        session.add(line)
        try:
            session.commit()
        except IntegrityError:
            # A concurrent request inserted the same line first; merge into it
            session.rollback()
            line = _find_line(session, user_id, product_id, size)
            if line is None:
                raise
            line.quantity = line.quantity + quantity
            session.commit()
            created = False

    logger.info(f"Cart {'add' if created else 'merge'}: user={user_id}, product={product_id}, qty={quantity}, size={size}")
    return line, created


def update_cart_line(session: Session, user_id: int, cart_item_id: int, quantity: int) -> CartItem:
    """Set the quantity of one of the user's lines."""
    if quantity is None or quantity < 1:
        raise InvalidRequestError('Valid quantity is required')

    line = _get_user_line(session, user_id, cart_item_id)
    line.quantity = quantity
    session.commit()
    return line


def remove_cart_line(session: Session, user_id: int, cart_item_id: int) -> None:
    """Remove line from cart."""
    line = _get_user_line(session, user_id, cart_item_id)
    session.delete(line)
    session.commit()


def clear_cart(session: Session, user_id: int) -> int:
    """Delete all of the user's lines; returns how many were removed."""
    deleted = session.query(CartItem).filter(
        CartItem.user_id == user_id
    ).delete(synchronize_session=False)
    session.commit()
    return deleted


def cart_summary(session: Session, user_id: int) -> Dict[str, Any]:
    """Line count, unit count and price total of the cart."""
    total_items, total_quantity, total_price = session.query(
        func.count(CartItem.id),
        func.coalesce(func.sum(CartItem.quantity), 0),
        func.coalesce(func.sum(CartItem.quantity * Product.price), 0)
    ).join(
        Product, Product.id == CartItem.product_id
    ).filter(
        CartItem.user_id == user_id
    ).one()

    return {
        'totalItems': int(total_items or 0),
        'totalQuantity': int(total_quantity or 0),
        'totalPrice': float(to_money(total_price or Decimal('0'))),
    }


def _find_line(session: Session, user_id: int, product_id: int, size: Optional[str]) -> Optional[CartItem]:
    return session.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.product_id == product_id,
        CartItem.size.is_(None) if size is None else CartItem.size == size
    ).first()


def _get_user_line(session: Session, user_id: int, cart_item_id: int) -> CartItem:
    line = session.query(CartItem).filter(
        CartItem.id == cart_item_id,
        CartItem.user_id == user_id
    ).first()
    if not line:
        raise CartItemNotFoundError(cart_item_id)
    return line
