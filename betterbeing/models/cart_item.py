"""Cart model - persistent per-user cart lines."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, literal_column
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from betterbeing.database import Base
from betterbeing.utils.formatters import money_str


class CartItem(Base):
    """
    Cart line - one (product, size) entry of a user's pending purchase.

    One line per user/product/size. The unique index folds a missing size to
    an empty string so two size-less lines for the same product collide.
    """

    __tablename__ = 'cart'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    size = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship('User', back_populates='cart_items')
    product = relationship('Product')

    def to_dict(self):
        product = self.product
        return {
            'cart_id': self.id,
            'quantity': self.quantity,
            'size': self.size,
            'product_id': self.product_id,
            'name': product.name if product else None,
            'price': money_str(product.price) if product else None,
            'image_url': product.image_url if product else None,
            'in_stock': product.in_stock if product else None,
            'stock_count': product.stock_count if product else None,
        }

    def __repr__(self):
        return f"<CartItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"


Index(
    'uq_cart_user_product_size',
    CartItem.user_id,
    CartItem.product_id,
    func.coalesce(CartItem.size, literal_column("''")),
    unique=True
)
