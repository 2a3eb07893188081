"""Order Item model."""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from betterbeing.database import Base
from betterbeing.utils.formatters import money_str


class OrderItem(Base):
    """Order Item - price snapshot taken at checkout, never updated."""

    __tablename__ = 'order_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    size = Column(String(20), nullable=True)

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        product = self.product
        return {
            'id': self.id,
            'order_id': self.order_id,
            'product_id': self.product_id,
            'quantity': self.quantity,
            'price': money_str(self.price),
            'size': self.size,
            'name': product.name if product else None,
            'image_url': product.image_url if product else None,
            'description': product.description if product else None,
        }

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
