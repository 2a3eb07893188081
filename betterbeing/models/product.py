"""Product model."""
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from betterbeing.database import Base
from betterbeing.utils.formatters import money_str, iso


class Product(Base):
    """Catalog product. Checkout only ever touches stock_count."""

    __tablename__ = 'products'
    __table_args__ = (
        CheckConstraint('stock_count >= 0', name='ck_products_stock_count_non_negative'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock_count = Column(Integer, nullable=False, default=0, server_default='0')
    in_stock = Column(Boolean, nullable=False, default=True, server_default='true')
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def is_available(self, quantity):
        """True if the product can cover `quantity` units right now."""
        return bool(self.in_stock) and self.stock_count >= quantity

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'price': money_str(self.price),
            'stock_count': self.stock_count,
            'in_stock': self.in_stock,
            'image_url': self.image_url,
            'created_at': iso(self.created_at),
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock_count={self.stock_count})>"
