"""User model - storefront customers and back-office admins."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from betterbeing.database import Base
from betterbeing.utils.formatters import iso


class User(Base):
    """User model with cached loyalty balance."""

    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    is_admin = Column(Boolean, nullable=False, default=False, server_default='false')

    # Running total of loyalty_transactions.points for this user
    loyalty_points = Column(Integer, nullable=False, default=0, server_default='0')

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    orders = relationship('Order', back_populates='user')
    cart_items = relationship('CartItem', back_populates='user', cascade='all, delete-orphan')
    loyalty_transactions = relationship('LoyaltyTransaction', back_populates='user')

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'loyalty_points': self.loyalty_points,
            'is_admin': self.is_admin,
            'created_at': iso(self.created_at),
        }

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
