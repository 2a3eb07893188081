"""Loyalty Transaction model."""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from betterbeing.database import Base
from betterbeing.utils.formatters import iso
import enum


class LoyaltyTransactionType(str, enum.Enum):
    """Ledger entry type enum."""
    EARNED = 'earned'
    REDEEMED = 'redeemed'


class LoyaltyTransaction(Base):
    """
    Loyalty ledger row (append-only).

    points is signed: positive for earned, negative for redeemed, so
    users.loyalty_points == SUM(points) for the user.
    """

    __tablename__ = 'loyalty_transactions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=True)
    transaction_type = Column(String(20), nullable=False)
    points = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship('User', back_populates='loyalty_transactions')
    order = relationship('Order')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'order_id': self.order_id,
            'transaction_type': self.transaction_type,
            'points': self.points,
            'description': self.description,
            'created_at': iso(self.created_at),
        }

    def __repr__(self):
        return f"<LoyaltyTransaction(id={self.id}, type={self.transaction_type}, points={self.points})>"
