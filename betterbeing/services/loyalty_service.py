"""
Loyalty ledger service.

Every balance change appends a loyalty_transactions row and adjusts
users.loyalty_points with a single UPDATE in the same transaction, so the
cached balance always equals the ledger sum.
"""
import logging
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from betterbeing.models import User, LoyaltyTransaction, LoyaltyTransactionType
from betterbeing.exceptions import (
    StorefrontError, InvalidRequestError, NotFoundError, InsufficientPointsError, PersistenceError
)

logger = logging.getLogger(__name__)


def _require_positive_points(points) -> int:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidRequestError('Invalid points value')
    return points


def _current_balance(session, user_id: int) -> int:
    balance = session.query(User.loyalty_points).filter(User.id == user_id).scalar()
    if balance is None:
        raise NotFoundError('User not found')
    return balance


def credit_points(session, user_id: int, points: int, description: str = None,
                  order_id: int = None) -> LoyaltyTransaction:
    """
    Credit points inside the caller's transaction (no commit).

    Raises:
        InvalidRequestError: points is not a positive integer
        NotFoundError: user does not exist
    """
    _require_positive_points(points)

    updated = session.query(User).filter(User.id == user_id).update(
        {User.loyalty_points: User.loyalty_points + points},
        synchronize_session=False
    )
    if updated != 1:
        raise NotFoundError('User not found')

    entry = LoyaltyTransaction(
        user_id=user_id,
        order_id=order_id,
        transaction_type=LoyaltyTransactionType.EARNED.value,
        points=points,
        description=description
    )
    session.add(entry)
    session.flush()
    return entry


def debit_points(session, user_id: int, points: int, description: str = None,
                 order_id: int = None, allow_negative: bool = False) -> LoyaltyTransaction:
    """
    Debit points inside the caller's transaction (no commit).

    The decrement is guarded by `loyalty_points >= points` unless
    allow_negative is set (order cancellation reverses a credit even if the
    points were already spent).

    Raises:
        InvalidRequestError: points is not a positive integer
        NotFoundError: user does not exist
        InsufficientPointsError: balance is lower than points
    """
    _require_positive_points(points)

    query = session.query(User).filter(User.id == user_id)
    if not allow_negative:
        query = query.filter(User.loyalty_points >= points)
    updated = query.update(
        {User.loyalty_points: User.loyalty_points - points},
        synchronize_session=False
    )
    if updated != 1:
        balance = _current_balance(session, user_id)
        raise InsufficientPointsError(points, balance)

    entry = LoyaltyTransaction(
        user_id=user_id,
        order_id=order_id,
        transaction_type=LoyaltyTransactionType.REDEEMED.value,
        points=-points,
        description=description
    )
    session.add(entry)
    session.flush()
    return entry


def add_points(session, user_id: int, points: int, description: str = None) -> LoyaltyTransaction:
    """Credit points as a standalone transaction."""
    try:
        entry = credit_points(session, user_id, points, description)
        session.commit()
    except StorefrontError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error adding loyalty points for user {user_id}: {e}")
        raise PersistenceError('Error adding loyalty points', detail=str(e)) from e

    logger.info(f"Loyalty +{points} for user {user_id}")
    return entry


def redeem_points(session, user_id: int, points: int, description: str = None) -> LoyaltyTransaction:
    """Redeem points as a standalone transaction."""
    try:
        entry = debit_points(session, user_id, points, description)
        session.commit()
    except StorefrontError as e:
        session.rollback()
        logger.warning(f"Redeem rejected for user {user_id}: {e.message}")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error redeeming loyalty points for user {user_id}: {e}")
        raise PersistenceError('Error redeeming loyalty points', detail=str(e)) from e

    logger.info(f"Loyalty -{points} for user {user_id}")
    return entry


def get_balance(session, user_id: int) -> int:
    """Current cached balance."""
    return _current_balance(session, user_id)


def list_transactions(session, user_id: int) -> List[LoyaltyTransaction]:
    """Ledger rows for a user, newest first."""
    return session.query(LoyaltyTransaction).filter(
        LoyaltyTransaction.user_id == user_id
    ).order_by(
        LoyaltyTransaction.created_at.desc(),
        LoyaltyTransaction.id.desc()
    ).all()


def ledger_sum(session, user_id: int) -> int:
    """SUM(points) straight from the ledger."""
    total = session.query(func.coalesce(func.sum(LoyaltyTransaction.points), 0)).filter(
        LoyaltyTransaction.user_id == user_id
    ).scalar()
    return int(total)
