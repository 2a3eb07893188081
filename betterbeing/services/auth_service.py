"""
Authentication service for storefront users.

Handles registration, credential checks and bearer token issue/verification.
"""
from datetime import datetime, timedelta, timezone
import logging

import jwt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from betterbeing.models import User
from betterbeing.exceptions import AuthenticationError, BusinessLogicError, InvalidRequestError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = 'HS256'


def issue_token(user: User) -> str:
    """Sign an access token carrying the user id."""
    expires = timedelta(minutes=current_app.config.get('JWT_EXPIRES_MINUTES', 15))
    payload = {
        'id': user.id,
        'exp': datetime.now(timezone.utc) + expires,
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Verify an access token.

    Raises:
        AuthenticationError: token expired, tampered with, or missing the id claim
    """
    try:
        payload = jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Not authorized, token expired')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Not authorized, token failed')

    if 'id' not in payload:
        raise AuthenticationError('Not authorized, token failed')
    return payload


def register_user(session, email: str, password: str, full_name: str = None) -> User:
    """
    Create a local user.

    Raises:
        InvalidRequestError: password too short
        BusinessLogicError: email already registered
    """
    email = email.strip().lower()
    min_length = current_app.config.get('MIN_PASSWORD_LENGTH', 8)
    if len(password) < min_length:
        raise InvalidRequestError(f'Password must be at least {min_length} characters long')

    if session.query(User.id).filter(User.email == email).first():
        raise BusinessLogicError('User already exists')

    user = User(email=email, full_name=full_name, active=True, loyalty_points=0)
    user.set_password(password)
    session.add(user)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Duplicate registration race for {email}: {e}")
        raise BusinessLogicError('User already exists')

    logger.info(f"Registered user {user.id} ({email})")
    return user


def authenticate(session, email: str, password: str) -> User:
    """Return the active user matching the credentials."""
    user = session.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.active or not user.check_password(password):
        logger.warning(f"Failed login for {email}")
        raise AuthenticationError('Invalid credentials')
    return user
