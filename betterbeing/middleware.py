"""Middleware for bearer-token authentication."""
from functools import wraps
from flask import g, request, current_app
from betterbeing.database import get_session
from betterbeing.exceptions import AuthenticationError, UnauthorizedError
from betterbeing.models import User
from betterbeing.services.auth_service import decode_token


def load_current_user():
    """
    Load the bearer token's user into g (Flask's per-request global).

    Called before each request. Sets g.user and g.user_id when the
    Authorization header carries a valid token; otherwise leaves them None
    and records why in g.auth_error for require_auth.
    """
    g.user = None
    g.user_id = None
    g.auth_error = None

    header = request.headers.get('Authorization', '')
    if not header:
        return

    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        g.auth_error = 'Not authorized, no token'
        return

    try:
        payload = decode_token(token.strip())
    except AuthenticationError as e:
        g.auth_error = e.message
        return

    db_session = get_session()
    user = db_session.query(User).filter_by(id=payload['id'], active=True).first()
    if not user:
        current_app.logger.warning(f"Token for unknown or inactive user {payload['id']}")
        g.auth_error = 'Not authorized, token failed'
        return

    g.user = user
    g.user_id = user.id


def require_auth(f):
    """
    Decorator: Require a valid bearer token.

    Raises AuthenticationError (401) when no user could be loaded.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise AuthenticationError(g.get('auth_error') or 'Not authorized, no token')
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """
    Decorator: Require an authenticated admin user.

    Must be used AFTER require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.user.is_admin:
            current_app.logger.warning(f"User {g.user.id} denied admin endpoint {request.endpoint}")
            raise UnauthorizedError('Admin access required')
        return f(*args, **kwargs)
    return decorated_function
