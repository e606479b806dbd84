"""Middleware for request user context."""
from functools import wraps
from flask import session, g, jsonify

from app.exceptions import UnauthorizedError


def load_user():
    """
    Load the current user into g (Flask's per-request global).

    Called before each request. The session is populated by the auth layer
    in front of the storefront; here it is only read. Sets g.user_id and
    g.user_role, both None for anonymous visitors.
    """
    g.user_id = session.get('user_id')
    g.user_role = session.get('user_role') if g.user_id else None


def require_login(f):
    """
    Decorator: Require user to be logged in.

    Returns a 401 JSON error for anonymous requests.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None:
            return jsonify({'status': 'error', 'message': 'Please sign in to continue.'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_role(*allowed_roles):
    """
    Decorator to restrict access to specific roles.

    Usage:
        @require_role('admin')
        @require_role('admin', 'delivery')

    Anonymous requests get 401, other roles raise UnauthorizedError (403).
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('user_id') is None:
                return jsonify({'status': 'error', 'message': 'Please sign in to continue.'}), 401

            user_role = g.get('user_role')
            if not user_role or user_role not in allowed_roles:
                raise UnauthorizedError('You do not have permission to do this.')

            return f(*args, **kwargs)

        return decorated_function
    return decorator
