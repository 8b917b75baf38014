# utils/auth.py
from functools import wraps

from flask import jsonify
from flask_login import current_user


def _auth_error(message, error_code, status_code):
    return jsonify({'success': False, 'message': message, 'error_code': error_code}), status_code


def role_required(*roles):
    """Decorator to require specific role(s)."""

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return _auth_error('Authentication required', 'unauthorized', 401)

            if not current_user.has_any_role(roles):
                return _auth_error(f'Role required: {", ".join(r.value for r in roles)}', 'forbidden', 403)

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def staff_required(f):
    """Decorator to require any staff role."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return _auth_error('Authentication required', 'unauthorized', 401)

        if not current_user.is_staff():
            return _auth_error('Staff access required', 'forbidden', 403)

        return f(*args, **kwargs)

    return decorated_function


def login_required_json(f):
    """Decorator that allows any authenticated user."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return _auth_error('Authentication required', 'unauthorized', 401)

        return f(*args, **kwargs)

    return decorated_function
