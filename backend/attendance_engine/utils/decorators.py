"""Custom decorators for authorization."""
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_limiter.util import get_remote_address
from attendance_engine.engine import get_engine
from attendance_engine.models.entities import UserRole
from attendance_engine.utils.helpers import error_response


def roles_required(*roles: UserRole):
    """Load the acting user into ``g.current_user`` and check their role.

    Must be stacked under ``@jwt_required()``.
    """
    allowed = {role.value for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            current_user_id = get_jwt_identity()
            user = get_engine().get_user(current_user_id)

            if not user:
                return error_response("User not found", 404)

            if allowed and user.role not in allowed:
                return error_response("Access denied for your role", 403)

            g.current_user = user
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def student_required(f):
    """Decorator to require student role."""
    return roles_required(UserRole.STUDENT)(f)


def faculty_required(f):
    """Decorator to require faculty role."""
    return roles_required(UserRole.FACULTY)(f)


def staff_required(f):
    """Decorator to require faculty or admin role."""
    return roles_required(UserRole.FACULTY, UserRole.ADMIN)(f)


def admin_required(f):
    """Decorator to require admin role."""
    return roles_required(UserRole.ADMIN)(f)


def authenticated(f):
    """Decorator to load any known user."""
    return roles_required()(f)


def rate_limit_key() -> str:
    """Rate-limit key: the authenticated user, else the client address.

    Students of one classroom usually share an address, so limits on
    verification routes must not pool them together.
    """
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    if identity:
        return f'user:{identity}'
    return get_remote_address()
