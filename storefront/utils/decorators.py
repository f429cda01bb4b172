# ------- storefront/utils/decorators.py -------
from functools import wraps
from flask_jwt_extended import verify_jwt_in_request, current_user

from ..errors import AuthenticationError, AuthorizationError

ROLES = ("user", "admin")


def _current_user():
    verify_jwt_in_request()
    u = current_user
    if not u:
        raise AuthenticationError("You are not logged in. Please log in to access this route")
    if u.is_blocked:
        raise AuthorizationError("Your account has been blocked")
    return u


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        _current_user()
        return fn(*args, **kwargs)
    return wrapper


def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = _current_user()
            if u.role not in roles:
                raise AuthorizationError(message or "You do not have permission to perform this action")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = role_required("admin", message="Not authorized as an admin")


def owner_or_admin(user, owner_id) -> bool:
    return user is not None and (user.id == owner_id or user.role == "admin")
