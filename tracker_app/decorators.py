from functools import wraps
from flask import current_app
from flask_login import current_user

from .api_utils import api_error


def role_required(*roles):
    """
    Decorator to ensure the current user has one of the allowed roles.
    Must be placed *after* @login_required.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()

            user_role = (getattr(current_user, "role", "") or "").strip().lower()
            allowed = {r.strip().lower() for r in roles}

            if user_role not in allowed:
                return api_error("forbidden", "You do not have permission to access this resource.", 403)

            return func(*args, **kwargs)
        return wrapper
    return decorator
