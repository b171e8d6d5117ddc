from functools import wraps
from flask import jsonify
from flask_login import current_user
from extensions import login_manager


def role_required(*roles):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # 1. Check if user is logged in
            if not current_user.is_authenticated:
                return login_manager.unauthorized()

            # 2. Check if user has one of the allowed roles
            if current_user.role not in roles:
                return jsonify({"error": "Access Denied: You do not have the required role."}), 403

            return func(*args, **kwargs)
        return wrapper
    return decorator
