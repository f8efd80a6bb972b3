from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from extensions import db


def role_required(*allowed_roles):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()

            claims = get_jwt()
            user_role = claims.get("role")

            if user_role not in allowed_roles:
                return jsonify({
                    "error": "You are not authorized to access this resource"
                }), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = role_required("ADMIN")  # only admins can access


def get_current_user():
    """User for the JWT on the current request, or None"""
    from courierhub.models.user import User

    identity = get_jwt_identity()
    if identity is None:
        return None
    return db.session.get(User, int(identity))


def is_admin():
    return get_jwt().get("role") == "ADMIN"
