"""Decorators for route authorization."""

from functools import wraps

from flask import g, jsonify

from teamforge.constants import ADMIN_ROLES, ROLE_SUPER_ADMIN


def login_required(f=None, admin_required=False, super_admin_required=False):
    """Reject the request unless a user is signed in (and has the role).

    Usage:
    @login_required
    def protected_view():
        ...

    @login_required(admin_required=True)
    def admin_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if g.get("user") is None:
                return jsonify({"error": "Sign in required."}), 401
            role = g.user.get("role")
            if super_admin_required and role != ROLE_SUPER_ADMIN:
                return jsonify({"error": "Super admin only."}), 403
            if admin_required and role not in ADMIN_ROLES:
                return jsonify({"error": "Admin only."}), 403
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator
