# Overview: Request identity and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app


ROLE_SUPER_ADMIN = "super_admin"
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"

POSTING_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_MANAGER)
ADMIN_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN)


def _is_authenticated() -> bool:
    return getattr(g, "current_user_id", None) is not None


def require_actor(f):
    """
    Require an identified caller.

    Authentication happens upstream; the gateway forwards the caller as:
    - X-User-Id: integer user id
    - X-User-Role: role name (optional; empty means no elevated role)

    Sets g.current_user_id and g.current_role.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_user_id = request.headers.get("X-User-Id", "").strip()
        if not raw_user_id:
            return jsonify({"error": "Authentication required"}), 401
        try:
            user_id = int(raw_user_id)
        except ValueError:
            return jsonify({"error": "Invalid X-User-Id header"}), 401

        g.current_user_id = user_id
        g.current_role = request.headers.get("X-User-Role", "").strip().lower() or None

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require one of the given roles; use after @require_actor."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_role not in roles:
                current_app.logger.warning(
                    "Role %s denied for user %s on %s %s",
                    g.current_role, g.current_user_id, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
