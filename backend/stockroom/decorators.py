# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .permissions import has_permission
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer session and set g.current_user.

    Returns 401 {"error": "Unauthorized"} when the header is missing or the
    token is unknown, expired, revoked or belongs to an inactive user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Unauthorized"}), 401

        user = session_service.validate_session(token)
        if user is None:
            return jsonify({"error": "Unauthorized"}), 401

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a permission code; must be applied below @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Unauthorized"}), 401

            if not has_permission(user, permission_code):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
