# Overview: Flask API routes for user account management.

"""
User management routes

Admin-only (MANAGE_USERS). Deactivating an account revokes its sessions so
the user is logged out immediately.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import DOMAIN_ERRORS, error_response
from ..models.auth import ROLE_STAFF
from ..services import auth_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    return jsonify({"items": [u.to_dict() for u in auth_service.list_users()]}), 200


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    """
    Create a user account.

    Body: {username, email, password, role?}; role defaults to staff.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    email = data.get("email")
    password = data.get("password")

    if not all(isinstance(v, str) and v.strip() for v in (username, email, password)):
        return jsonify({"error": "username, email, and password required"}), 400

    try:
        user = auth_service.create_user(
            username.strip(),
            email.strip(),
            password,
            role=data.get("role") or ROLE_STAFF,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    current_app.logger.info("User %s created by %s", user.username, g.current_user.username)
    return jsonify({"user": user.to_dict()}), 201


@users_bp.post("/<int:user_id>/deactivate")
@require_auth
@require_permission("MANAGE_USERS")
def deactivate_user_route(user_id: int):
    try:
        user, revoked = auth_service.deactivate_user(user_id, actor_user_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return jsonify({
        "message": f"User {user.username} deactivated",
        "sessions_revoked": revoked,
    }), 200
