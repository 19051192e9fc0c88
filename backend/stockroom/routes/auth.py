# Overview: Flask API routes for login, logout and the current user.

# backend/stockroom/routes/auth.py
"""
Authentication API routes

Accounts are created by administrators (`POST /api/users` or
`flask users create`); there is no self-registration.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..permissions import get_role_permissions
from ..services import auth_service, session_service
from stockroom.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be sent as `Authorization: Bearer <token>` on protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "username/email and password required"}), 400

    user = auth_service.authenticate(username, password)
    if user is None:
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )

    return jsonify({
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": user.to_dict(),
        "permissions": sorted(get_role_permissions(user.role)),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(get_role_permissions(user.role)),
    }), 200
