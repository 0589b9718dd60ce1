# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login issues a signed token; there is no logout because
  tokens are stateless and expire on their own.
- Login failures always answer 401 invalid_credentials, whether the user
  is unknown or the password is wrong.
"""

from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request

from ..decorators import ADMIN_ONLY, ALL_ROLES, require_auth, require_role
from ..errors import InvalidInput
from ..services import auth_service, token_service
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a bearer token.

    Body: {"username": str, "password": str}
    Returns token, expires_at and the user's identity claims.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput("JSON body required")

    username = data.get("username")
    password = data.get("password")
    if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
        current_app.logger.warning("Login attempt with missing credentials")
        raise InvalidInput("username and password required")

    claims = auth_service.authenticate(username, password)

    token, stamped = token_service.issue_token(
        claims,
        current_app.config["JWT_SECRET"],
        timedelta(hours=current_app.config["JWT_EXP_HOURS"]),
    )

    current_app.logger.info("User %s logged in", stamped.username)
    return jsonify({
        "token": token,
        "expires_at": to_utc_z(stamped.expires_at),
        "user": {
            "user_id": stamped.user_id,
            "username": stamped.username,
            "role": stamped.role.value,
        },
    }), 200


@auth_bp.get("/me")
@require_auth
@require_role(*ALL_ROLES)
def me_route(claims):
    """Return the identity carried by the presented token."""
    return jsonify({"user": claims.to_dict()}), 200


@auth_bp.get("/users")
@require_auth
@require_role(*ADMIN_ONLY)
def list_users_route(claims):
    """List user accounts (admin only). Password hashes are never returned."""
    users = auth_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users]}), 200
