"""
Auth Blueprint — JWT authentication and self profile.

Endpoints:
  POST /api/v1/auth/login       — Email + password → access token
  POST /api/v1/auth/logout      — Stateless acknowledgement
  GET  /api/v1/auth/profile     — Current user profile
  PUT  /api/v1/auth/profile     — Update own phone / address
  POST /api/v1/auth/register    — Secretary registers a user
"""

from flask import Blueprint, jsonify, request

from thesis_portal import limiter
from thesis_portal.auth import get_current_user, require_auth, require_role
from thesis_portal.middleware.rate_limiter import LOGIN_LIMIT
from thesis_portal.models.user import ROLE_SECRETARY
from thesis_portal.services import identity_service

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
@limiter.limit(LOGIN_LIMIT)
def login():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    token, user = identity_service.authenticate(data.get("email"), data.get("password"))
    return jsonify({
        "message": "Login successful",
        "token": token,
        "user": user.to_dict(),
    }), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """Tokens are stateless; the client discards its copy."""
    return jsonify({"message": "Logout successful"}), 200


# ═══════════════════════════════════════════════════════════════
# GET/PUT /api/v1/auth/profile
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile():
    return jsonify({"user": get_current_user().to_dict(include_profile=True)}), 200


@auth_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile():
    """
    Body: { "phone": "...", "address": "..." } — other fields are ignored.
    """
    data = request.get_json(silent=True) or {}
    user = identity_service.update_profile(get_current_user(), data)
    return jsonify({
        "message": "Profile updated successfully",
        "user": user.to_dict(include_profile=True),
    }), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register  (secretary only)
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
@require_role(ROLE_SECRETARY)
def register():
    """
    Body: { "role", "am", "full_name", "email", "password", "phone"?, "address"? }
    """
    data = request.get_json(silent=True) or {}
    user = identity_service.register_user(data)
    return jsonify({
        "message": "User registered successfully",
        "user": user.to_dict(include_profile=True),
    }), 201
