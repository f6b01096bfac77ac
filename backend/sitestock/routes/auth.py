# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes.

Users are created by administrators only (CLI: flask users create).
Session tokens are returned once at login and sent back as
"Authorization: Bearer <token>".
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..models import Organization
from ..services import auth_service
from ..services import session_service
from ..services import permission_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body:
    {
        "username": str,
        "password": str,
        "org_code": str (optional, needed when the username exists in several organizations)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        org_id = None
        org_code = data.get("org_code")
        if org_code:
            org = db.session.query(Organization).filter_by(code=org_code).first()
            if not org:
                return jsonify({"error": "Invalid credentials"}), 401
            org_id = org.id

        user = auth_service.authenticate(username, password, org_id=org_id)

        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"Invalid credentials for {username}",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
                org_id=org_id,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user_id=user.id)
        permissions = sorted(permission_service.get_user_permissions(user.id))

        return jsonify({
            "user": user.to_dict(),
            "permissions": permissions,
            "token": token,
            "org_id": session.org_id,
            "message": "Login successful"
        }), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 403
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]

        revoked = session_service.revoke_session(token, reason="User logout")

        if not revoked:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500
