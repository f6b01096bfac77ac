# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import validate_permission_code
from .services import session_service, permission_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'actor')


def _log_denied(permission_codes) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=request.path,
        action=request.method,
        reason=f"Missing any of: {', '.join(permission_codes)}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=g.org_id,
    )


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.org_id: The organization ID captured at login
    - g.actor: Capability snapshot passed into every stocktake engine call

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account or organization deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.org_id = context.org_id
        g.session_context = context
        g.actor = permission_service.build_actor(context.user, org_id=context.org_id)

        return f(*args, **kwargs)

    return decorated_function


def require_permission(*permission_codes: str):
    """
    Require any of the given permissions (checked against g.actor).

    Denials are written to security_events with the tenant's org_id.
    """
    for code in permission_codes:
        if not validate_permission_code(code):
            raise ValueError(f"Unknown permission code: {code}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not g.actor.can_any(*permission_codes):
                _log_denied(permission_codes)
                return jsonify({
                    "error": "Permission denied",
                    "required_permissions": list(permission_codes),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
