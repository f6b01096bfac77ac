# Overview: Flask API routes for stocktake sessions; parses input and returns JSON responses.

"""
Stocktake (inventory session) API routes.

Routes are thin: they parse the request, call the engine with g.actor and
turn engine errors into localized JSON messages. The engine owns the
transaction of every call.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import InventorySessionError, PermissionDenied, StoreFailure
from ..messages import SUPPORTED_LOCALES, user_message
from ..services import (
    inventory_session_service,
    location_service,
    material_search_service,
    report_service,
    session_views,
)
from ..services.permission_service import log_security_event


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _locale() -> str:
    return request.accept_languages.best_match(SUPPORTED_LOCALES) or current_app.config.get("DEFAULT_LOCALE", "en")


def _flag(name: str, default: bool | None = None) -> bool | None:
    value = request.args.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes")


def _id_field(data: dict, name: str):
    """
    Integer id from a JSON body, or an error response.

    Returns (value, None) or (None, (response, 400)). Booleans, floats and
    non-digit strings are rejected.
    """
    value = data.get(name) if isinstance(data, dict) else None
    if value is None:
        return None, (jsonify({"error": f"{name} is required"}), 400)
    if isinstance(value, int) and not isinstance(value, bool):
        return value, None
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip()), None
    return None, (jsonify({"error": f"{name} must be an integer"}), 400)


def _error_response(exc: InventorySessionError):
    """Translate an engine error into a localized JSON response."""
    if isinstance(exc, PermissionDenied):
        log_security_event(
            user_id=g.current_user.id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=request.path,
            action=request.method,
            reason=f"Missing any of: {exc.permission_code}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
            org_id=g.org_id,
        )

    body = {"error": user_message(exc, _locale()), "code": exc.code}
    if not isinstance(exc, StoreFailure):
        body["details"] = exc.details
    return jsonify(body), exc.http_status


def _unexpected(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": user_message(StoreFailure(action), _locale()), "code": StoreFailure.code}), 500


@inventory_bp.get("/locations")
@require_auth
@require_permission("MATERIALS_READ", "INVENTORY_MANAGE")
def list_locations_route():
    include_deleted = _flag("include_deleted", False)
    only_with_materials = _flag("only_with_materials", True)

    try:
        locations = location_service.list_locations(
            g.actor,
            include_deleted=include_deleted,
            only_with_materials=only_with_materials,
        )
        return jsonify({"locations": [loc.to_dict() for loc in locations]}), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("list inventory locations")


@inventory_bp.get("/sessions")
@require_auth
@require_permission("INVENTORY_READ", "REPORTS_INVENTORY_READ")
def list_sessions_route():
    """
    Query params: date_from, date_to (YYYY-MM-DD), q, approved, include_deleted,
    limit (1..200, default 50), offset.
    """
    try:
        rows, total = report_service.list_sessions(
            g.actor,
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            q=request.args.get("q"),
            approved=_flag("approved"),
            include_deleted=_flag("include_deleted", False),
            limit=request.args.get("limit", 50, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return jsonify({"sessions": rows, "total": total}), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("list inventory sessions")


@inventory_bp.post("/sessions")
@require_auth
@require_permission("INVENTORY_MANAGE")
def open_session_route():
    """
    Request body:
    {
        "inventory_location_id": int,
        "session_date": "YYYY-MM-DD" (optional, default today),
        "description": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    location_id, error = _id_field(data, "inventory_location_id")
    if error:
        return error

    try:
        session = inventory_session_service.open_session(
            g.actor,
            location_id,
            session_date=data.get("session_date"),
            description=data.get("description"),
        )
        return jsonify(session.to_dict()), 201
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("open inventory session")


@inventory_bp.get("/sessions/<int:session_id>")
@require_auth
def editor_state_route(session_id: int):
    try:
        return jsonify(session_views.editor_state(g.actor, session_id)), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("load inventory session")


@inventory_bp.get("/sessions/<int:session_id>/summary")
@require_auth
def approval_summary_route(session_id: int):
    try:
        return jsonify(session_views.approval_summary(g.actor, session_id)), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("load inventory session summary")


@inventory_bp.get("/sessions/<int:session_id>/materials")
@require_auth
@require_permission("INVENTORY_MANAGE")
def search_materials_route(session_id: int):
    try:
        options = material_search_service.search_materials(
            g.actor,
            session_id,
            request.args.get("q", ""),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"materials": [option.to_dict() for option in options]}), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("search materials")


@inventory_bp.post("/sessions/<int:session_id>/items")
@require_auth
@require_permission("INVENTORY_MANAGE")
def add_item_route(session_id: int):
    """
    Request body: {"material_id": int}

    Returns:
        201: Line added
        200: Material already on the session (existing line returned)
    """
    data = request.get_json(silent=True) or {}

    material_id, error = _id_field(data, "material_id")
    if error:
        return error

    try:
        outcome = inventory_session_service.add_item(g.actor, session_id, material_id)
        body = {"item": outcome.item.to_dict(), "inserted": outcome.inserted}
        return jsonify(body), 201 if outcome.inserted else 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("add inventory session item")


@inventory_bp.post("/sessions/<int:session_id>/items/all")
@require_auth
@require_permission("INVENTORY_MANAGE")
def add_all_items_route(session_id: int):
    try:
        result = inventory_session_service.add_all_eligible_items(g.actor, session_id)
        return jsonify(result.to_dict()), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("add all materials to inventory session")


@inventory_bp.put("/sessions/<int:session_id>/items/<int:material_id>")
@require_auth
@require_permission("INVENTORY_MANAGE")
def update_item_route(session_id: int, material_id: int):
    """
    Request body (any of):
    {
        "counted_qty": number | str | null,  // "12,5" accepted; "" or null clears
        "note": str | null
    }
    """
    data = request.get_json(silent=True) or {}

    if "counted_qty" not in data and "note" not in data:
        return jsonify({"error": "counted_qty or note is required"}), 400

    try:
        changes = {field: data[field] for field in ("counted_qty", "note") if field in data}
        item = inventory_session_service.update_item(g.actor, session_id, material_id, **changes)
        return jsonify(item.to_dict()), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("update inventory session item")


@inventory_bp.delete("/sessions/<int:session_id>/items/<int:material_id>")
@require_auth
@require_permission("INVENTORY_MANAGE")
def remove_item_route(session_id: int, material_id: int):
    try:
        removed = inventory_session_service.remove_item(g.actor, session_id, material_id)
        return jsonify({"removed": removed}), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("remove inventory session item")


@inventory_bp.post("/sessions/<int:session_id>/approve")
@require_auth
@require_permission("INVENTORY_MANAGE")
def approve_route(session_id: int):
    try:
        session = inventory_session_service.approve(g.actor, session_id)
        return jsonify(session.to_dict()), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("approve inventory session")


@inventory_bp.delete("/sessions/<int:session_id>")
@require_auth
@require_permission("INVENTORY_MANAGE")
def delete_session_route(session_id: int):
    try:
        session = inventory_session_service.delete_session(g.actor, session_id)
        return jsonify(session.to_dict()), 200
    except InventorySessionError as exc:
        return _error_response(exc)
    except Exception:
        return _unexpected("delete inventory session")
