# Overview: Flask API routes for stocktake reports.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..errors import InventorySessionError
from ..messages import SUPPORTED_LOCALES, user_message
from ..services import report_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_error(exc: InventorySessionError):
    locale = request.accept_languages.best_match(SUPPORTED_LOCALES) or current_app.config.get("DEFAULT_LOCALE", "en")
    return jsonify({"error": user_message(exc, locale), "code": exc.code}), exc.http_status


@reports_bp.get("/inventory/deltas")
@require_auth
@require_permission("REPORTS_INVENTORY_READ", "INVENTORY_READ")
def inventory_deltas_report():
    """
    Shrink/surplus lines of approved stocktakes, largest loss value first.

    Query params: location_id (optional), limit (default 50)
    """
    location_id = request.args.get("location_id", type=int)
    limit = request.args.get("limit", 50, type=int)

    try:
        rows = report_service.inventory_deltas(g.actor, location_id=location_id, limit=limit)
        return jsonify({"rows": rows}), 200
    except InventorySessionError as exc:
        return _report_error(exc)
    except Exception:
        current_app.logger.exception("Failed to build inventory deltas report")
        return jsonify({"error": "Failed to build report"}), 500


@reports_bp.get("/inventory/audit")
@require_auth
@require_permission("REPORTS_INVENTORY_READ", "INVENTORY_READ")
def inventory_audit_report():
    """
    Value impact (loss, gain, shrink) of approved stocktakes with their lines.

    Query params: from, to (YYYY-MM-DD, optional), location_id, limit (default 50)
    """
    try:
        report = report_service.session_audit(
            g.actor,
            date_from=request.args.get("from") or None,
            date_to=request.args.get("to") or None,
            location_id=request.args.get("location_id", type=int),
            limit=request.args.get("limit", 50, type=int),
        )
    except InventorySessionError as exc:
        return _report_error(exc)
    except Exception:
        current_app.logger.exception("Failed to build inventory audit report")
        return jsonify({"error": "Failed to build report"}), 500

    # JSON object keys are strings
    items = {str(session_id): rows for session_id, rows in report["items_by_session"].items()}
    return jsonify({"sessions": report["sessions"], "items_by_session": items}), 200


@reports_bp.get("/inventory/shrink-series")
@require_auth
@require_permission("REPORTS_INVENTORY_READ", "INVENTORY_READ")
def inventory_shrink_series_report():
    """
    Daily estimated shrink value of approved stocktakes.

    Query params: from, to (YYYY-MM-DD, required), location_id (optional)
    """
    date_from = request.args.get("from")
    date_to = request.args.get("to")
    if not date_from or not date_to:
        return jsonify({"error": "from and to are required"}), 400

    try:
        points = report_service.shrink_series(
            g.actor, date_from, date_to, location_id=request.args.get("location_id", type=int),
        )
        return jsonify({"points": points}), 200
    except InventorySessionError as exc:
        return _report_error(exc)
    except Exception:
        current_app.logger.exception("Failed to build inventory shrink series")
        return jsonify({"error": "Failed to build report"}), 500
