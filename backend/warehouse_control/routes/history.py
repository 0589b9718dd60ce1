# Overview: Flask API routes for item history; parses filters and returns JSON or CSV.

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- date_from and date_to are inclusive.

Unparseable filter values (non-numeric or out-of-range integers,
item_id <= 0, bad dates) are ignored rather than rejected, so a sloppy query string widens
the result instead of failing.
"""

from flask import Blueprint, Response, current_app, jsonify, request

from ..decorators import ALL_ROLES, require_auth, require_role
from ..services import history_service
from ..services.history_service import HistoryFilter
from ..time_utils import parse_iso_datetime
from ..validation import is_db_int


history_bp = Blueprint("history", __name__, url_prefix="/api/history")


def _optional_int(name: str):
    value = request.args.get(name, type=int)
    if value is None or not is_db_int(value):
        return None
    return value


def _optional_positive_int(name: str):
    value = _optional_int(name)
    if value is None or value <= 0:
        return None
    return value


def _optional_datetime(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        current_app.logger.info("Ignoring unparseable %s=%r", name, raw)
        return None


def _filter_from_args() -> HistoryFilter:
    return HistoryFilter(
        item_id=_optional_positive_int("item_id"),
        action=request.args.get("action") or None,
        username=request.args.get("username") or None,
        date_from=_optional_datetime("date_from"),
        date_to=_optional_datetime("date_to"),
        limit=_optional_int("limit") or 0,
        offset=_optional_int("offset") or 0,
    )


@history_bp.get("")
@require_auth
@require_role(*ALL_ROLES)
def list_history_route(claims):
    """
    Query params (all optional): item_id, action, username, date_from,
    date_to, limit (default 100), offset (default 0).
    """
    records = history_service.list_history(_filter_from_args())
    return jsonify({"history": [r.to_dict() for r in records]}), 200


@history_bp.get("/items/<int:item_id>")
@require_auth
@require_role(*ALL_ROLES)
def item_history_route(item_id: int, claims):
    records = history_service.list_item_history(item_id)
    return jsonify({"history": [r.to_dict() for r in records]}), 200


@history_bp.get("/export")
@require_auth
@require_role(*ALL_ROLES)
def export_history_route(claims):
    """Download history as CSV. Accepts the same filters as the list route."""
    body = history_service.export_history_csv(_filter_from_args())
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=history_export.csv"},
    )
