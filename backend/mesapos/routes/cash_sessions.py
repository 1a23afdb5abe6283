# Overview: Flask API routes for cash drawer sessions; parses input and returns JSON responses.

"""
Cash Session API Routes

LIFECYCLE: open -> close (immutable once closed)

Every serialized session carries its derived reconciliation (declared
minus expected per channel). Nothing about the reconciliation is stored.
"""

from flask import Blueprint, current_app, request

from ..errors import PosError
from ..services import cash_session_service, receipt_service
from ..validation import ValidationError, parse_int, parse_optional_int

cash_sessions_bp = Blueprint("cash_sessions", __name__, url_prefix="/api/cash-sessions")


@cash_sessions_bp.get("")
def list_sessions_route():
    """Session history, most recent first. Query params: limit (default 50)."""
    try:
        limit = parse_optional_int(request.args.get("limit"), "limit") or 50
    except ValidationError as e:
        return {"error": str(e)}, 400

    sessions = cash_session_service.list_cash_sessions(limit=limit)
    return {"items": [cash_session_service.session_to_dict(s) for s in sessions], "count": len(sessions)}


@cash_sessions_bp.get("/current")
def current_session_route():
    session = cash_session_service.find_open_session()
    if session is None:
        return {"session": None}
    return {"session": cash_session_service.session_to_dict(session)}


@cash_sessions_bp.get("/<int:session_id>")
def get_session_route(session_id: int):
    try:
        session = cash_session_service.get_cash_session_by_id(session_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"session": cash_session_service.session_to_dict(session)}


@cash_sessions_bp.get("/<int:session_id>/summary")
def session_summary_route(session_id: int):
    try:
        return cash_session_service.get_session_summary(session_id)
    except PosError as e:
        return e.to_dict(), e.status_code


@cash_sessions_bp.post("")
def open_session_route():
    """
    Open the drawer.

    Request body: {"opening_cash_cents": 10000, "user_id": 1}
    """
    payload = request.get_json(silent=True) or {}

    try:
        session = cash_session_service.open_cash_session(
            opening_cash_cents=parse_int(payload.get("opening_cash_cents", 0), "opening_cash_cents"),
            user_id=parse_optional_int(payload.get("user_id"), "user_id"),
        )
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to open cash session")
        return {"error": "Internal server error"}, 500

    return {"session": cash_session_service.session_to_dict(session)}, 201


@cash_sessions_bp.post("/<int:session_id>/close")
def close_session_route(session_id: int):
    """
    Close the drawer with counted amounts.

    Request body:
    {
        "declared_cash_cents": 14000,
        "declared_card_cents": 0,
        "declared_transfer_cents": 0,
        "user_id": 1,
        "notes": "...",             (optional)
        "print_report": true        (optional)
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        session = cash_session_service.close_cash_session(
            session_id,
            declared_cash_cents=parse_int(payload.get("declared_cash_cents"), "declared_cash_cents"),
            declared_card_cents=parse_int(payload.get("declared_card_cents", 0), "declared_card_cents"),
            declared_transfer_cents=parse_int(payload.get("declared_transfer_cents", 0), "declared_transfer_cents"),
            user_id=parse_optional_int(payload.get("user_id"), "user_id"),
            notes=payload.get("notes"),
        )
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to close cash session")
        return {"error": "Internal server error"}, 500

    body = {"session": cash_session_service.session_to_dict(session)}
    if payload.get("print_report"):
        body["report_printed"] = receipt_service.print_cash_session_report(session)
    return body
