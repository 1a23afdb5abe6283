# Overview: Flask API routes for sale operations; parses input and returns JSON responses.

"""
Sales API Routes

WHY: Counter sales and house-account withdrawals bypass the table flow and
go straight to the ledger. Table checkouts live under /api/tables.

DESIGN:
- Sales are immutable; the only write after creation is the void annotation
- A receipt is printed after commit; a printing failure is reported in the
  response and never undoes the sale
"""

from flask import Blueprint, current_app, request

from ..errors import PosError
from ..services import receipt_service, sales_service
from ..validation import ValidationError, parse_int, parse_optional_int

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_lines(payload: dict) -> list[dict]:
    raw = payload.get("items")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("items must be a list")

    lines = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("each item must be an object")
        lines.append({
            "product_id": parse_int(entry.get("product_id"), "product_id"),
            "quantity": parse_int(entry.get("quantity"), "quantity"),
        })
    return lines


def _wants_receipt(payload: dict) -> bool:
    return bool(payload.get("print_receipt"))


@sales_bp.get("")
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - start, end: ISO-8601 datetimes (inclusive range)
    - limit: int (optional, ignored when a range is given)
    """
    start = request.args.get("start")
    end = request.args.get("end")

    try:
        if start or end:
            sales = sales_service.get_sales_by_date_range(start, end)
        else:
            limit = parse_optional_int(request.args.get("limit"), "limit")
            sales = sales_service.get_all_sales(limit=limit)
    except ValueError as e:
        return {"error": str(e)}, 400

    return {"items": [s.to_dict(include_items=False) for s in sales], "count": len(sales)}


@sales_bp.get("/today")
def today_total_route():
    return {"total_cents": sales_service.get_today_sales_total()}


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale_by_id(sale_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return sale.to_dict()


@sales_bp.post("")
def create_sale_route():
    """
    Direct cart sale against the open cash session.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "payment_method": "cash" | "card" | "transfer" | "mixed",
        "user_id": 1,
        "received_cents": 2000,          (cash, optional)
        "change_cents": 500,             (cash, optional)
        "cash_amount_cents": 1000,       (mixed)
        "transfer_amount_cents": 500,    (mixed)
        "print_receipt": true            (optional)
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        result = sales_service.sell_cart(
            _parse_lines(payload),
            payment_method=payload.get("payment_method", "cash"),
            user_id=parse_optional_int(payload.get("user_id"), "user_id"),
            cash_amount_cents=parse_optional_int(payload.get("cash_amount_cents"), "cash_amount_cents"),
            transfer_amount_cents=parse_optional_int(payload.get("transfer_amount_cents"), "transfer_amount_cents"),
            received_cents=parse_optional_int(payload.get("received_cents"), "received_cents"),
            change_cents=parse_optional_int(payload.get("change_cents"), "change_cents"),
        )
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return {"error": "Internal server error"}, 500

    body = result.to_dict()
    if _wants_receipt(payload):
        body["receipt_printed"] = receipt_service.print_receipt(
            result.sale,
            received_cents=result.received_cents,
            change_cents=result.change_cents,
        )
    return body, 201


@sales_bp.post("/house")
def create_house_sale_route():
    """
    House-account withdrawal: consumes stock, records no revenue and needs
    no open cash session.

    Request body: {"items": [...], "user_id": 1, "notes": "staff meal"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        sale = sales_service.record_house_sale(
            _parse_lines(payload),
            user_id=parse_optional_int(payload.get("user_id"), "user_id"),
            notes=payload.get("notes"),
        )
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to record house sale")
        return {"error": "Internal server error"}, 500

    return {"sale": sale.to_dict()}, 201


@sales_bp.post("/<int:sale_id>/void")
def void_sale_route(sale_id: int):
    """
    Void a sale (annotation only; stock and session totals stay as they are).

    Request body: {"user_id": 1, "reason": "wrong table"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        sale = sales_service.void_sale(
            sale_id,
            user_id=parse_optional_int(payload.get("user_id"), "user_id"),
            reason=payload.get("reason"),
        )
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return {"error": "Internal server error"}, 500

    return {"sale": sale.to_dict()}


@sales_bp.post("/<int:sale_id>/receipt")
def print_receipt_route(sale_id: int):
    """Reprint a receipt. Request body (optional): {"received_cents": .., "change_cents": ..}"""
    payload = request.get_json(silent=True) or {}

    try:
        sale = sales_service.get_sale_by_id(sale_id)
        received = parse_optional_int(payload.get("received_cents"), "received_cents")
        change = parse_optional_int(payload.get("change_cents"), "change_cents")
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400

    printed = receipt_service.print_receipt(sale, received_cents=received, change_cents=change)
    return {"sale_id": sale.id, "printed": printed}
