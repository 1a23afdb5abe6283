# Overview: Flask API routes for table orders (open tabs); parses input and returns JSON responses.

"""
Table Order API Routes

LIFECYCLE (per table number): free -> open -> checked out | cancelled

Adding items only checks stock. Checkout is the single point where the tab
becomes a sale and inventory is committed.
"""

from flask import Blueprint, current_app, request

from ..errors import PosError
from ..services import receipt_service, table_service
from ..validation import ValidationError, parse_int, parse_optional_int

tables_bp = Blueprint("tables", __name__, url_prefix="/api/tables")


@tables_bp.get("")
def tables_status_route():
    """Floor map. Query params: max_tables (default from config)."""
    try:
        max_tables = parse_optional_int(request.args.get("max_tables"), "max_tables")
        if max_tables is None:
            max_tables = current_app.config.get("MAX_TABLES", 20)
        tables = table_service.get_tables_status(max_tables=max_tables)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return {"tables": tables, "occupied": sum(1 for t in tables if t["is_occupied"])}


@tables_bp.post("")
def open_table_route():
    """
    Open a tab.

    Request body: {"table_number": 5, "user_id": 1}
    """
    payload = request.get_json(silent=True) or {}

    try:
        order = table_service.open_table(
            parse_int(payload.get("table_number"), "table_number"),
            user_id=parse_optional_int(payload.get("user_id"), "user_id"),
            cash_session_id=parse_optional_int(payload.get("cash_session_id"), "cash_session_id"),
        )
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to open table")
        return {"error": "Internal server error"}, 500

    return {"table_order": order.to_dict()}, 201


@tables_bp.get("/orders/<int:table_order_id>")
def get_table_order_route(table_order_id: int):
    try:
        order = table_service.get_table_order(table_order_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    return {"table_order": order.to_dict()}


@tables_bp.post("/orders/<int:table_order_id>/items")
def add_item_route(table_order_id: int):
    """Request body: {"product_id": 3, "quantity": 2}"""
    payload = request.get_json(silent=True) or {}

    try:
        item = table_service.add_item(
            table_order_id,
            parse_int(payload.get("product_id"), "product_id"),
            parse_int(payload.get("quantity", 1), "quantity"),
        )
        order = table_service.get_table_order(table_order_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to add item to table order")
        return {"error": "Internal server error"}, 500

    return {"item": item.to_dict(), "table_order": order.to_dict()}, 201


@tables_bp.patch("/items/<int:item_id>")
def update_item_route(item_id: int):
    """Request body: {"quantity": 3}"""
    payload = request.get_json(silent=True) or {}

    try:
        item = table_service.update_item_quantity(item_id, parse_int(payload.get("quantity"), "quantity"))
        order = table_service.get_table_order(item.table_order_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to update table order item")
        return {"error": "Internal server error"}, 500

    return {"item": item.to_dict(), "table_order": order.to_dict()}


@tables_bp.delete("/items/<int:item_id>")
def remove_item_route(item_id: int):
    try:
        order = table_service.remove_item(item_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove table order item")
        return {"error": "Internal server error"}, 500

    return {"table_order": order.to_dict()}


@tables_bp.post("/orders/<int:table_order_id>/checkout")
def checkout_route(table_order_id: int):
    """
    Pay a tab.

    Request body:
    {
        "payment_method": "cash",
        "user_id": 1,
        "received_cents": 2500,          (cash, optional)
        "change_cents": 500,             (cash, optional)
        "cash_amount_cents": ..,         (mixed)
        "transfer_amount_cents": ..,     (mixed)
        "sale_type": "normal" | "house", (optional)
        "notes": "...",                  (optional)
        "print_receipt": true            (optional)
    }
    """
    payload = request.get_json(silent=True) or {}

    try:
        result = table_service.checkout_table(
            table_order_id,
            payload.get("payment_method", "cash"),
            user_id=parse_optional_int(payload.get("user_id"), "user_id"),
            cash_session_id=parse_optional_int(payload.get("cash_session_id"), "cash_session_id"),
            cash_amount_cents=parse_optional_int(payload.get("cash_amount_cents"), "cash_amount_cents"),
            transfer_amount_cents=parse_optional_int(payload.get("transfer_amount_cents"), "transfer_amount_cents"),
            received_cents=parse_optional_int(payload.get("received_cents"), "received_cents"),
            change_cents=parse_optional_int(payload.get("change_cents"), "change_cents"),
            sale_type=payload.get("sale_type", "normal"),
            notes=payload.get("notes"),
        )
    except PosError as e:
        return e.to_dict(), e.status_code
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to check out table order")
        return {"error": "Internal server error"}, 500

    body = result.to_dict()
    if payload.get("print_receipt"):
        body["receipt_printed"] = receipt_service.print_receipt(
            result.sale,
            received_cents=result.received_cents,
            change_cents=result.change_cents,
        )
    return body, 201


@tables_bp.post("/orders/<int:table_order_id>/cancel")
def cancel_route(table_order_id: int):
    try:
        order = table_service.cancel_table(table_order_id)
    except PosError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel table order")
        return {"error": "Internal server error"}, 500

    return {"table_order": order.to_dict()}
