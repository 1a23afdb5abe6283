# Overview: Typed domain errors raised by the ledger, session and table services.

"""
Error taxonomy for the cash session and table-order ledger.

Every error carries a stable ``code`` (used by API clients to pick a user
message), optional ``details`` and the HTTP status the routes answer with.
Operations raising these errors have committed nothing.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for domain errors."""

    code = "pos_error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


# =============================================================================
# CATALOG
# =============================================================================

class ProductNotFoundError(PosError):
    code = "product_not_found"
    status_code = 404

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})
        self.product_id = product_id


class ProductInUseError(PosError):
    code = "product_in_use"
    status_code = 409

    def __init__(self, product_id: int):
        super().__init__(
            f"Product {product_id} is referenced by sales or open tables",
            {"product_id": product_id},
        )
        self.product_id = product_id


class InsufficientStockError(PosError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: int, requested: int | None = None, available: int | None = None):
        details = {"product_id": product_id}
        if requested is not None:
            details["requested_quantity"] = requested
        if available is not None:
            details["available"] = available
        super().__init__(f"Insufficient stock for product {product_id}", details)
        self.product_id = product_id


class InvalidQuantityError(PosError):
    code = "invalid_quantity"

    def __init__(self, quantity):
        super().__init__("Quantity must be greater than 0", {"quantity": quantity})


# =============================================================================
# SALES
# =============================================================================

class SaleNotFoundError(PosError):
    code = "sale_not_found"
    status_code = 404

    def __init__(self, sale_id: int):
        super().__init__(f"Sale {sale_id} not found", {"sale_id": sale_id})


class SaleAlreadyVoidedError(PosError):
    code = "sale_already_voided"
    status_code = 409

    def __init__(self, sale_id: int):
        super().__init__(f"Sale {sale_id} already voided", {"sale_id": sale_id})


class EmptyOrderError(PosError):
    code = "empty_order"

    def __init__(self, message: str = "Order has no items"):
        super().__init__(message)


class AmountMismatchError(PosError):
    code = "amount_mismatch"

    def __init__(self, expected_cents: int, actual_cents: int):
        super().__init__(
            "Payment amounts do not add up to the total",
            {"expected_cents": expected_cents, "actual_cents": actual_cents},
        )


class InsufficientPaymentError(PosError):
    code = "insufficient_payment"

    def __init__(self, total_cents: int, received_cents: int):
        super().__init__(
            "Received amount is less than the total",
            {"total_cents": total_cents, "received_cents": received_cents},
        )


# =============================================================================
# CASH SESSIONS
# =============================================================================

class SessionAlreadyOpenError(PosError):
    code = "session_already_open"
    status_code = 409

    def __init__(self, session_id: int):
        super().__init__(
            f"Cash session {session_id} is already open",
            {"session_id": session_id},
        )


class SessionNotFoundError(PosError):
    code = "session_not_found"
    status_code = 404

    def __init__(self, session_id: int):
        super().__init__(f"Cash session {session_id} not found", {"session_id": session_id})


class SessionAlreadyClosedError(PosError):
    code = "session_already_closed"
    status_code = 409

    def __init__(self, session_id: int):
        super().__init__(f"Cash session {session_id} is already closed", {"session_id": session_id})


class NoCashSessionOpenError(PosError):
    code = "no_cash_session_open"
    status_code = 409

    def __init__(self):
        super().__init__("No cash session is open")


# =============================================================================
# TABLES
# =============================================================================

class TableAlreadyOpenError(PosError):
    code = "table_already_open"
    status_code = 409

    def __init__(self, table_number: int, table_order_id: int):
        super().__init__(
            f"Table {table_number} already has an open order",
            {"table_number": table_number, "table_order_id": table_order_id},
        )


class TableOrderNotFoundError(PosError):
    code = "table_order_not_found"
    status_code = 404

    def __init__(self, table_order_id: int):
        super().__init__(f"Table order {table_order_id} not found", {"table_order_id": table_order_id})


class TableOrderItemNotFoundError(PosError):
    code = "table_order_item_not_found"
    status_code = 404

    def __init__(self, item_id: int):
        super().__init__(f"Table order item {item_id} not found", {"item_id": item_id})


class TableOrderClosedError(PosError):
    code = "table_order_closed"
    status_code = 409

    def __init__(self, table_order_id: int):
        super().__init__(f"Table order {table_order_id} is closed", {"table_order_id": table_order_id})
