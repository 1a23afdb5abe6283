"""
Table Order Service

WHY: Restaurant tabs stay open while guests keep ordering and are paid at
the end. A tab is a mutable pre-sale; checkout turns it into an immutable
sale through the sale ledger.

LIFECYCLE (per table number):
    Free -> Open -> Checked-out | Cancelled
Both terminal states are status='closed'; a checked-out order is the one
referenced by a Sale.

STOCK: adding to a tab only checks stock (advisory). Inventory is committed
at checkout, where the ledger re-validates it. Two tabs may therefore hold
the same last unit; the second checkout fails cleanly.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import (
    EmptyOrderError,
    InsufficientStockError,
    InvalidQuantityError,
    NoCashSessionOpenError,
    SessionAlreadyClosedError,
    TableAlreadyOpenError,
    TableOrderClosedError,
    TableOrderItemNotFoundError,
    TableOrderNotFoundError,
)
from ..models import TableOrder, TableOrderItem
from ..time_utils import utcnow
from ..validation import ValidationError
from . import cash_session_service
from .catalog_service import get_product
from .concurrency import atomic, lock_for_update, run_with_retry
from .sales_service import (
    CheckoutResult,
    PaymentMethod,
    SaleItemInput,
    SaleType,
    create_sale,
    resolve_payment,
)


def calculate_table_subtotal(items: list[TableOrderItem]) -> int:
    return sum(item.subtotal_cents for item in items)


def _recompute_subtotal(order: TableOrder) -> None:
    db.session.flush()
    order.subtotal_cents = db.session.query(
        func.coalesce(func.sum(TableOrderItem.subtotal_cents), 0)
    ).filter(TableOrderItem.table_order_id == order.id).scalar()
    db.session.expire(order, ["items"])


def _require_open(order: TableOrder) -> None:
    if not order.is_open:
        raise TableOrderClosedError(order.id)


# =============================================================================
# QUERIES
# =============================================================================

def get_table_order(table_order_id: int) -> TableOrder:
    order = db.session.get(TableOrder, table_order_id)
    if order is None:
        raise TableOrderNotFoundError(table_order_id)
    return order


def get_open_order_for_table(table_number: int) -> TableOrder | None:
    return db.session.query(TableOrder).filter_by(
        table_number=table_number,
        status=TableOrder.STATUS_OPEN,
    ).first()


def list_open_table_orders() -> list[TableOrder]:
    return db.session.query(TableOrder).filter_by(
        status=TableOrder.STATUS_OPEN
    ).order_by(TableOrder.table_number.asc()).all()


def get_tables_status(max_tables: int = 20) -> list[dict]:
    """Floor map for tables 1..max_tables."""
    if max_tables is None or max_tables < 1:
        raise ValidationError("max_tables must be >= 1")

    occupied = {order.table_number: order for order in list_open_table_orders()}

    status = []
    for table_number in range(1, max_tables + 1):
        order = occupied.get(table_number)
        status.append({
            "table_number": table_number,
            "is_occupied": order is not None,
            "table_order": order.to_dict() if order else None,
        })
    return status


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_table(
    table_number: int,
    user_id: int | None = None,
    cash_session_id: int | None = None,
) -> TableOrder:
    """
    Open an empty tab on a free table.

    When no session id is given the currently open session (if any) is
    attached.

    Raises:
        TableAlreadyOpenError: the table already has an open order
    """
    if table_number is None or table_number < 1:
        raise ValidationError("table_number must be >= 1")

    if cash_session_id is None:
        open_session = cash_session_service.find_open_session()
        cash_session_id = open_session.id if open_session else None

    def _op():
        with atomic():
            existing = get_open_order_for_table(table_number)
            if existing:
                raise TableAlreadyOpenError(table_number, existing.id)

            order = TableOrder(
                table_number=table_number,
                status=TableOrder.STATUS_OPEN,
                subtotal_cents=0,
                opened_at=utcnow(),
                opened_by_user_id=user_id,
                cash_session_id=cash_session_id,
            )
            db.session.add(order)
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Table %s opened (order %s)", table_number, order.id)
    return order


def add_item(table_order_id: int, product_id: int, quantity: int) -> TableOrderItem:
    """
    Add a product to an open tab.

    A product already on the tab has its line quantity increased instead of
    getting a second line. Stock is only checked, never decremented.
    """
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError(quantity)

    with atomic():
        order = lock_for_update(db.session.query(TableOrder).filter_by(id=table_order_id)).first()
        if order is None:
            raise TableOrderNotFoundError(table_order_id)
        _require_open(order)

        product = get_product(product_id)

        line = next((i for i in order.items if i.product_id == product_id), None)
        new_quantity = quantity + (line.quantity if line else 0)
        if new_quantity > product.stock:
            raise InsufficientStockError(product_id, requested=new_quantity, available=product.stock)

        if line is None:
            line = TableOrderItem(
                table_order_id=order.id,
                product_id=product.id,
                product_name=product.name,
                quantity=new_quantity,
                price_cents=product.price_cents,
                subtotal_cents=product.price_cents * new_quantity,
                created_at=utcnow(),
            )
            db.session.add(line)
        else:
            line.quantity = new_quantity
            line.subtotal_cents = line.price_cents * new_quantity

        _recompute_subtotal(order)
    return line


def _get_item_for_update(item_id: int) -> tuple[TableOrderItem, TableOrder]:
    item = db.session.get(TableOrderItem, item_id)
    if item is None:
        raise TableOrderItemNotFoundError(item_id)
    order = lock_for_update(db.session.query(TableOrder).filter_by(id=item.table_order_id)).first()
    _require_open(order)
    return item, order


def update_item_quantity(item_id: int, quantity: int) -> TableOrderItem:
    """Set a line's quantity. Use remove_item to take a line off the tab."""
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError(quantity)

    with atomic():
        item, order = _get_item_for_update(item_id)
        item.quantity = quantity
        item.subtotal_cents = item.price_cents * quantity
        _recompute_subtotal(order)
    return item


def remove_item(item_id: int) -> TableOrder:
    with atomic():
        item, order = _get_item_for_update(item_id)
        db.session.delete(item)
        _recompute_subtotal(order)
    return order


def _resolve_checkout_session(cash_session_id: int | None):
    open_session = cash_session_service.find_open_session()
    if open_session is None:
        raise NoCashSessionOpenError()
    if cash_session_id is not None and cash_session_id != open_session.id:
        session = cash_session_service.get_cash_session_by_id(cash_session_id)
        if not session.is_open:
            raise SessionAlreadyClosedError(cash_session_id)
    return open_session


def checkout_table(
    table_order_id: int,
    payment_method,
    user_id: int | None = None,
    cash_session_id: int | None = None,
    cash_amount_cents: int | None = None,
    transfer_amount_cents: int | None = None,
    received_cents: int | None = None,
    change_cents: int | None = None,
    sale_type=SaleType.NORMAL,
    notes: str | None = None,
) -> CheckoutResult:
    """
    Convert an open tab into a sale.

    Order of checks: open cash session, order exists and is open, order has
    items, payment adds up. Only then does the ledger run, together with
    closing the order, in one unit of work. If the ledger rejects the sale
    (typically InsufficientStockError because another table took the stock)
    the tab stays open and nothing is written.
    """
    session = _resolve_checkout_session(cash_session_id)
    method = PaymentMethod.parse(payment_method)
    kind = SaleType.parse(sale_type)

    order = get_table_order(table_order_id)
    _require_open(order)
    if not order.items:
        raise EmptyOrderError()

    items = [
        SaleItemInput(
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            price_cents=item.price_cents,
        )
        for item in order.items
    ]
    total = calculate_table_subtotal(order.items)

    if kind is SaleType.HOUSE:
        payment = None
    else:
        payment = resolve_payment(
            method,
            total,
            cash_amount_cents=cash_amount_cents,
            transfer_amount_cents=transfer_amount_cents,
            received_cents=received_cents,
            change_cents=change_cents,
        )

    def _op():
        with atomic():
            locked = lock_for_update(db.session.query(TableOrder).filter_by(id=table_order_id)).first()
            _require_open(locked)

            sale = create_sale(
                items,
                payment_method=method,
                user_id=user_id,
                cash_session_id=session.id,
                table_order_id=locked.id,
                sale_type=kind,
                notes=notes,
                payment_split=payment.split if payment else None,
                commit=False,
            )

            locked.status = TableOrder.STATUS_CLOSED
            locked.closed_at = utcnow()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Table %s checked out as sale %s (%s cents)", order.table_number, sale.id, sale.total_cents
    )
    if payment is None:
        return CheckoutResult(sale)
    return CheckoutResult(sale, payment.received_cents, payment.change_cents)


def cancel_table(table_order_id: int) -> TableOrder:
    """Close a tab without a sale. Stock is untouched (it was never taken)."""
    with atomic():
        order = lock_for_update(db.session.query(TableOrder).filter_by(id=table_order_id)).first()
        if order is None:
            raise TableOrderNotFoundError(table_order_id)
        _require_open(order)

        order.status = TableOrder.STATUS_CLOSED
        order.closed_at = utcnow()

    current_app.logger.info("Table %s cancelled (order %s)", order.table_number, order.id)
    return order
