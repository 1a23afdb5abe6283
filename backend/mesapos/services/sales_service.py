"""
Sales Service - the sale ledger

WHY: Every revenue-affecting or inventory-affecting transaction passes
through create_sale. Direct cart sales, house-account withdrawals and
table checkouts all funnel here.

ATOMICITY: stock decrement, sale insert, item inserts and the cash
session posting happen in one unit of work. Any failure (insufficient
stock, closed session, DB fault) rolls all of it back.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import (
    AmountMismatchError,
    EmptyOrderError,
    InsufficientPaymentError,
    InvalidQuantityError,
    SaleAlreadyVoidedError,
    SaleNotFoundError,
)
from ..models import Product, Sale, SaleItem
from ..time_utils import coerce_datetime, utcnow
from ..validation import ValidationError
from . import cash_session_service
from .catalog_service import decrement_stock, get_product
from .concurrency import atomic, lock_for_update, run_with_retry


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    MIXED = "mixed"

    @classmethod
    def parse(cls, value) -> "PaymentMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"payment_method must be one of: {', '.join(m.value for m in cls)}"
            )


class SaleType(str, enum.Enum):
    NORMAL = "normal"
    HOUSE = "house"

    @classmethod
    def parse(cls, value) -> "SaleType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError("sale_type must be normal or house")


@dataclass(frozen=True)
class PaymentSplit:
    """How a sale total lands on the three drawer channels."""
    cash_cents: int = 0
    card_cents: int = 0
    transfer_cents: int = 0

    @property
    def total_cents(self) -> int:
        return self.cash_cents + self.card_cents + self.transfer_cents


NO_PAYMENT = PaymentSplit()


@dataclass(frozen=True)
class PaymentResolution:
    split: PaymentSplit
    received_cents: int | None = None
    change_cents: int = 0


@dataclass(frozen=True)
class SaleItemInput:
    """A line about to be sold, with name and price already snapshotted."""
    product_id: int
    product_name: str
    quantity: int
    price_cents: int

    @property
    def subtotal_cents(self) -> int:
        return self.price_cents * self.quantity


@dataclass(frozen=True)
class CheckoutResult:
    sale: Sale
    received_cents: int | None = None
    change_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "received_cents": self.received_cents,
            "change_cents": self.change_cents,
        }


def calculate_subtotal(price_cents: int, quantity: int) -> int:
    return price_cents * quantity


def build_sale_item(product: Product, quantity: int) -> SaleItemInput:
    """Snapshot a product's current name and price into a sale line."""
    if quantity is None or quantity <= 0:
        raise InvalidQuantityError(quantity)
    return SaleItemInput(
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        price_cents=product.price_cents,
    )


def _tolerance_cents() -> int:
    return current_app.config.get("MIXED_PAYMENT_TOLERANCE_CENTS", 1)


def resolve_payment(
    method: PaymentMethod,
    total_cents: int,
    *,
    cash_amount_cents: int | None = None,
    transfer_amount_cents: int | None = None,
    received_cents: int | None = None,
    change_cents: int | None = None,
) -> PaymentResolution:
    """
    Validate what the customer handed over and split the total by channel.

    - cash: received must cover the total; change = received - total
    - card / transfer: the whole total goes to that channel
    - mixed: cash + transfer must equal the total within the configured
      tolerance; a rounding gap is absorbed by the cash portion so the
      stored split always sums exactly to the total
    """
    method = PaymentMethod.parse(method)
    tolerance = _tolerance_cents()

    if method is PaymentMethod.CASH:
        received = total_cents if received_cents is None else received_cents
        if received < total_cents:
            raise InsufficientPaymentError(total_cents, received)
        change = received - total_cents
        if change_cents is not None and abs(change_cents - change) > tolerance:
            raise AmountMismatchError(change, change_cents)
        return PaymentResolution(PaymentSplit(cash_cents=total_cents), received, change)

    if method is PaymentMethod.CARD:
        return PaymentResolution(PaymentSplit(card_cents=total_cents))

    if method is PaymentMethod.TRANSFER:
        return PaymentResolution(PaymentSplit(transfer_cents=total_cents))

    if method is PaymentMethod.MIXED:
        cash = cash_amount_cents or 0
        transfer = transfer_amount_cents or 0
        if cash < 0 or transfer < 0:
            raise ValidationError("Payment amounts must be >= 0")
        if abs((cash + transfer) - total_cents) > tolerance:
            raise AmountMismatchError(total_cents, cash + transfer)
        cash = total_cents - transfer
        if cash < 0:
            cash, transfer = 0, total_cents
        return PaymentResolution(PaymentSplit(cash_cents=cash, transfer_cents=transfer))

    raise ValidationError(f"Unsupported payment method {method!r}")


def _split_for(method: PaymentMethod, total_cents: int, payment_split: PaymentSplit | None) -> PaymentSplit:
    if payment_split is not None:
        if payment_split.total_cents != total_cents:
            raise AmountMismatchError(total_cents, payment_split.total_cents)
        return payment_split
    if method is PaymentMethod.MIXED:
        # Mixed payments cannot be guessed; the workflow must resolve them.
        raise AmountMismatchError(total_cents, 0)
    return resolve_payment(method, total_cents).split


def _aggregate_quantities(items: list[SaleItemInput]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


# =============================================================================
# LEDGER
# =============================================================================

def create_sale(
    items: list[SaleItemInput],
    *,
    payment_method=PaymentMethod.CASH,
    user_id: int | None = None,
    cash_session_id: int | None = None,
    table_order_id: int | None = None,
    sale_type=SaleType.NORMAL,
    notes: str | None = None,
    payment_split: PaymentSplit | None = None,
    commit: bool = True,
) -> Sale:
    """
    Record an immutable sale.

    Stock is re-validated here with a conditional decrement per product, so
    caller-side checks are only advisory. With commit=False the caller owns
    the transaction (and must roll back on failure); with commit=True the
    sale is committed or fully rolled back before returning.

    Raises:
        EmptyOrderError: no items
        InvalidQuantityError: a quantity <= 0
        InsufficientStockError: a product cannot cover its aggregated quantity
        AmountMismatchError: the payment split doesn't match the total
        SessionNotFoundError / SessionAlreadyClosedError: bad cash_session_id
    """
    if not items:
        raise EmptyOrderError("No items in sale")
    for item in items:
        if item.quantity is None or item.quantity <= 0:
            raise InvalidQuantityError(item.quantity)

    method = PaymentMethod.parse(payment_method)
    kind = SaleType.parse(sale_type)

    items_total = sum(item.subtotal_cents for item in items)
    if kind is SaleType.HOUSE:
        total = 0
        split = NO_PAYMENT
    else:
        total = items_total
        split = _split_for(method, total, payment_split)

    def _op():
        with atomic(commit=commit):
            for product_id, quantity in _aggregate_quantities(items).items():
                decrement_stock(product_id, quantity)

            sale = Sale(
                total_cents=total,
                created_at=utcnow(),
                user_id=user_id,
                cash_session_id=cash_session_id,
                table_order_id=table_order_id,
                payment_method=method.value,
                sale_type=kind.value,
                cash_amount_cents=split.cash_cents,
                card_amount_cents=split.card_cents,
                transfer_amount_cents=split.transfer_cents,
                notes=notes,
            )
            for item in items:
                sale.items.append(SaleItem(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    price_cents=item.price_cents,
                    subtotal_cents=item.subtotal_cents,
                ))
            db.session.add(sale)
            db.session.flush()

            if cash_session_id is not None:
                cash_session_service.post_sale_to_session(cash_session_id, split)
        return sale

    if not commit:
        return _op()
    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s recorded: %s cents via %s (%s)", sale.id, sale.total_cents, method.value, kind.value
    )
    return sale


def _items_from_cart(lines: list[dict]) -> list[SaleItemInput]:
    """Build snapshot items from [{"product_id": .., "quantity": ..}, ...]."""
    if not lines:
        raise EmptyOrderError("Cart is empty")
    items = []
    for line in lines:
        product = get_product(line["product_id"])
        items.append(build_sale_item(product, line["quantity"]))
    return items


def sell_cart(
    lines: list[dict],
    *,
    payment_method,
    user_id: int | None = None,
    cash_amount_cents: int | None = None,
    transfer_amount_cents: int | None = None,
    received_cents: int | None = None,
    change_cents: int | None = None,
) -> CheckoutResult:
    """
    Direct counter sale against the open cash session.

    Raises NoCashSessionOpenError when the drawer is not open.
    """
    session = cash_session_service.require_open_session()
    items = _items_from_cart(lines)
    total = sum(item.subtotal_cents for item in items)

    payment = resolve_payment(
        PaymentMethod.parse(payment_method),
        total,
        cash_amount_cents=cash_amount_cents,
        transfer_amount_cents=transfer_amount_cents,
        received_cents=received_cents,
        change_cents=change_cents,
    )
    sale = create_sale(
        items,
        payment_method=payment_method,
        user_id=user_id,
        cash_session_id=session.id,
        payment_split=payment.split,
    )
    return CheckoutResult(sale, payment.received_cents, payment.change_cents)


def record_house_sale(lines: list[dict], *, user_id: int | None = None, notes: str | None = None) -> Sale:
    """
    House account: internal consumption with no revenue.

    Inventory is consumed, total is 0 and no cash session is required.
    """
    items = _items_from_cart(lines)
    return create_sale(
        items,
        payment_method=PaymentMethod.CASH,
        user_id=user_id,
        sale_type=SaleType.HOUSE,
        notes=notes,
    )


def void_sale(sale_id: int, user_id: int, reason: str) -> Sale:
    """
    Annotate a sale as voided.

    The sale stays for audit. Stock and cash session totals are NOT
    reversed: a void is an annotation, not a compensating transaction.
    """
    if user_id is None:
        raise ValidationError("user_id is required")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason required")

    def _op():
        with atomic():
            sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise SaleNotFoundError(sale_id)
            if sale.is_voided:
                raise SaleAlreadyVoidedError(sale_id)

            sale.voided_at = utcnow()
            sale.voided_by_user_id = user_id
            sale.void_reason = reason[:255]
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale %s voided by user %s", sale.id, user_id)
    return sale


# =============================================================================
# READS
# =============================================================================

def get_sale_by_id(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(sale_id)
    return sale


def get_all_sales(limit: int | None = None) -> list[Sale]:
    query = db.session.query(Sale).order_by(Sale.created_at.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_sales_by_date_range(start, end) -> list[Sale]:
    start_dt = coerce_datetime(start)
    end_dt = coerce_datetime(end)

    query = db.session.query(Sale)
    if start_dt:
        query = query.filter(Sale.created_at >= start_dt)
    if end_dt:
        query = query.filter(Sale.created_at <= end_dt)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def get_today_sales_total(now: datetime | None = None) -> int:
    """Revenue of non-voided sales since midnight UTC."""
    now = now or utcnow()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)

    total = db.session.query(func.coalesce(func.sum(Sale.total_cents), 0)).filter(
        Sale.created_at >= start,
        Sale.created_at < end,
        Sale.voided_at.is_(None),
    ).scalar()
    return int(total or 0)
