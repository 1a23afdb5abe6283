# Overview: Plain-text receipt and cash-close documents plus their emitters.

"""
Receipt Service

WHY: A sale is committed before anything is printed. Printing is a side
effect that may fail (no paper, missing directory, device offline) and must
never unwind the sale, so emission goes through print_receipt, which
reports failure as False instead of raising.

FORMAT: fixed 32-column text, the width of a 58mm thermal roll.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from flask import current_app

from ..models import CashSession, Sale
from ..time_utils import to_utc_z, utcnow
from .cash_session_service import reconcile

RECEIPT_WIDTH = 32
RULE = "=" * RECEIPT_WIDTH
THIN_RULE = "-" * RECEIPT_WIDTH


class ReceiptEmitError(Exception):
    """Raised by an emitter that could not deliver a document."""


@dataclass
class ReceiptDocument:
    title: str
    lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


def format_cents(cents: int) -> str:
    """1234 -> '$12.34', -50 -> '-$0.50'."""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}${cents // 100:,}.{cents % 100:02d}"


def _center(text: str) -> str:
    return text[:RECEIPT_WIDTH].center(RECEIPT_WIDTH).rstrip()


def _right(label: str, amount: str) -> str:
    gap = max(1, RECEIPT_WIDTH - len(label) - len(amount))
    return f"{label}{' ' * gap}{amount}"


def _item_line(name: str, quantity: int, subtotal_cents: int) -> str:
    if len(name) > 18:
        name = name[:15] + "..."
    return f"{name:<18} {quantity:>4} {format_cents(subtotal_cents):>8}"


# =============================================================================
# RENDERING
# =============================================================================

def render_receipt(
    sale: Sale,
    *,
    business_name: str | None = None,
    received_cents: int | None = None,
    change_cents: int | None = None,
) -> ReceiptDocument:
    """Customer receipt for one sale."""
    business_name = business_name or current_app.config.get("BUSINESS_NAME", "MesaPOS")

    lines = [RULE, _center(business_name), RULE, ""]
    lines.append(f"Date: {to_utc_z(sale.created_at)}")
    lines.append(f"Sale #: {sale.id}")
    if sale.table_order is not None:
        lines.append(f"Table: {sale.table_order.table_number}")
    if sale.user is not None:
        lines.append(f"Seller: {sale.user.username}")
    if sale.is_house:
        lines.append(_center("*** HOUSE ACCOUNT ***"))
    if sale.is_voided:
        lines.append(_center("*** VOIDED ***"))
    lines.extend([THIN_RULE, f"{'ITEM':<18} {'QTY':>4} {'AMOUNT':>8}", THIN_RULE])

    for item in sale.items:
        lines.append(_item_line(item.product_name, item.quantity, item.subtotal_cents))

    lines.extend(["", THIN_RULE, _right("TOTAL:", format_cents(sale.total_cents))])

    if not sale.is_house:
        lines.append(f"Payment: {sale.payment_method}")
        if sale.payment_method == "mixed":
            lines.append(_right("  Cash:", format_cents(sale.cash_amount_cents)))
            lines.append(_right("  Transfer:", format_cents(sale.transfer_amount_cents)))
        if received_cents is not None:
            lines.append(_right("Received:", format_cents(received_cents)))
            lines.append(_right("Change:", format_cents(change_cents or 0)))

    if sale.notes:
        lines.append(f"Notes: {sale.notes}")

    lines.extend(["", RULE, _center("Thank you for your purchase"), RULE])
    return ReceiptDocument(title=f"sale-{sale.id}", lines=lines)


def render_cash_session_report(session: CashSession, *, business_name: str | None = None) -> ReceiptDocument:
    """Drawer close report: expected vs declared per channel."""
    business_name = business_name or current_app.config.get("BUSINESS_NAME", "MesaPOS")
    rec = reconcile(session)

    lines = [RULE, _center(business_name), _center("CASH SESSION REPORT"), RULE, ""]
    lines.append(f"Session #: {session.id}")
    lines.append(f"Opened: {to_utc_z(session.opened_at)}")
    if session.opened_by is not None:
        lines.append(f"Opened by: {session.opened_by.username}")
    if session.closed_at is not None:
        lines.append(f"Closed: {to_utc_z(session.closed_at)}")
        if session.closed_by is not None:
            lines.append(f"Closed by: {session.closed_by.username}")
    else:
        lines.append("Status: OPEN")

    lines.extend([
        THIN_RULE,
        _right("Opening cash:", format_cents(session.opening_cash_cents)),
        _right("Cash sales:", format_cents(session.sales_cash_total_cents)),
        _right("Card sales:", format_cents(session.sales_card_total_cents)),
        _right("Transfer sales:", format_cents(session.sales_transfer_total_cents)),
        THIN_RULE,
    ])

    for label, expected, declared, diff in (
        ("Cash", rec.expected_cash_cents, rec.declared_cash_cents, rec.diff_cash_cents),
        ("Card", rec.expected_card_cents, rec.declared_card_cents, rec.diff_card_cents),
        ("Transfer", rec.expected_transfer_cents, rec.declared_transfer_cents, rec.diff_transfer_cents),
    ):
        lines.append(f"{label}:")
        lines.append(_right("  Expected:", format_cents(expected)))
        lines.append(_right("  Declared:", format_cents(declared)))
        lines.append(_right("  Difference:", format_cents(diff)))

    lines.extend([THIN_RULE, _right("TOTAL DIFFERENCE:", format_cents(rec.diff_total_cents))])
    lines.append(_center("BALANCED" if rec.is_balanced else "*** MISMATCH ***"))
    if session.notes:
        lines.append(f"Notes: {session.notes}")
    lines.append(RULE)

    return ReceiptDocument(title=f"cash-session-{session.id}", lines=lines)


# =============================================================================
# EMISSION
# =============================================================================

class FileReceiptEmitter:
    """Writes each document to <directory>/<title>-<timestamp>.txt."""

    def __init__(self, directory: str):
        self.directory = directory

    def emit(self, document: ReceiptDocument) -> str:
        os.makedirs(self.directory, exist_ok=True)
        stamp = utcnow().strftime("%Y%m%dT%H%M%S%f")
        path = os.path.join(self.directory, f"{document.title}-{stamp}.txt")
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(document.text)
        return path


def default_emitter() -> FileReceiptEmitter:
    return FileReceiptEmitter(current_app.config.get("RECEIPT_OUTPUT_DIR", "receipts"))


def print_receipt(
    sale: Sale,
    emitter=None,
    *,
    business_name: str | None = None,
    received_cents: int | None = None,
    change_cents: int | None = None,
) -> bool:
    """
    Render and emit a sale receipt.

    Returns False (and logs) when the emitter fails; the sale is untouched.
    """
    emitter = emitter or default_emitter()
    document = render_receipt(
        sale,
        business_name=business_name,
        received_cents=received_cents,
        change_cents=change_cents,
    )
    try:
        emitter.emit(document)
    except Exception:
        current_app.logger.warning("Receipt for sale %s could not be emitted", sale.id, exc_info=True)
        return False
    return True


def print_cash_session_report(session: CashSession, emitter=None) -> bool:
    emitter = emitter or default_emitter()
    document = render_cash_session_report(session)
    try:
        emitter.emit(document)
    except Exception:
        current_app.logger.warning("Report for cash session %s could not be emitted", session.id, exc_info=True)
        return False
    return True
