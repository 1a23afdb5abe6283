"""
Cash Session Service

WHY: Cashier accountability. A session brackets one drawer shift: opening
float in, per-channel sales totals accumulated as sales post, declared
counts captured at close.

DESIGN PRINCIPLES:
- At most one open session process-wide (checked at open time)
- The open session is always found by query, never cached in memory
- Totals are additive only and can only be posted to an open session
- Sessions are immutable once closed and never reopened or deleted
- Reconciliation (declared - expected) is derived on read, never stored
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import (
    NoCashSessionOpenError,
    SessionAlreadyClosedError,
    SessionAlreadyOpenError,
    SessionNotFoundError,
)
from ..models import CashSession, Sale
from ..time_utils import utcnow
from ..validation import ValidationError
from .concurrency import atomic, lock_for_update, run_with_retry


@dataclass(frozen=True)
class Reconciliation:
    expected_cash_cents: int
    expected_card_cents: int
    expected_transfer_cents: int
    declared_cash_cents: int
    declared_card_cents: int
    declared_transfer_cents: int
    diff_cash_cents: int
    diff_card_cents: int
    diff_transfer_cents: int
    diff_total_cents: int
    is_balanced: bool

    def to_dict(self) -> dict:
        return asdict(self)


def reconcile(session: CashSession) -> Reconciliation:
    """
    Declared vs expected per channel.

    expected cash     = opening float + cash sales
    expected card     = card sales
    expected transfer = transfer sales

    A missing declaration counts as 0 so an open session shows what the
    drawer should hold right now as a shortage.
    """
    expected_cash = session.opening_cash_cents + session.sales_cash_total_cents
    expected_card = session.sales_card_total_cents
    expected_transfer = session.sales_transfer_total_cents

    declared_cash = session.declared_cash_cents or 0
    declared_card = session.declared_card_cents or 0
    declared_transfer = session.declared_transfer_cents or 0

    diff_cash = declared_cash - expected_cash
    diff_card = declared_card - expected_card
    diff_transfer = declared_transfer - expected_transfer

    return Reconciliation(
        expected_cash_cents=expected_cash,
        expected_card_cents=expected_card,
        expected_transfer_cents=expected_transfer,
        declared_cash_cents=declared_cash,
        declared_card_cents=declared_card,
        declared_transfer_cents=declared_transfer,
        diff_cash_cents=diff_cash,
        diff_card_cents=diff_card,
        diff_transfer_cents=diff_transfer,
        diff_total_cents=diff_cash + diff_card + diff_transfer,
        is_balanced=diff_cash == 0 and diff_card == 0 and diff_transfer == 0,
    )


def session_to_dict(session: CashSession) -> dict:
    """Serialized session with its derived reconciliation."""
    d = session.to_dict()
    d["reconciliation"] = reconcile(session).to_dict()
    return d


# =============================================================================
# QUERIES
# =============================================================================

def find_open_session() -> CashSession | None:
    """The currently open session, if any."""
    return db.session.query(CashSession).filter(
        CashSession.closed_at.is_(None)
    ).order_by(CashSession.id.desc()).first()


def require_open_session() -> CashSession:
    session = find_open_session()
    if session is None:
        raise NoCashSessionOpenError()
    return session


def get_cash_session_by_id(session_id: int) -> CashSession:
    session = db.session.get(CashSession, session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


def list_cash_sessions(limit: int = 50) -> list[CashSession]:
    """Most recent sessions first."""
    limit = max(1, min(int(limit or 50), 500))
    return db.session.query(CashSession).order_by(
        CashSession.opened_at.desc(), CashSession.id.desc()
    ).limit(limit).all()


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_cash_session(opening_cash_cents: int, user_id: int) -> CashSession:
    """
    Open a new drawer session.

    Raises:
        ValidationError: negative opening float or missing user
        SessionAlreadyOpenError: another session is still open
    """
    if opening_cash_cents is None or opening_cash_cents < 0:
        raise ValidationError("opening_cash_cents must be >= 0")
    if user_id is None:
        raise ValidationError("user_id is required")

    def _op():
        with atomic():
            existing_open = lock_for_update(
                db.session.query(CashSession).filter(CashSession.closed_at.is_(None))
            ).first()
            if existing_open:
                raise SessionAlreadyOpenError(existing_open.id)

            session = CashSession(
                opened_by_user_id=user_id,
                opening_cash_cents=opening_cash_cents,
                sales_cash_total_cents=0,
                sales_card_total_cents=0,
                sales_transfer_total_cents=0,
                opened_at=utcnow(),
            )
            db.session.add(session)
        return session

    session = run_with_retry(_op)
    current_app.logger.info(
        "Cash session %s opened by user %s with %s cents", session.id, user_id, opening_cash_cents
    )
    return session


def post_sale_to_session(session_id: int, split) -> None:
    """
    Add a sale's payment split into the session accumulators.

    Called by the sale ledger inside its unit of work; never commits. The
    update only matches an open session, so a sale can never land on a
    session that was closed in the meantime.
    """
    result = db.session.execute(
        update(CashSession)
        .where(CashSession.id == session_id, CashSession.closed_at.is_(None))
        .values(
            sales_cash_total_cents=CashSession.sales_cash_total_cents + split.cash_cents,
            sales_card_total_cents=CashSession.sales_card_total_cents + split.card_cents,
            sales_transfer_total_cents=CashSession.sales_transfer_total_cents + split.transfer_cents,
        )
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 1:
        return

    session = db.session.get(CashSession, session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    raise SessionAlreadyClosedError(session_id)


def close_cash_session(
    session_id: int,
    declared_cash_cents: int,
    declared_card_cents: int,
    declared_transfer_cents: int,
    user_id: int,
    notes: str | None = None,
) -> CashSession:
    """
    Close a session with the cashier's counted amounts.

    The reconciliation is not stored; read it with reconcile(session).
    """
    if user_id is None:
        raise ValidationError("user_id is required")

    for field, value in (
        ("declared_cash_cents", declared_cash_cents),
        ("declared_card_cents", declared_card_cents),
        ("declared_transfer_cents", declared_transfer_cents),
    ):
        if value is None or value < 0:
            raise ValidationError(f"{field} must be >= 0")

    def _op():
        with atomic():
            session = lock_for_update(
                db.session.query(CashSession).filter_by(id=session_id)
            ).first()
            if not session:
                raise SessionNotFoundError(session_id)
            if not session.is_open:
                raise SessionAlreadyClosedError(session_id)

            session.closed_at = utcnow()
            session.closed_by_user_id = user_id
            session.declared_cash_cents = declared_cash_cents
            session.declared_card_cents = declared_card_cents
            session.declared_transfer_cents = declared_transfer_cents
            session.notes = notes
        return session

    session = run_with_retry(_op)

    result = reconcile(session)
    log = current_app.logger.info if result.is_balanced else current_app.logger.warning
    log(
        "Cash session %s closed by user %s, difference %s cents",
        session.id, user_id, result.diff_total_cents,
    )
    return session


# =============================================================================
# REPORTING
# =============================================================================

def get_session_sales(session_id: int) -> list[Sale]:
    return db.session.query(Sale).filter_by(
        cash_session_id=session_id
    ).order_by(Sale.created_at, Sale.id).all()


def get_session_summary(session_id: int) -> dict:
    """
    Session details with reconciliation and sale counts.

    Voided sales still count toward the session totals (a void does not
    compensate), so they are reported separately for the cashier.
    sales_count and house_count include voided sales; voided_count is the
    subset of both that was voided.
    """
    session = get_cash_session_by_id(session_id)
    sales = get_session_sales(session_id)

    return {
        "session": session_to_dict(session),
        "sales_count": sum(1 for s in sales if not s.is_house),
        "house_count": sum(1 for s in sales if s.is_house),
        "voided_count": sum(1 for s in sales if s.is_voided),
        "voided_total_cents": sum(s.total_cents for s in sales if s.is_voided),
        "is_closed": not session.is_open,
    }
