# Overview: Pytest coverage for cash drawer sessions and reconciliation.

import pytest

from mesapos.errors import (
    NoCashSessionOpenError,
    SessionAlreadyClosedError,
    SessionAlreadyOpenError,
    SessionNotFoundError,
)
from mesapos.models import CashSession
from mesapos.services import cash_session_service, sales_service
from mesapos.services.sales_service import PaymentSplit, build_sale_item
from mesapos.validation import ValidationError


class TestSessionLifecycle:

    def test_open_session(self, db_session, admin_user):
        session = cash_session_service.open_cash_session(5000, admin_user.id)

        assert session.is_open
        assert session.opening_cash_cents == 5000
        assert session.sales_cash_total_cents == 0
        assert cash_session_service.find_open_session().id == session.id

    def test_only_one_open_session(self, db_session, admin_user, open_session):
        with pytest.raises(SessionAlreadyOpenError):
            cash_session_service.open_cash_session(0, admin_user.id)

        assert db_session.query(CashSession).filter(CashSession.closed_at.is_(None)).count() == 1

    def test_reopen_after_close(self, db_session, admin_user, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, 0, 0, admin_user.id)

        second = cash_session_service.open_cash_session(2000, admin_user.id)
        assert second.id != open_session.id

    def test_negative_opening_float(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            cash_session_service.open_cash_session(-1, admin_user.id)

    def test_require_open_session(self, db_session):
        with pytest.raises(NoCashSessionOpenError):
            cash_session_service.require_open_session()

    def test_close_twice(self, db_session, admin_user, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, 0, 0, admin_user.id)

        with pytest.raises(SessionAlreadyClosedError):
            cash_session_service.close_cash_session(open_session.id, 10000, 0, 0, admin_user.id)

    def test_close_unknown_session(self, db_session, admin_user):
        with pytest.raises(SessionNotFoundError):
            cash_session_service.close_cash_session(77, 0, 0, 0, admin_user.id)

    def test_close_rejects_negative_declaration(self, db_session, admin_user, open_session):
        with pytest.raises(ValidationError):
            cash_session_service.close_cash_session(open_session.id, 10000, -5, 0, admin_user.id)

    def test_close_requires_user(self, db_session, open_session):
        with pytest.raises(ValidationError):
            cash_session_service.close_cash_session(open_session.id, 10000, 0, 0, None)

        assert cash_session_service.find_open_session().id == open_session.id

    def test_post_to_closed_session(self, db_session, admin_user, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, 0, 0, admin_user.id)

        with pytest.raises(SessionAlreadyClosedError):
            cash_session_service.post_sale_to_session(open_session.id, PaymentSplit(cash_cents=100))
        db_session.rollback()

        db_session.expire_all()
        assert db_session.get(CashSession, open_session.id).sales_cash_total_cents == 0

    def test_post_to_missing_session(self, db_session):
        with pytest.raises(SessionNotFoundError):
            cash_session_service.post_sale_to_session(999, PaymentSplit(cash_cents=100))

    def test_list_sessions_most_recent_first(self, db_session, admin_user, open_session):
        cash_session_service.close_cash_session(open_session.id, 10000, 0, 0, admin_user.id)
        second = cash_session_service.open_cash_session(0, admin_user.id)

        sessions = cash_session_service.list_cash_sessions()
        assert [s.id for s in sessions] == [second.id, open_session.id]
        assert len(cash_session_service.list_cash_sessions(limit=1)) == 1


class TestReconciliation:

    def test_cash_shortage(self, db_session, admin_user, coffee, open_session):
        """Opening 100.00, cash sales 50.00, declared 140.00 -> cash diff -10.00."""
        sales_service.create_sale([build_sale_item(coffee, 5)], cash_session_id=open_session.id)

        session = cash_session_service.close_cash_session(open_session.id, 14000, 0, 0, admin_user.id)
        rec = cash_session_service.reconcile(session)

        assert rec.expected_cash_cents == 15000
        assert rec.diff_cash_cents == -1000
        assert rec.diff_total_cents == -1000
        assert rec.is_balanced is False

    def test_balanced_close(self, db_session, admin_user, coffee, open_session):
        """Opening 100.00; cash 30.00, card 20.00, transfer 10.00 -> declared exactly."""
        sales_service.create_sale([build_sale_item(coffee, 3)], payment_method="cash", cash_session_id=open_session.id)
        sales_service.create_sale([build_sale_item(coffee, 2)], payment_method="card", cash_session_id=open_session.id)
        sales_service.create_sale([build_sale_item(coffee, 1)], payment_method="transfer", cash_session_id=open_session.id)

        session = cash_session_service.close_cash_session(open_session.id, 13000, 2000, 1000, admin_user.id)
        rec = cash_session_service.reconcile(session)

        assert (rec.diff_cash_cents, rec.diff_card_cents, rec.diff_transfer_cents) == (0, 0, 0)
        assert rec.is_balanced is True

    def test_mismatch_is_flagged_per_channel(self, db_session, admin_user, coffee, open_session):
        sales_service.create_sale([build_sale_item(coffee, 2)], payment_method="card", cash_session_id=open_session.id)

        session = cash_session_service.close_cash_session(open_session.id, 10000, 1500, 200, admin_user.id)
        rec = cash_session_service.reconcile(session)

        assert rec.diff_cash_cents == 0
        assert rec.diff_card_cents == -500
        assert rec.diff_transfer_cents == 200
        assert rec.diff_total_cents == -300
        assert not rec.is_balanced

    def test_open_session_reconciles_against_zero(self, db_session, open_session):
        rec = cash_session_service.reconcile(open_session)
        assert rec.expected_cash_cents == 10000
        assert rec.declared_cash_cents == 0
        assert rec.diff_cash_cents == -10000

    def test_session_dict_carries_reconciliation(self, db_session, open_session):
        data = cash_session_service.session_to_dict(open_session)
        assert data["status"] == "open"
        assert data["reconciliation"]["expected_cash_cents"] == 10000


class TestSessionSummary:

    def test_summary_counts_include_voided(self, db_session, admin_user, coffee, open_session):
        kept = sales_service.create_sale([build_sale_item(coffee, 1)], cash_session_id=open_session.id)
        voided = sales_service.create_sale([build_sale_item(coffee, 2)], cash_session_id=open_session.id)
        sales_service.void_sale(voided.id, admin_user.id, "customer left")

        summary = cash_session_service.get_session_summary(open_session.id)

        assert summary["sales_count"] == 2
        assert summary["house_count"] == 0
        assert summary["voided_count"] == 1
        assert summary["voided_total_cents"] == 2000
        assert summary["is_closed"] is False
        assert summary["session"]["sales_cash_total_cents"] == kept.total_cents + voided.total_cents

    def test_summary_unknown_session(self, db_session):
        with pytest.raises(SessionNotFoundError):
            cash_session_service.get_session_summary(404)
