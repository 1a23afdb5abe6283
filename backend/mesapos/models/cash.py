from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class CashSession(db.Model):
    """
    Cash drawer session (one cashier shift).

    LIFECYCLE:
    - OPEN: closed_at is NULL; sales post their payment split into sales_*_total_cents
    - CLOSED: closed_at set together with the declared (counted) amounts

    At most one session is open at a time. Closed sessions are never reopened,
    never modified and never deleted. Reconciliation (declared - expected) is
    derived on read and not stored.
    """
    __tablename__ = "cash_sessions"
    __table_args__ = (
        db.CheckConstraint("opening_cash_cents >= 0", name="ck_cash_sessions_opening_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Cash tracking (all amounts in cents)
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    declared_cash_cents = db.Column(db.Integer, nullable=True)
    declared_card_cents = db.Column(db.Integer, nullable=True)
    declared_transfer_cents = db.Column(db.Integer, nullable=True)

    # Running accumulators, additive only
    sales_cash_total_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_card_total_cents = db.Column(db.Integer, nullable=False, default=0)
    sales_transfer_total_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": "open" if self.is_open else "closed",
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "opened_by_user_id": self.opened_by_user_id,
            "opened_by_username": self.opened_by.username if self.opened_by else None,
            "closed_by_user_id": self.closed_by_user_id,
            "closed_by_username": self.closed_by.username if self.closed_by else None,
            "opening_cash_cents": self.opening_cash_cents,
            "declared_cash_cents": self.declared_cash_cents,
            "declared_card_cents": self.declared_card_cents,
            "declared_transfer_cents": self.declared_transfer_cents,
            "sales_cash_total_cents": self.sales_cash_total_cents,
            "sales_card_total_cents": self.sales_card_total_cents,
            "sales_transfer_total_cents": self.sales_transfer_total_cents,
            "notes": self.notes,
        }
