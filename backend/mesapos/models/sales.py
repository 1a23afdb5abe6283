from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Immutable sale record.

    WHY: Every revenue or inventory effect is recorded here exactly once.
    The only permitted mutation is the void annotation (voided_at,
    voided_by_user_id, void_reason); voided sales stay for audit.

    INVARIANTS:
    - total_cents == sum(items.subtotal_cents), except house sales where total_cents == 0
    - cash_amount_cents + card_amount_cents + transfer_amount_cents == total_cents
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_created_at", "created_at"),
        db.Index("ix_sales_session_created", "cash_session_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    total_cents = db.Column(db.Integer, nullable=False)

    # Business date of the sale
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=True, index=True)
    table_order_id = db.Column(db.Integer, db.ForeignKey("table_orders.id"), nullable=True, index=True)

    payment_method = db.Column(db.String(16), nullable=False, default="cash", index=True)  # cash, card, transfer, mixed
    sale_type = db.Column(db.String(16), nullable=False, default="normal", index=True)  # normal, house

    # Payment split per channel (sums to total_cents)
    cash_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    card_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    transfer_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    # Void audit trail
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("sales", lazy=True))
    voided_by = db.relationship("User", foreign_keys=[voided_by_user_id])
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy="selectin",
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    @property
    def is_house(self) -> bool:
        return self.sale_type == "house"

    def to_dict(self, include_items: bool = True) -> dict:
        d = {
            "id": self.id,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "cash_session_id": self.cash_session_id,
            "table_order_id": self.table_order_id,
            "payment_method": self.payment_method,
            "sale_type": self.sale_type,
            "cash_amount_cents": self.cash_amount_cents,
            "card_amount_cents": self.card_amount_cents,
            "transfer_amount_cents": self.transfer_amount_cents,
            "notes": self.notes,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "void_reason": self.void_reason,
        }
        if include_items:
            d["items"] = [item.to_dict() for item in self.items]
        return d


class SaleItem(db.Model):
    """
    Line item of a sale.

    product_name and price_cents are snapshots taken at sale time so later
    catalog edits never alter historical receipts.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "subtotal_cents": self.subtotal_cents,
        }
