from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class TableOrder(db.Model):
    """
    Open tab for a physical table.

    WHY: Restaurant orders accumulate over time before payment. The tab is
    mutable while open and never touches inventory; stock is committed only
    when the tab is checked out into a Sale.

    LIFECYCLE:
    - open: items can be added, changed and removed
    - closed: terminal. Checked out when a Sale references the order,
      cancelled otherwise.
    """
    __tablename__ = "table_orders"
    __table_args__ = (
        # One open order per table number
        db.Index(
            "uq_table_orders_open_table",
            "table_number",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.CheckConstraint("table_number >= 1", name="ck_table_orders_table_number_positive"),
        {"sqlite_autoincrement": True},
    )

    STATUS_OPEN = "open"
    STATUS_CLOSED = "closed"

    id = db.Column(db.Integer, primary_key=True)
    table_number = db.Column(db.Integer, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_OPEN, index=True)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=True, index=True)

    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    items = db.relationship(
        "TableOrderItem",
        backref="table_order",
        lazy="selectin",
        order_by="TableOrderItem.id",
        cascade="all, delete-orphan",
    )
    sale = db.relationship("Sale", backref="table_order", uselist=False, lazy="selectin")

    @property
    def is_open(self) -> bool:
        return self.status == self.STATUS_OPEN

    @property
    def outcome(self) -> str | None:
        if self.is_open:
            return None
        return "checked_out" if self.sale is not None else "cancelled"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_number": self.table_number,
            "status": self.status,
            "outcome": self.outcome,
            "subtotal_cents": self.subtotal_cents,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "opened_by_user_id": self.opened_by_user_id,
            "opened_by_username": self.opened_by.username if self.opened_by else None,
            "cash_session_id": self.cash_session_id,
            "sale_id": self.sale.id if self.sale is not None else None,
            "items": [item.to_dict() for item in self.items],
        }


class TableOrderItem(db.Model):
    """Line on an open tab. Discarded once checkout copies it into a SaleItem."""
    __tablename__ = "table_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_table_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    table_order_id = db.Column(db.Integer, db.ForeignKey("table_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "table_order_id": self.table_order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "subtotal_cents": self.subtotal_cents,
            "created_at": to_utc_z(self.created_at),
        }
