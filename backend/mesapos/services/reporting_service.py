# Overview: Read-only sales rollups by period, vendor, product and hour.

"""
Reporting invariants

- Reports never write; they are derived from sales and sale items only.
- Voided sales are excluded everywhere.
- Ranges are inclusive on both ends: start <= created_at <= end.
- Channel totals come from the stored payment split of each sale, so a
  mixed sale contributes to both cash and transfer.
- House sales carry no revenue. They are counted separately in the period
  report and contribute quantities (not revenue) to the product report.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, case, cast, func

from ..extensions import db
from ..models import Sale, SaleItem, User
from ..time_utils import coerce_datetime, to_utc_z
from ..validation import ValidationError


def _parse_range(start, end) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = coerce_datetime(start)
        end_dt = coerce_datetime(end)
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def _filter_range(query, start_dt, end_dt):
    query = query.filter(Sale.voided_at.is_(None))
    if start_dt:
        query = query.filter(Sale.created_at >= start_dt)
    if end_dt:
        query = query.filter(Sale.created_at <= end_dt)
    return query


def _range_dict(start_dt, end_dt) -> dict:
    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
    }


def get_report_by_period(start=None, end=None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    is_normal = Sale.sale_type == "normal"
    query = db.session.query(
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_sales_cents"),
        func.coalesce(func.sum(case((is_normal, 1), else_=0)), 0).label("sales_count"),
        func.coalesce(func.sum(case((is_normal, 0), else_=1)), 0).label("house_count"),
        func.coalesce(func.sum(Sale.cash_amount_cents), 0).label("cash_total_cents"),
        func.coalesce(func.sum(Sale.card_amount_cents), 0).label("card_total_cents"),
        func.coalesce(func.sum(Sale.transfer_amount_cents), 0).label("transfer_total_cents"),
    )
    row = _filter_range(query, start_dt, end_dt).one()

    return {
        **_range_dict(start_dt, end_dt),
        "total_sales_cents": int(row.total_sales_cents or 0),
        "sales_count": int(row.sales_count or 0),
        "house_count": int(row.house_count or 0),
        "cash_total_cents": int(row.cash_total_cents or 0),
        "card_total_cents": int(row.card_total_cents or 0),
        "transfer_total_cents": int(row.transfer_total_cents or 0),
    }


def get_report_by_vendor(start=None, end=None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(
        User.id.label("user_id"),
        User.username.label("username"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
        func.count(Sale.id).label("count"),
    ).select_from(Sale).join(User, User.id == Sale.user_id).filter(Sale.sale_type == "normal")

    rows = _filter_range(query, start_dt, end_dt).group_by(
        User.id, User.username
    ).order_by(func.sum(Sale.total_cents).desc()).all()

    return {
        **_range_dict(start_dt, end_dt),
        "rows": [
            {
                "user_id": row.user_id,
                "username": row.username,
                "total_cents": int(row.total_cents or 0),
                "count": int(row.count or 0),
            }
            for row in rows
        ],
    }


def get_report_by_product(start=None, end=None, limit: int = 10) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    if limit is not None and limit < 1:
        raise ValidationError("limit must be >= 1")

    revenue = case((Sale.sale_type == "normal", SaleItem.subtotal_cents), else_=0)
    query = db.session.query(
        SaleItem.product_id.label("product_id"),
        func.max(SaleItem.product_name).label("name"),
        func.coalesce(func.sum(SaleItem.quantity), 0).label("quantity"),
        func.coalesce(func.sum(revenue), 0).label("total_cents"),
    ).join(Sale, Sale.id == SaleItem.sale_id)

    query = _filter_range(query, start_dt, end_dt).group_by(SaleItem.product_id).order_by(
        func.sum(SaleItem.quantity).desc(), SaleItem.product_id.asc()
    )
    if limit:
        query = query.limit(limit)

    return {
        **_range_dict(start_dt, end_dt),
        "rows": [
            {
                "product_id": row.product_id,
                "name": row.name,
                "quantity": int(row.quantity or 0),
                "total_cents": int(row.total_cents or 0),
            }
            for row in query.all()
        ],
    }


def get_report_by_hour(start=None, end=None) -> dict:
    """Sales grouped by hour of day (UTC), busiest first."""
    start_dt, end_dt = _parse_range(start, end)

    hour_expr = cast(func.strftime("%H", Sale.created_at), Integer)
    query = db.session.query(
        hour_expr.label("hour"),
        func.count(Sale.id).label("count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
    ).filter(Sale.sale_type == "normal")

    rows = _filter_range(query, start_dt, end_dt).group_by("hour").order_by(
        func.sum(Sale.total_cents).desc(), "hour"
    ).all()

    return {
        **_range_dict(start_dt, end_dt),
        "rows": [
            {
                "hour": int(row.hour),
                "count": int(row.count or 0),
                "total_cents": int(row.total_cents or 0),
            }
            for row in rows
        ],
    }
