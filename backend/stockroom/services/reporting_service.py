# Overview: Read-only views derived from products, sales and purchase orders.

from __future__ import annotations

from collections import OrderedDict
from datetime import date, timedelta

from sqlalchemy import func

from stockroom.extensions import db
from stockroom.models import Product, PurchaseOrder, Return, Sale
from stockroom.models.purchasing import PO_STATUS_PENDING
from stockroom.validation import ValidationError
from stockroom.time_utils import today, to_iso_date


GROUP_BY_CHOICES = ("day", "week", "month")


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""
    pass


def low_stock() -> list[Product]:
    """In stock but at or below the reorder level."""
    return (
        db.session.query(Product)
        .filter(Product.quantity > 0, Product.quantity <= Product.reorder_level)
        .order_by(Product.quantity.asc(), Product.name.asc())
        .all()
    )


def out_of_stock() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.quantity == 0)
        .order_by(Product.name.asc())
        .all()
    )


def top_products(*, limit: int = 5, start: date | None = None, end: date | None = None) -> list[dict]:
    if limit < 1:
        raise ReportError("limit must be at least 1")

    units = func.sum(Sale.quantity).label("units_sold")
    revenue = func.sum(Sale.total_amount_cents).label("revenue_cents")
    query = (
        db.session.query(Product.id, Product.name, Product.sku, units, revenue)
        .join(Sale, Sale.product_id == Product.id)
    )
    if start:
        query = query.filter(Sale.date_sold >= start)
    if end:
        query = query.filter(Sale.date_sold <= end)

    rows = (
        query.group_by(Product.id, Product.name, Product.sku)
        .order_by(units.desc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.id,
            "name": row.name,
            "sku": row.sku,
            "units_sold": int(row.units_sold or 0),
            "revenue_cents": int(row.revenue_cents or 0),
        }
        for row in rows
    ]


def _period_key(d: date, group_by: str) -> str:
    if group_by == "day":
        return d.isoformat()
    if group_by == "week":
        year, week, _ = d.isocalendar()
        return f"{year}-W{week:02d}"
    return f"{d.year}-{d.month:02d}"


def sales_by_period(
    *,
    start: date | None = None,
    end: date | None = None,
    group_by: str = "day",
) -> dict:
    """
    Sales totals bucketed by date_sold.

    Aggregates per day in SQL, then folds days into ISO weeks or months so
    the query stays portable across databases.
    """
    if group_by not in GROUP_BY_CHOICES:
        raise ReportError("group_by must be day, week, or month")
    if start and end and start > end:
        raise ReportError("start must be on or before end")

    query = db.session.query(
        Sale.date_sold,
        func.count(Sale.id).label("sales_count"),
        func.coalesce(func.sum(Sale.quantity), 0).label("items_sold"),
        func.coalesce(func.sum(Sale.total_amount_cents), 0).label("total_amount_cents"),
    )
    if start:
        query = query.filter(Sale.date_sold >= start)
    if end:
        query = query.filter(Sale.date_sold <= end)
    rows = query.group_by(Sale.date_sold).order_by(Sale.date_sold.asc()).all()

    buckets: "OrderedDict[str, dict]" = OrderedDict()
    for row in rows:
        key = _period_key(row.date_sold, group_by)
        bucket = buckets.setdefault(
            key, {"period": key, "sales_count": 0, "items_sold": 0, "total_amount_cents": 0}
        )
        bucket["sales_count"] += int(row.sales_count or 0)
        bucket["items_sold"] += int(row.items_sold or 0)
        bucket["total_amount_cents"] += int(row.total_amount_cents or 0)

    return {
        "group_by": group_by,
        "start": to_iso_date(start),
        "end": to_iso_date(end),
        "rows": list(buckets.values()),
    }


def weekly_sales(*, weeks_back: int = 0) -> dict:
    """Seven zero-filled days (Monday first) of the requested calendar week."""
    if weeks_back < 0:
        raise ReportError("weeks_back cannot be negative")
    monday = today() - timedelta(days=today().weekday(), weeks=weeks_back)
    sunday = monday + timedelta(days=6)

    totals = dict(
        db.session.query(Sale.date_sold, func.sum(Sale.total_amount_cents))
        .filter(Sale.date_sold >= monday, Sale.date_sold <= sunday)
        .group_by(Sale.date_sold)
        .all()
    )
    days = []
    for offset in range(7):
        d = monday + timedelta(days=offset)
        days.append({
            "date": d.isoformat(),
            "day": d.strftime("%a"),
            "total_amount_cents": int(totals.get(d) or 0),
        })
    return {
        "week_start": monday.isoformat(),
        "week_end": sunday.isoformat(),
        "days": days,
        "total_amount_cents": sum(day["total_amount_cents"] for day in days),
    }


def inventory_summary() -> dict:
    stock = db.session.query(
        func.count(Product.id),
        func.coalesce(func.sum(Product.quantity), 0),
        func.coalesce(func.sum(Product.quantity * Product.cost_price_cents), 0),
        func.coalesce(func.sum(Product.quantity * Product.retail_price_cents), 0),
    ).one()

    low_count = db.session.query(func.count(Product.id)).filter(
        Product.quantity > 0, Product.quantity <= Product.reorder_level
    ).scalar()
    out_count = db.session.query(func.count(Product.id)).filter(Product.quantity == 0).scalar()
    pending_orders = db.session.query(func.count(PurchaseOrder.id)).filter(
        PurchaseOrder.status == PO_STATUS_PENDING
    ).scalar()
    refunds = db.session.query(func.coalesce(func.sum(Return.refund_amount_cents), 0)).scalar()
    revenue = db.session.query(func.coalesce(func.sum(Sale.total_amount_cents), 0)).scalar()

    return {
        "product_count": int(stock[0] or 0),
        "total_units": int(stock[1] or 0),
        "stock_value_cost_cents": int(stock[2] or 0),
        "stock_value_retail_cents": int(stock[3] or 0),
        "low_stock_count": int(low_count or 0),
        "out_of_stock_count": int(out_count or 0),
        "pending_purchase_orders": int(pending_orders or 0),
        "gross_sales_cents": int(revenue or 0),
        "refunds_cents": int(refunds or 0),
        "net_sales_cents": int(revenue or 0) - int(refunds or 0),
    }
