# Overview: Flask API routes for stock and sales reports.

# backend/stockroom/routes/reports.py
"""
Reporting API routes

Read-only views; none of them change stock.

Endpoints:
- GET /api/reports/low-stock          0 < quantity <= reorder_level
- GET /api/reports/out-of-stock       quantity == 0
- GET /api/reports/top-products       ?limit=5&start=&end=
- GET /api/reports/sales              ?start=&end=&group_by=day|week|month
- GET /api/reports/weekly-sales       ?weeks_back=0
- GET /api/reports/summary            stock value and counts
"""

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from ..validation import ValidationError
from stockroom.time_utils import parse_iso_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _date_range() -> tuple:
    dates = []
    for name in ("start", "end"):
        try:
            dates.append(parse_iso_date(request.args.get(name)))
        except ValueError:
            raise ValidationError(f"{name} must be an ISO-8601 date (YYYY-MM-DD)")
    return dates[0], dates[1]


@reports_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_REPORTS")
def low_stock_report():
    products = reporting_service.low_stock()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@reports_bp.get("/out-of-stock")
@require_auth
@require_permission("VIEW_REPORTS")
def out_of_stock_report():
    products = reporting_service.out_of_stock()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@reports_bp.get("/top-products")
@require_auth
@require_permission("VIEW_REPORTS")
def top_products_report():
    limit = request.args.get("limit", default=5, type=int)
    try:
        start, end = _date_range()
        items = reporting_service.top_products(limit=min(limit, 100), start=start, end=end)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": items}


@reports_bp.get("/sales")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_report():
    try:
        start, end = _date_range()
        report = reporting_service.sales_by_period(
            start=start,
            end=end,
            group_by=request.args.get("group_by", "day"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return report


@reports_bp.get("/weekly-sales")
@require_auth
@require_permission("VIEW_REPORTS")
def weekly_sales_report():
    weeks_back = request.args.get("weeks_back", default=0, type=int)
    try:
        report = reporting_service.weekly_sales(weeks_back=weeks_back)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return report


@reports_bp.get("/summary")
@require_auth
@require_permission("VIEW_REPORTS")
def summary_report():
    return reporting_service.inventory_summary()
