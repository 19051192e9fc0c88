# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/stockroom/routes/sales.py
"""
Sales API routes

POST /api/sales records one sale: the sale row, the stock decrement and the
movement entry are committed together. POST /api/sales/batch records each
item independently and reports how many succeeded.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DOMAIN_ERRORS, error_response
from ..models import Sale
from ..services import sales_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_sale,
    ValidationError,
)
from stockroom.time_utils import parse_iso_date

SALE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "date_sold", "store"},
    required_on_create={"product_id", "quantity"},
)

MAX_BATCH_ITEMS = 500

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _validate_sale(payload) -> dict:
    patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=False)
    enforce_rules_sale(patch)
    return patch


def _date_arg(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date (YYYY-MM-DD)")


@sales_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_sales():
    """Query params: start, end (YYYY-MM-DD), product_id, limit (max 500)."""
    try:
        start = _date_arg("start")
        end = _date_arg("end")
    except ValidationError as e:
        return {"error": str(e)}, 400

    limit = min(request.args.get("limit", default=500, type=int) or 500, 500)
    sales = sales_service.list_sales(
        start=start,
        end=end,
        product_id=request.args.get("product_id", type=int),
        limit=limit,
    )
    return {"items": [s.to_dict(include_product=True) for s in sales]}


@sales_bp.post("")
@require_auth
@require_permission("RECORD_SALE")
def create_sale():
    """
    Record a sale.

    Body: {product_id, quantity, date_sold?, store?}
    Returns 409 with the available quantity when stock is insufficient.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = _validate_sale(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        sale = sales_service.record_sale(
            product_id=patch["product_id"],
            quantity=patch["quantity"],
            date_sold=patch.get("date_sold"),
            store=patch.get("store"),
            actor_user_id=g.current_user.id,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return sale.to_dict(include_product=True), 201


@sales_bp.post("/batch")
@require_auth
@require_permission("RECORD_SALE")
def create_sales_batch():
    """
    Body: {items: [{product_id, quantity, date_sold?, store?}, ...]}

    Items that fail validation are reported alongside items that fail to
    record; neither stops the others.
    """
    payload = request.get_json(silent=True) or {}
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        return {"error": "items must be a non-empty list"}, 400
    if len(items) > MAX_BATCH_ITEMS:
        return {"error": f"items cannot exceed {MAX_BATCH_ITEMS} entries"}, 400

    results = []
    valid = []
    for index, item in enumerate(items):
        try:
            valid.append((index, _validate_sale(item)))
        except ValidationError as e:
            results.append({"index": index, "ok": False, "error": str(e)})

    outcome = sales_service.record_sales_batch(
        [patch for _, patch in valid],
        actor_user_id=g.current_user.id,
    )
    for (index, _), result in zip(valid, outcome["results"]):
        result["index"] = index
        results.append(result)
    results.sort(key=lambda r: r["index"])

    succeeded = outcome["succeeded"]
    return {
        "succeeded": succeeded,
        "failed": len(items) - succeeded,
        "results": results,
    }, 200
