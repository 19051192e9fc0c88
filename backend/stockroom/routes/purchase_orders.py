# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

# backend/stockroom/routes/purchase_orders.py
"""
Purchase Order API routes

LIFECYCLE: pending -> received | cancelled (both terminal)

- Receiving credits the ordered quantity to stock exactly once
- Cancelling requires a reason (body: {"note": "..."})
- Invoice-wide status changes apply to every order on the invoice and skip
  orders already in the target status
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DOMAIN_ERRORS, error_response
from ..models import PurchaseOrder
from ..models.purchasing import PO_STATUSES
from ..services import purchase_order_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_purchase_order,
    ValidationError,
)

PURCHASE_ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "supplier_id",
        "quantity",
        "expected_delivery_date",
        "invoice_number",
        "notes",
        "store",
    },
    required_on_create={"product_id", "quantity", "expected_delivery_date"},
)

PURCHASE_ORDER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(purchase_order_service.PO_EDITABLE_FIELDS),
)

MAX_BATCH_ITEMS = 500

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


def _validate_order(payload) -> dict:
    patch = validate_payload(model=PurchaseOrder, payload=payload, policy=PURCHASE_ORDER_POLICY, partial=False)
    enforce_rules_purchase_order(patch)
    for field in ("invoice_number", "notes", "store"):
        if field in patch and patch[field] == "":
            patch[field] = None
    return patch


@purchase_orders_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_purchase_orders():
    """Query params: status, invoice_number, product_id, limit (max 500)."""
    status = request.args.get("status") or None
    if status is not None and status not in PO_STATUSES:
        return {"error": f"status must be one of: {', '.join(PO_STATUSES)}"}, 400

    limit = min(request.args.get("limit", default=500, type=int) or 500, 500)
    orders = purchase_order_service.list_purchase_orders(
        status=status,
        invoice_number=request.args.get("invoice_number") or None,
        product_id=request.args.get("product_id", type=int),
        limit=limit,
    )
    return {"items": [o.to_dict() for o in orders]}


@purchase_orders_bp.post("")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
def create_purchase_order_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = _validate_order(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        order = purchase_order_service.create_purchase_order(actor_user_id=g.current_user.id, **patch)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return order.to_dict(), 201


@purchase_orders_bp.post("/batch")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
def create_purchase_orders_batch_route():
    """Body: {items: [...]} ; each item is created in its own transaction."""
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
            valid.append((index, _validate_order(item)))
        except ValidationError as e:
            results.append({"index": index, "ok": False, "error": str(e)})

    outcome = purchase_order_service.create_purchase_orders_batch(
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


@purchase_orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_purchase_order_route(order_id: int):
    try:
        order = purchase_order_service.get_purchase_order(order_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return order.to_dict()


@purchase_orders_bp.patch("/<int:order_id>")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
def update_purchase_order_route(order_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=PurchaseOrder,
            payload=payload,
            policy=PURCHASE_ORDER_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_purchase_order(patch, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        order = purchase_order_service.update_purchase_order(order_id, patch)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return order.to_dict()


@purchase_orders_bp.post("/<int:order_id>/receive")
@require_auth
@require_permission("RECEIVE_PURCHASE_ORDERS")
def receive_purchase_order_route(order_id: int):
    """Receiving an already received order returns 200 with changed=false."""
    try:
        order, changed = purchase_order_service.receive_purchase_order(
            order_id,
            actor_user_id=g.current_user.id,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"purchase_order": order.to_dict(), "changed": changed}, 200


@purchase_orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
def cancel_purchase_order_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    note = payload.get("note")
    if note is not None and not isinstance(note, str):
        return {"error": "note must be a string"}, 400

    try:
        order, changed = purchase_order_service.cancel_purchase_order(order_id, note)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"purchase_order": order.to_dict(), "changed": changed}, 200


@purchase_orders_bp.post("/invoices/<path:invoice_number>/status")
@require_auth
@require_permission("MANAGE_PURCHASE_ORDERS")
def change_invoice_status_route(invoice_number: str):
    """
    Body: {status: "received" | "cancelled", note?}

    Receiving additionally requires RECEIVE_PURCHASE_ORDERS.
    """
    from ..permissions import has_permission

    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    note = payload.get("note")
    if note is not None and not isinstance(note, str):
        return {"error": "note must be a string"}, 400

    if status == "received" and not has_permission(g.current_user, "RECEIVE_PURCHASE_ORDERS"):
        return {
            "error": "Permission denied",
            "required_permission": "RECEIVE_PURCHASE_ORDERS",
        }, 403

    try:
        summary = purchase_order_service.change_invoice_status(
            invoice_number,
            status,
            note=note,
            actor_user_id=g.current_user.id,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return summary, 200
