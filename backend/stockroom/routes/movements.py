# Overview: Flask API routes for the stock movement log and manual adjustments.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DOMAIN_ERRORS, error_response
from ..models import Movement
from ..services import ledger_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_movement,
    ValidationError,
)

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "qty_change", "reason"},
    required_on_create={"product_id", "qty_change", "reason"},
)

movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


@movements_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements():
    """Newest first. Query params: product_id, limit (max 500)."""
    limit = min(request.args.get("limit", default=500, type=int) or 500, 500)
    movements = ledger_service.list_movements(
        product_id=request.args.get("product_id", type=int),
        limit=limit,
    )
    return {"items": [m.to_dict(include_product=True) for m in movements]}


@movements_bp.post("")
@require_auth
@require_permission("ADJUST_INVENTORY")
def create_movement():
    """
    Manual stock adjustment.

    Body: {product_id, qty_change (signed, non-zero), reason}
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Movement, payload=payload, policy=MOVEMENT_POLICY, partial=False)
        enforce_rules_movement(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movement = ledger_service.record_adjustment(
            product_id=patch["product_id"],
            qty_change=patch["qty_change"],
            reason=patch["reason"],
            actor_user_id=g.current_user.id,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return movement.to_dict(include_product=True), 201
