# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/stockroom/routes/returns.py
"""
Returns API routes

A return puts units from a recorded sale back into stock and computes the
refund from the sale's own unit price. The total returned against a sale can
never exceed the quantity sold.
"""

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DOMAIN_ERRORS, error_response
from ..models import Return
from ..services import return_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_return,
    ValidationError,
)

RETURN_POLICY = ModelValidationPolicy(
    writable_fields={"sale_id", "quantity", "reason"},
    required_on_create={"sale_id", "quantity"},
)

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_returns():
    limit = min(request.args.get("limit", default=500, type=int) or 500, 500)
    returns = return_service.list_returns(
        sale_id=request.args.get("sale_id", type=int),
        limit=limit,
    )
    return {"items": [r.to_dict(include_sale=True) for r in returns]}


@returns_bp.post("")
@require_auth
@require_permission("PROCESS_RETURN")
def create_return():
    """
    Process a return.

    Body: {sale_id, quantity, reason?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Return, payload=payload, policy=RETURN_POLICY, partial=False)
        enforce_rules_return(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        ret = return_service.process_return(
            sale_id=patch["sale_id"],
            quantity=patch["quantity"],
            reason=patch.get("reason") or None,
            actor_user_id=g.current_user.id,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return ret.to_dict(include_sale=True), 201
