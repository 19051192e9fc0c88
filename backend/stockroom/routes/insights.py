# Overview: Flask API routes relaying forecast and promotion requests.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..errors import error_response
from ..services import insights_service
from ..services.insights_service import UpstreamServiceError

insights_bp = Blueprint("insights", __name__, url_prefix="/api/insights")


@insights_bp.post("/forecast")
@require_auth
@require_permission("VIEW_INSIGHTS")
def forecast_route():
    """Sales forecast built from the last 90 days of sales."""
    try:
        return insights_service.generate_forecast(), 200
    except UpstreamServiceError as e:
        return error_response(e)


@insights_bp.post("/promotion")
@require_auth
@require_permission("VIEW_INSIGHTS")
def promotion_route():
    """
    Promotion recommendations for the current catalog.

    Body (optional): {context: {...}} forwarded to the generator as-is.
    """
    payload = request.get_json(silent=True) or {}
    context = payload.get("context")
    if context is not None and not isinstance(context, dict):
        return {"error": "context must be an object"}, 400

    try:
        return insights_service.generate_promotion(context=context), 200
    except UpstreamServiceError as e:
        return error_response(e)
