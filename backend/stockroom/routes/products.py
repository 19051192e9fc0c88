# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockroom/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission

quantity may be given once, on create, as opening stock. Afterwards it only
changes through sales, returns, receipts and /api/movements.
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import DOMAIN_ERRORS, error_response
from ..models import Product
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "category_id",
        "supplier_id",
        "cost_price_cents",
        "retail_price_cents",
        "quantity",
        "reorder_level",
    },
    required_on_create={"sku", "name", "cost_price_cents", "retail_price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"quantity"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List products, newest first.

    Query params (exact match): name, sku, category_id, supplier_id
    """
    products = catalog_service.list_products(
        name=request.args.get("name") or None,
        sku=request.args.get("sku") or None,
        category_id=request.args.get("category_id", type=int),
        supplier_id=request.args.get("supplier_id", type=int),
    )
    return {"items": [p.to_dict() for p in products]}


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = catalog_service.create_product(patch=patch, actor_user_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return created.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return product.to_dict()


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        if "quantity" in payload:
            return {"error": "quantity cannot be edited directly; record a stock movement instead"}, 400
        return {"error": str(e)}, 400

    try:
        product = catalog_service.update_product(product_id, patch)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    try:
        catalog_service.delete_product(product_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"ok": True}, 200
