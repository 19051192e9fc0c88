# Overview: Flask API routes for categories and suppliers.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..errors import DOMAIN_ERRORS, error_response
from ..models import Category, Supplier
from ..services import catalog_service
from ..validation import ModelValidationPolicy, validate_payload, ValidationError

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_email", "contact_phone"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@categories_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_categories():
    return {"items": [c.to_dict() for c in catalog_service.list_categories()]}


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        category = catalog_service.create_category(name=patch["name"])
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return category.to_dict(), 201


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_suppliers():
    return {"items": [s.to_dict() for s in catalog_service.list_suppliers()]}


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    supplier = catalog_service.create_supplier(patch=patch)
    return supplier.to_dict(), 201
