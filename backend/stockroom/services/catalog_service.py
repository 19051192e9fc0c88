# backend/stockroom/services/catalog_service.py
"""
Catalog Service

Products, categories and suppliers. Product.quantity is not writable here
after creation: opening stock is recorded as an "Initial stock" movement and
every later change goes through the stock ledger.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category, Movement, Product, PurchaseOrder, Return, Sale, Supplier
from ..validation import ConflictError, ValidationError
from .concurrency import run_with_retry
from .ledger_service import apply_stock_change, ProductNotFoundError

PRODUCT_MUTABLE_FIELDS = {
    "sku",
    "name",
    "category_id",
    "supplier_id",
    "cost_price_cents",
    "retail_price_cents",
    "reorder_level",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _check_references(patch: dict) -> None:
    category_id = patch.get("category_id")
    if category_id is not None and db.session.get(Category, category_id) is None:
        raise ValidationError(f"Category {category_id} not found")
    supplier_id = patch.get("supplier_id")
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise ValidationError(f"Supplier {supplier_id} not found")


def _check_sku_available(sku: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SKU already exists: {sku}")


# =============================================================================
# CATEGORIES / SUPPLIERS
# =============================================================================

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def create_category(*, name: str) -> Category:
    if db.session.query(Category.id).filter(Category.name == name).first() is not None:
        raise ConflictError(f"Category already exists: {name}")
    category = Category(name=name)
    db.session.add(category)
    db.session.commit()
    return category


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.name.asc()).all()


def create_supplier(*, patch: dict) -> Supplier:
    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


# =============================================================================
# PRODUCTS
# =============================================================================

def list_products(
    *,
    name: str | None = None,
    sku: str | None = None,
    category_id: int | None = None,
    supplier_id: int | None = None,
) -> list[Product]:
    """Newest first; filters are exact matches like the dashboard's lookups."""
    q = db.session.query(Product)
    if name:
        q = q.filter(Product.name == name)
    if sku:
        q = q.filter(Product.sku == sku)
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    if supplier_id is not None:
        q = q.filter(Product.supplier_id == supplier_id)
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def create_product(*, patch: dict, actor_user_id: int | None = None) -> Product:
    """
    Create product using a validated patch dict.

    A non-zero opening quantity is booked through the ledger so the
    movement log accounts for every unit on hand.
    """
    def _op():
        _check_sku_available(patch["sku"])
        _check_references(patch)

        opening_quantity = patch.get("quantity") or 0
        product = Product(quantity=0)
        apply_product_patch(product, patch)
        if product.reorder_level is None:
            product.reorder_level = 0
        db.session.add(product)
        db.session.flush()

        if opening_quantity:
            apply_stock_change(
                product.id,
                opening_quantity,
                "Initial stock",
                entity_type="product",
                entity_id=product.id,
                actor_user_id=actor_user_id,
            )

        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, patch: dict) -> Product:
    def _op():
        product = get_product(product_id)
        if "sku" in patch:
            _check_sku_available(patch["sku"], exclude_id=product.id)
        _check_references(patch)
        apply_product_patch(product, patch)
        db.session.commit()
        return product

    return run_with_retry(_op)


def _is_referenced(product_id: int) -> bool:
    for model in (Sale, Return, PurchaseOrder, Movement):
        if db.session.query(model.id).filter(model.product_id == product_id).first() is not None:
            return True
    return False


def delete_product(product_id: int) -> None:
    """
    Delete a product that has no recorded history.

    Raises ConflictError when sales, returns, purchase orders or stock
    movements reference it.
    """
    product = get_product(product_id)
    if _is_referenced(product.id):
        raise ConflictError("Product has recorded history and cannot be deleted")

    try:
        db.session.delete(product)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product has recorded history and cannot be deleted")
