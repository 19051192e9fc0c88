# Overview: Stock ledger; the only code path that changes Product.quantity.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Movement, Product
from ..validation import ValidationError
from .concurrency import lock_for_update, run_with_retry
"""
Stock Ledger Invariants (authoritative)

- Product.quantity is on-hand stock; Movement rows justify every change to it.
- apply_stock_change() updates the quantity AND appends exactly one Movement
  inside the caller's transaction. It never commits on its own.
- A change that would take quantity below zero fails with
  InsufficientStockError before anything is written.
- delta == 0 is rejected; it would only produce a vacuous audit entry.
- Movements are append-only (no updates/deletes).
"""

# Derived reasons ("Return: ...") are cut to fit the column
MOVEMENT_REASON_MAX_LENGTH = Movement.__table__.c.reason.type.length


class ProductNotFoundError(Exception):
    """Raised when a referenced product does not exist."""
    pass


class InsufficientStockError(Exception):
    """Raised when a change would drive on-hand quantity below zero."""

    def __init__(self, product: Product, requested: int):
        self.product_id = product.id
        self.available = product.quantity
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {product.name}. Only {product.quantity} units available."
        )


def get_product_for_update(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def apply_stock_change(
    product_id: int,
    delta: int,
    reason: str,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    actor_user_id: int | None = None,
) -> int:
    """
    Apply a signed quantity delta to a product and record the movement.

    Runs inside the caller's unit of work (flush only). Returns the new
    on-hand quantity.

    Raises:
        ValidationError: delta is zero or not an integer
        ProductNotFoundError: product does not exist
        InsufficientStockError: quantity would go negative
    """
    movement = _append_movement(
        product_id,
        delta,
        reason,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
    )
    return movement.product.quantity


def _append_movement(
    product_id: int,
    delta: int,
    reason: str,
    *,
    entity_type: str | None,
    entity_id: int | None,
    actor_user_id: int | None,
) -> Movement:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")
    if delta == 0:
        raise ValidationError("delta must be non-zero")

    product = get_product_for_update(product_id)

    new_quantity = product.quantity + delta
    if new_quantity < 0:
        raise InsufficientStockError(product, -delta)

    product.quantity = new_quantity
    movement = Movement(
        product=product,
        product_id=product.id,
        qty_change=delta,
        reason=reason[:MOVEMENT_REASON_MAX_LENGTH],
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
    )
    db.session.add(movement)
    db.session.flush()

    current_app.logger.info(
        "Movement recorded: product %s changed by %+d, new quantity %d (%s)",
        product.id, delta, new_quantity, reason,
    )
    return movement


def record_adjustment(
    *,
    product_id: int,
    qty_change: int,
    reason: str,
    actor_user_id: int | None = None,
) -> Movement:
    """
    Manual stock adjustment (count corrections, shrink, found stock).

    Standalone unit of work: commits on success.
    """
    def _op():
        movement = _append_movement(
            product_id,
            qty_change,
            reason,
            entity_type=None,
            entity_id=None,
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements(*, product_id: int | None = None, limit: int = 500) -> list[Movement]:
    q = db.session.query(Movement)
    if product_id is not None:
        q = q.filter(Movement.product_id == product_id)
    return q.order_by(Movement.created_at.desc(), Movement.id.desc()).limit(limit).all()
