"""
Return Processing Service

WHY: A return puts stock back on the shelf and refunds the customer at the
price they actually paid. The refund is derived from the original sale
(total_amount_cents / quantity), never from the product's current price.

RULES:
- Returns reference the original Sale
- Cumulative returned quantity can never exceed the quantity sold
- Stock is restored through the ledger in the same transaction as the
  Return insert
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Return, Sale
from ..validation import ValidationError
from .concurrency import run_with_retry
from .ledger_service import apply_stock_change


class SaleNotFoundError(Exception):
    """Raised when the referenced sale does not exist."""
    pass


class ReturnQuantityExceedsSaleError(Exception):
    """Raised when a return asks for more units than remain returnable."""

    def __init__(self, sale: Sale, requested: int, already_returned: int):
        self.sale_id = sale.id
        self.requested = requested
        self.already_returned = already_returned
        self.available = sale.quantity - already_returned
        super().__init__(
            f"Cannot return {requested} units. Original quantity: {sale.quantity}, "
            f"already returned: {already_returned}, available: {self.available}"
        )


def compute_refund_cents(sale: Sale, quantity: int) -> int:
    """
    Refund for `quantity` units at the original sale's unit price.

    Multiplies before dividing so the only rounding is the final
    nearest-cent (half-up) step.
    """
    numerator = sale.total_amount_cents * quantity
    return (numerator + (sale.quantity // 2)) // sale.quantity


def get_returned_quantity(sale_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(Return.quantity), 0)
    ).filter(Return.sale_id == sale_id).scalar()
    return int(total or 0)


def get_returnable_quantity(sale_id: int) -> int:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale {sale_id} not found")
    return sale.quantity - get_returned_quantity(sale_id)


def process_return(
    *,
    sale_id: int,
    quantity: int,
    reason: str | None = None,
    actor_user_id: int | None = None,
) -> Return:
    """
    Return units from a previous sale.

    Raises:
        SaleNotFoundError: sale does not exist
        ValidationError: quantity < 1
        ReturnQuantityExceedsSaleError: quantity > remaining returnable units
    """
    def _op():
        if quantity < 1:
            raise ValidationError("Return quantity must be at least 1")

        sale = db.session.get(Sale, sale_id)
        if sale is None:
            raise SaleNotFoundError(f"Sale {sale_id} not found")

        already_returned = get_returned_quantity(sale.id)
        if already_returned + quantity > sale.quantity:
            raise ReturnQuantityExceedsSaleError(sale, quantity, already_returned)

        ret = Return(
            sale_id=sale.id,
            product_id=sale.product_id,
            quantity=quantity,
            refund_amount_cents=compute_refund_cents(sale, quantity),
            reason=reason,
            created_by_user_id=actor_user_id,
        )
        db.session.add(ret)
        db.session.flush()

        apply_stock_change(
            sale.product_id,
            quantity,
            f"Return: {reason}" if reason else f"Return of sale #{sale.id}",
            entity_type="return",
            entity_id=ret.id,
            actor_user_id=actor_user_id,
        )

        db.session.commit()
        return ret

    return run_with_retry(_op)


def list_returns(*, sale_id: int | None = None, limit: int = 500) -> list[Return]:
    q = db.session.query(Return)
    if sale_id is not None:
        q = q.filter(Return.sale_id == sale_id)
    return q.order_by(Return.created_at.desc(), Return.id.desc()).limit(limit).all()
