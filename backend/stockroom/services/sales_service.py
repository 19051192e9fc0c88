# Overview: Sale recording; inserts the Sale and decrements stock in one transaction.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Sale
from ..validation import ValidationError
from stockroom.time_utils import today
from .concurrency import run_with_retry
from .ledger_service import get_product_for_update, apply_stock_change, InsufficientStockError


def _record_sale_inner(
    *,
    product_id: int,
    quantity: int,
    date_sold: date | None,
    store: str | None,
    actor_user_id: int | None,
) -> Sale:
    """Core sale logic without retry or commit."""
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")

    product = get_product_for_update(product_id)
    if product.quantity < quantity:
        raise InsufficientStockError(product, quantity)

    sale = Sale(
        product_id=product.id,
        quantity=quantity,
        # Snapshot of the price at the moment of sale
        total_amount_cents=product.retail_price_cents * quantity,
        date_sold=date_sold or today(),
        store=store,
        created_by_user_id=actor_user_id,
    )
    db.session.add(sale)
    db.session.flush()

    apply_stock_change(
        product.id,
        -quantity,
        f"Sale of {quantity} units",
        entity_type="sale",
        entity_id=sale.id,
        actor_user_id=actor_user_id,
    )
    return sale


def record_sale(
    *,
    product_id: int,
    quantity: int,
    date_sold: date | None = None,
    store: str | None = None,
    actor_user_id: int | None = None,
) -> Sale:
    """
    Record a sale of one product.

    The Sale row, the quantity decrement and the Movement commit together
    or not at all.

    Raises:
        ProductNotFoundError: product does not exist
        InsufficientStockError: product.quantity < quantity (nothing written)
    """
    def _op():
        sale = _record_sale_inner(
            product_id=product_id,
            quantity=quantity,
            date_sold=date_sold,
            store=store,
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return sale

    return run_with_retry(_op)


def record_sales_batch(items: list[dict], *, actor_user_id: int | None = None) -> dict:
    """
    Record several sales, each in its own transaction.

    A failing item is reported and skipped; it never aborts the rest.
    Each item is a validated dict with product_id, quantity and optional
    date_sold / store.
    """
    results = []
    succeeded = 0
    for index, item in enumerate(items):
        try:
            sale = record_sale(
                product_id=item["product_id"],
                quantity=item["quantity"],
                date_sold=item.get("date_sold"),
                store=item.get("store"),
                actor_user_id=actor_user_id,
            )
        except Exception as e:
            current_app.logger.info("Batch sale item %d failed: %s", index, e)
            results.append({"index": index, "ok": False, "error": _describe_failure(e)})
            continue
        succeeded += 1
        results.append({"index": index, "ok": True, "sale": sale.to_dict()})

    return {
        "succeeded": succeeded,
        "failed": len(items) - succeeded,
        "results": results,
    }


def _describe_failure(exc: Exception) -> str:
    from ..errors import client_message
    return client_message(exc)


def list_sales(
    *,
    start: date | None = None,
    end: date | None = None,
    product_id: int | None = None,
    limit: int = 500,
) -> list[Sale]:
    q = db.session.query(Sale)
    if product_id is not None:
        q = q.filter(Sale.product_id == product_id)
    if start is not None:
        q = q.filter(Sale.date_sold >= start)
    if end is not None:
        q = q.filter(Sale.date_sold <= end)
    return q.order_by(Sale.date_sold.desc(), Sale.id.desc()).limit(limit).all()


def get_sale(sale_id: int) -> Sale | None:
    return db.session.get(Sale, sale_id)
