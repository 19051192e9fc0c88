# Overview: Purchase-order lifecycle; receiving credits stock through the ledger.

"""
Purchase Order Service

LIFECYCLE:
1. pending: Created, editable
2. received: Goods arrived; stock credited exactly once
3. cancelled: Abandoned with a stated reason; no stock effect

received and cancelled are terminal. Receiving an order that is already
received is a no-op, so repeated or invoice-wide receive actions never
double-credit stock.
"""

from __future__ import annotations

from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Product, PurchaseOrder, Supplier
from ..models.purchasing import PO_STATUS_PENDING, PO_STATUS_RECEIVED, PO_STATUS_CANCELLED
from ..validation import ValidationError
from stockroom.time_utils import utcnow, today
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import apply_stock_change, ProductNotFoundError


PO_EDITABLE_FIELDS = {"quantity", "expected_delivery_date", "invoice_number", "notes", "store", "supplier_id"}


class PurchaseOrderNotFoundError(Exception):
    """Raised when a purchase order is not found."""
    pass


class PurchaseOrderStateError(Exception):
    """Raised when an operation is invalid for the order's current status."""
    pass


def _get_order(order_id: int, *, lock: bool = False) -> PurchaseOrder:
    query = db.session.query(PurchaseOrder).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise PurchaseOrderNotFoundError(f"Purchase order {order_id} not found")
    return order


def get_purchase_order(order_id: int) -> PurchaseOrder:
    return _get_order(order_id)


def _validate_supplier(supplier_id: int | None) -> None:
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise ValidationError(f"Supplier {supplier_id} not found")


def _create_purchase_order_inner(
    *,
    product_id: int,
    quantity: int,
    expected_delivery_date: date,
    supplier_id: int | None,
    invoice_number: str | None,
    notes: str | None,
    store: str | None,
    actor_user_id: int | None,
) -> PurchaseOrder:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")

    if expected_delivery_date < today():
        raise ValidationError("expected_delivery_date cannot be in the past")

    if supplier_id is None:
        supplier_id = product.supplier_id
    _validate_supplier(supplier_id)

    order = PurchaseOrder(
        product_id=product.id,
        supplier_id=supplier_id,
        quantity=quantity,
        expected_delivery_date=expected_delivery_date,
        status=PO_STATUS_PENDING,
        invoice_number=invoice_number,
        notes=notes,
        store=store,
        created_by_user_id=actor_user_id,
    )
    db.session.add(order)
    db.session.flush()
    return order


def create_purchase_order(
    *,
    product_id: int,
    quantity: int,
    expected_delivery_date: date,
    supplier_id: int | None = None,
    invoice_number: str | None = None,
    notes: str | None = None,
    store: str | None = None,
    actor_user_id: int | None = None,
) -> PurchaseOrder:
    """
    Create a pending purchase order.

    supplier_id defaults to the product's supplier when omitted.
    """
    def _op():
        order = _create_purchase_order_inner(
            product_id=product_id,
            quantity=quantity,
            expected_delivery_date=expected_delivery_date,
            supplier_id=supplier_id,
            invoice_number=invoice_number,
            notes=notes,
            store=store,
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def create_purchase_orders_batch(items: list[dict], *, actor_user_id: int | None = None) -> dict:
    """Create several orders, one transaction each; reports counts."""
    from ..errors import client_message

    results = []
    succeeded = 0
    for index, item in enumerate(items):
        try:
            order = create_purchase_order(actor_user_id=actor_user_id, **item)
        except Exception as e:
            current_app.logger.info("Batch purchase order item %d failed: %s", index, e)
            results.append({"index": index, "ok": False, "error": client_message(e)})
            continue
        succeeded += 1
        results.append({"index": index, "ok": True, "purchase_order": order.to_dict()})

    return {
        "succeeded": succeeded,
        "failed": len(items) - succeeded,
        "results": results,
    }


def update_purchase_order(order_id: int, patch: dict) -> PurchaseOrder:
    """Edit a pending order. Terminal orders are immutable."""
    def _op():
        order = _get_order(order_id, lock=True)
        if order.is_terminal:
            raise PurchaseOrderStateError(
                f"Can only edit pending purchase orders. Order {order_id} is {order.status}"
            )
        if "supplier_id" in patch:
            _validate_supplier(patch["supplier_id"])
        for k, v in patch.items():
            if k not in PO_EDITABLE_FIELDS:
                continue
            setattr(order, k, v)
        db.session.commit()
        return order

    return run_with_retry(_op)


def _receive_inner(order: PurchaseOrder, actor_user_id: int | None) -> bool:
    if order.status == PO_STATUS_RECEIVED:
        return False
    if order.status == PO_STATUS_CANCELLED:
        raise PurchaseOrderStateError(f"Purchase order {order.id} is cancelled and cannot be received")

    order.status = PO_STATUS_RECEIVED
    order.received_at = utcnow()
    db.session.flush()

    apply_stock_change(
        order.product_id,
        order.quantity,
        f"Purchase Order {order.reference} received",
        entity_type="purchase_order",
        entity_id=order.id,
        actor_user_id=actor_user_id,
    )
    return True


def receive_purchase_order(order_id: int, *, actor_user_id: int | None = None) -> tuple[PurchaseOrder, bool]:
    """
    Mark an order received and credit its quantity to stock.

    Returns (order, changed). changed is False when the order was already
    received; no movement is written in that case.
    """
    def _op():
        order = _get_order(order_id, lock=True)
        changed = _receive_inner(order, actor_user_id)
        db.session.commit()
        return order, changed

    return run_with_retry(_op)


def _cancel_inner(order: PurchaseOrder, note: str) -> bool:
    if order.status == PO_STATUS_CANCELLED:
        return False
    if order.status == PO_STATUS_RECEIVED:
        raise PurchaseOrderStateError(f"Purchase order {order.id} is already received and cannot be cancelled")

    cancellation_note = f"[CANCELLED: {note}]"
    order.notes = f"{order.notes}\n{cancellation_note}" if order.notes else cancellation_note
    order.status = PO_STATUS_CANCELLED
    return True


def _require_note(note: str | None) -> str:
    note = (note or "").strip()
    if not note:
        raise ValidationError("A reason is required to cancel a purchase order")
    return note


def cancel_purchase_order(order_id: int, note: str | None) -> tuple[PurchaseOrder, bool]:
    """
    Cancel a pending order. A non-empty reason is required and is appended
    to the order's notes. Stock is untouched.
    """
    note = _require_note(note)

    def _op():
        order = _get_order(order_id, lock=True)
        changed = _cancel_inner(order, note)
        db.session.commit()
        return order, changed

    return run_with_retry(_op)


def change_invoice_status(
    invoice_number: str,
    status: str,
    *,
    note: str | None = None,
    actor_user_id: int | None = None,
) -> dict:
    """
    Apply a status change to every order sharing an invoice number.

    Orders already in the target status are skipped. Each order is its own
    transaction; failures are reported per order.
    """
    if status not in (PO_STATUS_RECEIVED, PO_STATUS_CANCELLED):
        raise ValidationError("status must be 'received' or 'cancelled'")
    if status == PO_STATUS_CANCELLED:
        note = _require_note(note)

    order_ids = [
        row.id
        for row in db.session.query(PurchaseOrder.id)
        .filter(PurchaseOrder.invoice_number == invoice_number)
        .order_by(PurchaseOrder.id.asc())
        .all()
    ]
    if not order_ids:
        raise PurchaseOrderNotFoundError(f"No purchase orders found for invoice {invoice_number}")

    from ..errors import client_message

    results = []
    changed_count = skipped = failed = 0
    for order_id in order_ids:
        try:
            if status == PO_STATUS_RECEIVED:
                order, changed = receive_purchase_order(order_id, actor_user_id=actor_user_id)
            else:
                order, changed = cancel_purchase_order(order_id, note)
        except Exception as e:
            current_app.logger.info("Invoice %s: order %s failed: %s", invoice_number, order_id, e)
            failed += 1
            results.append({"id": order_id, "ok": False, "error": client_message(e)})
            continue
        if changed:
            changed_count += 1
        else:
            skipped += 1
        results.append({"id": order_id, "ok": True, "changed": changed, "status": order.status})

    return {
        "invoice_number": invoice_number,
        "status": status,
        "changed": changed_count,
        "skipped": skipped,
        "failed": failed,
        "results": results,
    }


def list_purchase_orders(
    *,
    status: str | None = None,
    invoice_number: str | None = None,
    product_id: int | None = None,
    limit: int = 500,
) -> list[PurchaseOrder]:
    q = db.session.query(PurchaseOrder)
    if status:
        q = q.filter(PurchaseOrder.status == status)
    if invoice_number:
        q = q.filter(PurchaseOrder.invoice_number == invoice_number)
    if product_id is not None:
        q = q.filter(PurchaseOrder.product_id == product_id)
    return q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).limit(limit).all()
