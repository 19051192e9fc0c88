"""
Purchase order lifecycle tests.

Verifies:
- pending -> received credits stock exactly once
- pending -> cancelled requires a reason and never touches stock
- Terminal orders cannot change state or be edited
- Invoice-wide status changes skip orders already in the target status
"""

from datetime import timedelta

import pytest

from stockroom.models import Movement, PurchaseOrder
from stockroom.models.purchasing import PO_STATUS_CANCELLED, PO_STATUS_PENDING, PO_STATUS_RECEIVED
from stockroom.services import purchase_order_service as po_service
from stockroom.services.ledger_service import ProductNotFoundError
from stockroom.services.purchase_order_service import PurchaseOrderNotFoundError, PurchaseOrderStateError
from stockroom.time_utils import today
from stockroom.validation import ValidationError

from conftest import fresh


NEXT_WEEK = today() + timedelta(days=7)


@pytest.fixture
def pending_order(db_session, corona):
    return po_service.create_purchase_order(
        product_id=corona.id,
        quantity=30,
        expected_delivery_date=NEXT_WEEK,
        invoice_number="INV-1001",
    )


def _po_movements(db_session, order_id):
    return db_session.query(Movement).filter_by(entity_type="purchase_order", entity_id=order_id).all()


class TestCreatePurchaseOrder:

    def test_supplier_defaults_to_products_supplier(self, db_session, corona, supplier, pending_order):
        assert pending_order.status == PO_STATUS_PENDING
        assert pending_order.supplier_id == supplier.id

    def test_creating_does_not_change_stock(self, db_session, corona, pending_order):
        assert fresh(db_session, corona).quantity == 50
        assert _po_movements(db_session, pending_order.id) == []

    def test_past_delivery_date_rejected(self, db_session, corona):
        with pytest.raises(ValidationError):
            po_service.create_purchase_order(
                product_id=corona.id,
                quantity=5,
                expected_delivery_date=today() - timedelta(days=1),
            )

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            po_service.create_purchase_order(product_id=555, quantity=5, expected_delivery_date=NEXT_WEEK)

    def test_unknown_supplier(self, db_session, corona):
        with pytest.raises(ValidationError):
            po_service.create_purchase_order(
                product_id=corona.id,
                quantity=5,
                expected_delivery_date=NEXT_WEEK,
                supplier_id=777,
            )

    def test_batch_counts(self, db_session, corona):
        outcome = po_service.create_purchase_orders_batch([
            {"product_id": corona.id, "quantity": 5, "expected_delivery_date": NEXT_WEEK},
            {"product_id": 404, "quantity": 5, "expected_delivery_date": NEXT_WEEK},
            {"product_id": corona.id, "quantity": 7, "expected_delivery_date": NEXT_WEEK},
        ])
        assert outcome["succeeded"] == 2
        assert outcome["failed"] == 1
        assert outcome["results"][1]["error"] == "Product 404 not found"


class TestReceive:

    def test_receive_credits_stock_once(self, db_session, corona, pending_order):
        order, changed = po_service.receive_purchase_order(pending_order.id)

        assert changed is True
        assert order.status == PO_STATUS_RECEIVED
        assert order.received_at is not None
        assert fresh(db_session, corona).quantity == 80

        movements = _po_movements(db_session, pending_order.id)
        assert len(movements) == 1
        assert movements[0].qty_change == 30
        assert movements[0].reason == "Purchase Order INV-1001 received"

    def test_receiving_twice_is_a_no_op(self, db_session, corona, pending_order):
        po_service.receive_purchase_order(pending_order.id)
        order, changed = po_service.receive_purchase_order(pending_order.id)

        assert changed is False
        assert order.status == PO_STATUS_RECEIVED
        assert fresh(db_session, corona).quantity == 80
        assert len(_po_movements(db_session, pending_order.id)) == 1

    def test_reason_uses_order_id_without_invoice(self, db_session, corona):
        order = po_service.create_purchase_order(
            product_id=corona.id, quantity=2, expected_delivery_date=NEXT_WEEK
        )
        po_service.receive_purchase_order(order.id)
        assert _po_movements(db_session, order.id)[0].reason == f"Purchase Order #{order.id} received"

    def test_cancelled_order_cannot_be_received(self, db_session, corona, pending_order):
        po_service.cancel_purchase_order(pending_order.id, "Supplier out of stock")

        with pytest.raises(PurchaseOrderStateError):
            po_service.receive_purchase_order(pending_order.id)
        assert fresh(db_session, corona).quantity == 50

    def test_unknown_order(self, db_session):
        with pytest.raises(PurchaseOrderNotFoundError):
            po_service.receive_purchase_order(8080)

    def test_ledger_failure_rolls_back_receipt(self, db_session, corona, pending_order, monkeypatch):
        def failing_ledger(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(po_service, "apply_stock_change", failing_ledger)

        with pytest.raises(RuntimeError):
            po_service.receive_purchase_order(pending_order.id)

        order = fresh(db_session, pending_order)
        assert order.status == PO_STATUS_PENDING
        assert order.received_at is None
        assert fresh(db_session, corona).quantity == 50
        assert _po_movements(db_session, pending_order.id) == []


class TestCancel:

    def test_cancel_requires_reason(self, db_session, pending_order):
        for note in (None, "", "   "):
            with pytest.raises(ValidationError):
                po_service.cancel_purchase_order(pending_order.id, note)
        assert fresh(db_session, pending_order).status == PO_STATUS_PENDING

    def test_cancel_appends_reason_to_notes(self, db_session, corona):
        order = po_service.create_purchase_order(
            product_id=corona.id,
            quantity=3,
            expected_delivery_date=NEXT_WEEK,
            notes="Rush delivery",
        )
        order, changed = po_service.cancel_purchase_order(order.id, "Duplicate order")

        assert changed is True
        assert order.status == PO_STATUS_CANCELLED
        assert order.notes == "Rush delivery\n[CANCELLED: Duplicate order]"
        assert fresh(db_session, corona).quantity == 50

    def test_received_order_cannot_be_cancelled(self, db_session, pending_order):
        po_service.receive_purchase_order(pending_order.id)
        with pytest.raises(PurchaseOrderStateError):
            po_service.cancel_purchase_order(pending_order.id, "Too late")


class TestUpdate:

    def test_pending_order_is_editable(self, db_session, pending_order):
        order = po_service.update_purchase_order(pending_order.id, {"quantity": 12, "notes": "Call first"})
        assert order.quantity == 12
        assert order.notes == "Call first"

    def test_terminal_order_is_immutable(self, db_session, pending_order):
        po_service.receive_purchase_order(pending_order.id)
        with pytest.raises(PurchaseOrderStateError):
            po_service.update_purchase_order(pending_order.id, {"quantity": 99})

    def test_cancelled_order_is_immutable(self, db_session, pending_order):
        po_service.cancel_purchase_order(pending_order.id, "Supplier out of stock")
        with pytest.raises(PurchaseOrderStateError):
            po_service.update_purchase_order(pending_order.id, {"notes": "Try again"})


class TestInvoiceStatus:

    def test_receive_whole_invoice_skips_received(self, db_session, corona, make_product):
        lime = make_product("LIME-1", quantity=0)
        first = po_service.create_purchase_order(
            product_id=corona.id, quantity=10, expected_delivery_date=NEXT_WEEK, invoice_number="INV-7"
        )
        po_service.create_purchase_order(
            product_id=lime.id, quantity=6, expected_delivery_date=NEXT_WEEK, invoice_number="INV-7"
        )
        po_service.receive_purchase_order(first.id)

        summary = po_service.change_invoice_status("INV-7", PO_STATUS_RECEIVED)

        assert summary["changed"] == 1
        assert summary["skipped"] == 1
        assert summary["failed"] == 0
        assert fresh(db_session, corona).quantity == 60
        assert fresh(db_session, lime).quantity == 6

    def test_cancel_whole_invoice_requires_note(self, db_session, pending_order):
        with pytest.raises(ValidationError):
            po_service.change_invoice_status("INV-1001", PO_STATUS_CANCELLED)

    def test_unknown_invoice(self, db_session):
        with pytest.raises(PurchaseOrderNotFoundError):
            po_service.change_invoice_status("NOPE", PO_STATUS_RECEIVED)

    def test_invalid_status(self, db_session, pending_order):
        with pytest.raises(ValidationError):
            po_service.change_invoice_status("INV-1001", PO_STATUS_PENDING)

    def test_received_orders_reported_as_failures_on_cancel(self, db_session, corona):
        a = po_service.create_purchase_order(
            product_id=corona.id, quantity=1, expected_delivery_date=NEXT_WEEK, invoice_number="INV-9"
        )
        po_service.create_purchase_order(
            product_id=corona.id, quantity=2, expected_delivery_date=NEXT_WEEK, invoice_number="INV-9"
        )
        po_service.receive_purchase_order(a.id)

        summary = po_service.change_invoice_status("INV-9", PO_STATUS_CANCELLED, note="Wrong supplier")

        assert summary["changed"] == 1
        assert summary["failed"] == 1
        assert db_session.query(PurchaseOrder).filter_by(status=PO_STATUS_CANCELLED).count() == 1


class TestPurchaseOrdersApi:

    def test_create_receive_flow(self, client, db_session, corona, manager_headers):
        resp = client.post(
            "/api/purchase-orders",
            json={
                "product_id": corona.id,
                "quantity": 24,
                "expected_delivery_date": NEXT_WEEK.isoformat(),
                "invoice_number": "INV-55",
            },
            headers=manager_headers,
        )
        assert resp.status_code == 201
        order_id = resp.json["id"]
        assert resp.json["status"] == "pending"

        resp = client.post(f"/api/purchase-orders/{order_id}/receive", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["changed"] is True
        assert resp.json["purchase_order"]["status"] == "received"

        resp = client.post(f"/api/purchase-orders/{order_id}/receive", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["changed"] is False
        assert fresh(db_session, corona).quantity == 74

    def test_past_date_rejected(self, client, db_session, corona, manager_headers):
        resp = client.post(
            "/api/purchase-orders",
            json={
                "product_id": corona.id,
                "quantity": 1,
                "expected_delivery_date": (today() - timedelta(days=2)).isoformat(),
            },
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_cancel_without_note_is_400(self, client, db_session, pending_order, manager_headers):
        resp = client.post(f"/api/purchase-orders/{pending_order.id}/cancel", json={}, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "A reason is required to cancel a purchase order"

    def test_receive_cancelled_is_conflict(self, client, db_session, pending_order, manager_headers):
        client.post(
            f"/api/purchase-orders/{pending_order.id}/cancel",
            json={"note": "Changed mind"},
            headers=manager_headers,
        )
        resp = client.post(f"/api/purchase-orders/{pending_order.id}/receive", headers=manager_headers)
        assert resp.status_code == 409

    def test_patch_terminal_is_conflict(self, client, db_session, pending_order, manager_headers):
        client.post(f"/api/purchase-orders/{pending_order.id}/receive", headers=manager_headers)
        resp = client.patch(
            f"/api/purchase-orders/{pending_order.id}",
            json={"quantity": 2},
            headers=manager_headers,
        )
        assert resp.status_code == 409

    def test_patch_cannot_change_status(self, client, db_session, pending_order, manager_headers):
        resp = client.patch(
            f"/api/purchase-orders/{pending_order.id}",
            json={"status": "received"},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_invoice_status_endpoint(self, client, db_session, corona, pending_order, manager_headers):
        resp = client.post(
            "/api/purchase-orders/invoices/INV-1001/status",
            json={"status": "received"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["changed"] == 1
        assert fresh(db_session, corona).quantity == 80

    def test_list_filters(self, client, db_session, pending_order, manager_headers):
        resp = client.get("/api/purchase-orders?status=pending", headers=manager_headers)
        assert [o["id"] for o in resp.json["items"]] == [pending_order.id]

        resp = client.get("/api/purchase-orders?status=bogus", headers=manager_headers)
        assert resp.status_code == 400

    def test_get_unknown_is_404(self, client, db_session, manager_headers):
        resp = client.get("/api/purchase-orders/9999", headers=manager_headers)
        assert resp.status_code == 404

    def test_batch(self, client, db_session, corona, manager_headers):
        resp = client.post(
            "/api/purchase-orders/batch",
            json={"items": [
                {"product_id": corona.id, "quantity": 5, "expected_delivery_date": NEXT_WEEK.isoformat()},
                {"product_id": corona.id, "quantity": 0, "expected_delivery_date": NEXT_WEEK.isoformat()},
            ]},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["succeeded"] == 1
        assert resp.json["failed"] == 1
