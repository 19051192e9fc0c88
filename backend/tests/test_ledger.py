"""
Stock ledger tests.

Verifies:
- Every quantity change appends exactly one movement
- Changes that would go below zero fail before anything is written
- Zero deltas and unknown products are rejected
- Manual adjustments through the API
"""

import pytest

from stockroom.models import Movement, Product
from stockroom.services import ledger_service
from stockroom.services.ledger_service import InsufficientStockError, ProductNotFoundError
from stockroom.validation import ValidationError

from conftest import fresh


def _movements(db_session, product_id):
    return (
        db_session.query(Movement)
        .filter_by(product_id=product_id)
        .order_by(Movement.id.asc())
        .all()
    )


class TestApplyStockChange:

    def test_decrement_updates_quantity_and_logs_movement(self, db_session, corona):
        new_quantity = ledger_service.apply_stock_change(
            corona.id, -10, "Sale of 10 units", entity_type="sale", entity_id=7
        )
        db_session.commit()

        assert new_quantity == 40
        assert fresh(db_session, corona).quantity == 40

        movements = _movements(db_session, corona.id)
        assert len(movements) == 1
        assert movements[0].qty_change == -10
        assert movements[0].reason == "Sale of 10 units"
        assert movements[0].entity_type == "sale"
        assert movements[0].entity_id == 7

    def test_increment(self, db_session, corona):
        assert ledger_service.apply_stock_change(corona.id, 30, "Restock") == 80
        db_session.commit()
        assert fresh(db_session, corona).quantity == 80

    def test_can_reach_exactly_zero(self, db_session, corona):
        assert ledger_service.apply_stock_change(corona.id, -50, "Sold out") == 0
        db_session.commit()
        assert fresh(db_session, corona).is_out_of_stock

    def test_negative_result_rejected_without_writes(self, db_session, corona):
        with pytest.raises(InsufficientStockError) as excinfo:
            ledger_service.apply_stock_change(corona.id, -51, "Too many")
        db_session.rollback()

        assert excinfo.value.available == 50
        assert excinfo.value.requested == 51
        assert str(excinfo.value) == "Insufficient stock for Corona. Only 50 units available."
        assert fresh(db_session, corona).quantity == 50
        assert _movements(db_session, corona.id) == []

    def test_zero_delta_rejected(self, db_session, corona):
        with pytest.raises(ValidationError):
            ledger_service.apply_stock_change(corona.id, 0, "Nothing")
        assert _movements(db_session, corona.id) == []

    def test_non_integer_delta_rejected(self, db_session, corona):
        with pytest.raises(ValidationError):
            ledger_service.apply_stock_change(corona.id, 1.5, "Half a beer")

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            ledger_service.apply_stock_change(9999, 1, "Ghost")

    def test_movements_sum_to_quantity_change(self, db_session, corona):
        for delta in (-5, 12, -7, 3):
            ledger_service.apply_stock_change(corona.id, delta, "mixed")
        db_session.commit()

        total = sum(m.qty_change for m in _movements(db_session, corona.id))
        assert total == 3
        assert fresh(db_session, corona).quantity == 53


class TestRecordAdjustment:

    def test_commits_its_own_unit_of_work(self, db_session, corona, admin_user):
        movement = ledger_service.record_adjustment(
            product_id=corona.id,
            qty_change=-2,
            reason="Broken bottles",
            actor_user_id=admin_user.id,
        )
        db_session.expire_all()

        assert movement.id is not None
        assert movement.actor_user_id == admin_user.id
        assert movement.entity_type is None
        assert db_session.get(Product, corona.id).quantity == 48

    def test_list_movements_filters_by_product(self, db_session, corona, make_product):
        other = make_product("LIME-1", quantity=10)
        ledger_service.record_adjustment(product_id=corona.id, qty_change=1, reason="Found")
        ledger_service.record_adjustment(product_id=other.id, qty_change=-1, reason="Shrink")

        assert len(ledger_service.list_movements()) == 2
        only_corona = ledger_service.list_movements(product_id=corona.id)
        assert [m.reason for m in only_corona] == ["Found"]


class TestMovementsApi:

    def test_manager_can_adjust(self, client, db_session, corona, manager_headers):
        resp = client.post(
            "/api/movements",
            json={"product_id": corona.id, "qty_change": -3, "reason": "Damaged"},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        assert resp.json["qty_change"] == -3
        assert resp.json["product"]["quantity"] == 47

    def test_adjustment_below_zero_is_conflict(self, client, db_session, corona, manager_headers):
        resp = client.post(
            "/api/movements",
            json={"product_id": corona.id, "qty_change": -60, "reason": "Count correction"},
            headers=manager_headers,
        )
        assert resp.status_code == 409
        assert "Only 50 units available" in resp.json["error"]
        assert fresh(db_session, corona).quantity == 50

    @pytest.mark.parametrize(
        "payload",
        [
            {"qty_change": 1, "reason": "x"},
            {"product_id": 1, "qty_change": 0, "reason": "x"},
            {"product_id": 1, "qty_change": 2},
            {"product_id": 1, "qty_change": 2.5, "reason": "x"},
            {"product_id": 1, "qty_change": 2, "reason": "x", "entity_type": "sale"},
        ],
    )
    def test_invalid_payloads(self, client, db_session, corona, manager_headers, payload):
        resp = client.post("/api/movements", json=payload, headers=manager_headers)
        assert resp.status_code == 400

    def test_unknown_product_is_404(self, client, db_session, manager_headers):
        resp = client.post(
            "/api/movements",
            json={"product_id": 424242, "qty_change": 1, "reason": "x"},
            headers=manager_headers,
        )
        assert resp.status_code == 404

    def test_list_includes_product(self, client, db_session, corona, manager_headers, staff_headers):
        client.post(
            "/api/movements",
            json={"product_id": corona.id, "qty_change": 5, "reason": "Found a case"},
            headers=manager_headers,
        )
        resp = client.get(f"/api/movements?product_id={corona.id}", headers=staff_headers)
        assert resp.status_code == 200
        items = resp.json["items"]
        assert len(items) == 1
        assert items[0]["product"]["name"] == "Corona"
