"""
Catalog tests: products, categories and suppliers.
"""

import pytest

from stockroom.models import Movement, Product

from conftest import fresh


def _product_payload(**overrides):
    payload = {
        "sku": "WINE-MAL-750",
        "name": "Malbec",
        "cost_price_cents": 800,
        "retail_price_cents": 1499,
        "reorder_level": 6,
    }
    payload.update(overrides)
    return payload


class TestProducts:

    def test_create_with_opening_stock_logs_movement(self, client, db_session, manager_headers):
        resp = client.post("/api/products", json=_product_payload(quantity=24), headers=manager_headers)
        assert resp.status_code == 201
        assert resp.json["quantity"] == 24

        movement = db_session.query(Movement).filter_by(product_id=resp.json["id"]).one()
        assert movement.qty_change == 24
        assert movement.reason == "Initial stock"
        assert movement.entity_type == "product"

    def test_create_without_quantity_starts_empty(self, client, db_session, manager_headers):
        resp = client.post("/api/products", json=_product_payload(), headers=manager_headers)
        assert resp.status_code == 201
        assert resp.json["quantity"] == 0
        assert resp.json["is_out_of_stock"] is True
        assert db_session.query(Movement).count() == 0

    def test_duplicate_sku_is_conflict(self, client, db_session, corona, manager_headers):
        resp = client.post("/api/products", json=_product_payload(sku=corona.sku), headers=manager_headers)
        assert resp.status_code == 409

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sku": ""},
            {"name": None},
            {"retail_price_cents": -1},
            {"cost_price_cents": 1_000_000_000},
            {"quantity": -5},
            {"reorder_level": -1},
            {"category_id": 999},
            {"version_id": 7},
        ],
    )
    def test_invalid_create(self, client, db_session, manager_headers, overrides):
        resp = client.post("/api/products", json=_product_payload(**overrides), headers=manager_headers)
        assert resp.status_code == 400

    def test_patch_updates_fields(self, client, db_session, corona, manager_headers):
        resp = client.patch(
            f"/api/products/{corona.id}",
            json={"retail_price_cents": 275, "reorder_level": 12},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["retail_price_cents"] == 275
        assert resp.json["reorder_level"] == 12
        assert resp.json["quantity"] == 50

    def test_patch_cannot_set_quantity(self, client, db_session, corona, manager_headers):
        resp = client.patch(f"/api/products/{corona.id}", json={"quantity": 500}, headers=manager_headers)
        assert resp.status_code == 400
        assert "stock movement" in resp.json["error"]
        assert fresh(db_session, corona).quantity == 50

    def test_get_and_404(self, client, db_session, corona, staff_headers):
        resp = client.get(f"/api/products/{corona.id}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["category"]["name"] == "Beer"
        assert resp.json["supplier"]["name"] == "Modelo Distributors"

        assert client.get("/api/products/4040", headers=staff_headers).status_code == 404

    def test_list_filters(self, client, db_session, corona, make_product, staff_headers):
        make_product("LIME-1", name="Lime")

        resp = client.get("/api/products", headers=staff_headers)
        assert len(resp.json["items"]) == 2

        resp = client.get("/api/products?sku=BEER-COR-12", headers=staff_headers)
        assert [p["name"] for p in resp.json["items"]] == ["Corona"]

        resp = client.get("/api/products?name=Lime", headers=staff_headers)
        assert [p["sku"] for p in resp.json["items"]] == ["LIME-1"]

    def test_delete_unused_product(self, client, db_session, make_product, manager_headers):
        product = make_product("TEMP-1")
        resp = client.delete(f"/api/products/{product.id}", headers=manager_headers)
        assert resp.status_code == 200
        db_session.expire_all()
        assert db_session.get(Product, product.id) is None

    def test_delete_with_history_is_conflict(self, client, db_session, corona, manager_headers):
        client.post("/api/sales", json={"product_id": corona.id, "quantity": 1}, headers=manager_headers)
        resp = client.delete(f"/api/products/{corona.id}", headers=manager_headers)
        assert resp.status_code == 409
        assert fresh(db_session, corona) is not None


class TestCategoriesAndSuppliers:

    def test_create_and_list_categories(self, client, db_session, manager_headers):
        resp = client.post("/api/categories", json={"name": "Spirits"}, headers=manager_headers)
        assert resp.status_code == 201

        resp = client.post("/api/categories", json={"name": "Spirits"}, headers=manager_headers)
        assert resp.status_code == 409

        resp = client.get("/api/categories", headers=manager_headers)
        assert [c["name"] for c in resp.json["items"]] == ["Spirits"]

    def test_create_supplier(self, client, db_session, manager_headers):
        resp = client.post(
            "/api/suppliers",
            json={"name": "Andes Imports", "contact_email": "sales@andes.test"},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        assert resp.json["contact_email"] == "sales@andes.test"

    def test_supplier_requires_name(self, client, db_session, manager_headers):
        resp = client.post("/api/suppliers", json={"contact_phone": "555"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_staff_cannot_create_category(self, client, db_session, staff_headers):
        resp = client.post("/api/categories", json={"name": "Snacks"}, headers=staff_headers)
        assert resp.status_code == 403
