"""
User management API tests.

Verifies:
- Only holders of MANAGE_USERS can list, create or deactivate accounts
- Deactivation revokes every session of the account
"""

from stockroom.models import SessionToken, User

from conftest import TEST_PASSWORD, auth_headers, fresh, get_auth_token


NEW_USER = {
    "username": "clerk",
    "email": "clerk@stockroom.test",
    "password": "Clerk123!",
}


class TestUserAdmin:

    def test_admin_lists_users(self, client, db_session, admin_headers):
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        assert [u["username"] for u in resp.json["items"]] == ["admin", "manager", "staff"]

    def test_admin_creates_staff_by_default(self, client, db_session, admin_headers):
        resp = client.post("/api/users", json=NEW_USER, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "staff"
        assert get_auth_token(client, "clerk", "Clerk123!") is not None

    def test_create_with_role(self, client, db_session, admin_headers):
        resp = client.post("/api/users", json={**NEW_USER, "role": "manager"}, headers=admin_headers)
        assert resp.status_code == 201
        assert db_session.query(User).filter_by(username="clerk").one().role == "manager"

    def test_create_rejects_bad_input(self, client, db_session, admin_headers):
        assert client.post("/api/users", json={"username": "x"}, headers=admin_headers).status_code == 400
        weak = client.post("/api/users", json={**NEW_USER, "password": "weak"}, headers=admin_headers)
        assert weak.status_code == 400
        bad_role = client.post("/api/users", json={**NEW_USER, "role": "owner"}, headers=admin_headers)
        assert bad_role.status_code == 400

    def test_duplicate_username_is_conflict(self, client, db_session, admin_headers):
        resp = client.post("/api/users", json={**NEW_USER, "username": "staff"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_manager_cannot_manage_users(self, client, db_session, manager_headers):
        resp = client.post("/api/users", json=NEW_USER, headers=manager_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "MANAGE_USERS"
        assert client.get("/api/users", headers=manager_headers).status_code == 403


class TestDeactivate:

    def test_deactivation_revokes_sessions(self, client, db_session, users, admin_headers):
        staff_token = get_auth_token(client, "staff", TEST_PASSWORD)

        resp = client.post(f"/api/users/{users['staff'].id}/deactivate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["sessions_revoked"] == 1

        assert fresh(db_session, users["staff"]).is_active is False
        assert client.get("/api/auth/me", headers=auth_headers(staff_token)).status_code == 401
        assert get_auth_token(client, "staff", TEST_PASSWORD) is None
        assert db_session.query(SessionToken).filter_by(user_id=users["staff"].id, is_revoked=False).count() == 0

    def test_cannot_deactivate_self(self, client, db_session, users, admin_headers):
        resp = client.post(f"/api/users/{users['admin'].id}/deactivate", headers=admin_headers)
        assert resp.status_code == 400

    def test_already_deactivated(self, client, db_session, users, admin_headers):
        client.post(f"/api/users/{users['staff'].id}/deactivate", headers=admin_headers)
        resp = client.post(f"/api/users/{users['staff'].id}/deactivate", headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_user(self, client, db_session, admin_headers):
        assert client.post("/api/users/4242/deactivate", headers=admin_headers).status_code == 404
