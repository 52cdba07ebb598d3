"""
HTTP tests for the API key service.

Uses FastAPI's TestClient against an app built on an in-memory database, with
the key service on a fixed clock.
"""
from datetime import timedelta

import pytest

from apikeys.errors import StoreError
from apikeys.expiry import utcnow
from apikeys.models import ApiKey

ANN = {"firstName": "Ann", "lastName": "Lee", "email": "ann@x.com"}


def create_user(client, body=None):
    response = client.post("/create-user", json=body or ANN)
    assert response.status_code == 200, response.text
    return response.json()["data"]


# ==================== /create-user ====================

class TestCreateUser:

    def test_create_user(self, client, clock):
        response = client.post("/create-user", json=ANN)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User and API key created"
        data = body["data"]
        assert isinstance(data["userId"], int)
        assert data["apiKey"].startswith("sk-itumy-v1-")
        assert data["out_of_date"] == "2026-02-14T12:00:00+00:00"

    @pytest.mark.parametrize("body", [
        {"lastName": "Lee", "email": "ann@x.com"},
        {"firstName": "Ann", "email": "ann@x.com"},
        {"firstName": "Ann", "lastName": "Lee"},
        {"firstName": "   ", "lastName": "Lee", "email": "ann@x.com"},
        {"firstName": "Ann", "lastName": "Lee", "email": "not-an-email"},
    ])
    def test_invalid_body_is_400(self, client, body):
        response = client.post("/create-user", json=body)

        assert response.status_code == 400
        payload = response.json()
        assert payload["success"] is False
        assert payload["errors"]

    def test_store_failure_is_500(self, client, app, monkeypatch):
        def broken(**kwargs):
            raise StoreError("Could not create user and API key")

        monkeypatch.setattr(app.state.key_service, "issue_for", broken)

        response = client.post("/create-user", json=ANN)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Could not create user and API key"}


# ==================== /checkapi ====================

class TestCheckApi:

    def test_valid_key(self, client):
        issued = create_user(client)

        response = client.post("/checkapi", json={"apiKey": issued["apiKey"]})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["valid"] is True
        data = body["data"]
        assert data["apiKey"] == issued["apiKey"]
        assert data["status"] == "active"
        assert data["out_of_date"] == issued["out_of_date"]
        assert data["user"] == {"id": issued["userId"], "first_name": "Ann", "email": "ann@x.com"}

    @pytest.mark.parametrize("body", [{}, {"apiKey": ""}, {"apiKey": "   "}, {"apiKey": None}])
    def test_missing_key_is_400(self, client, body):
        response = client.post("/checkapi", json=body)

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["valid"] is False

    def test_wrong_type_is_400_with_valid_false(self, client):
        response = client.post("/checkapi", json={"apiKey": 12345})

        assert response.status_code == 400
        assert response.json()["valid"] is False

    def test_unknown_key_is_401(self, client):
        response = client.post("/checkapi", json={"apiKey": "sk-itumy-v1-1_nope"})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "valid": False,
            "message": "API key is invalid or inactive",
        }

    def test_inactive_key_looks_like_unknown_key(self, client, db):
        issued = create_user(client)
        with db.session_scope() as session:
            session.query(ApiKey).filter_by(api_key=issued["apiKey"]).one().is_active = False

        inactive = client.post("/checkapi", json={"apiKey": issued["apiKey"]})
        unknown = client.post("/checkapi", json={"apiKey": "sk-itumy-v1-1_nope"})

        assert inactive.status_code == unknown.status_code == 401
        assert inactive.json() == unknown.json()

    def test_check_is_not_cached(self, client):
        issued = create_user(client)
        response = client.post("/checkapi", json={"apiKey": issued["apiKey"]})
        assert response.headers["Cache-Control"] == "no-store"


# ==================== ADMIN AUTH ====================

class TestAdminAuth:

    def test_register_and_login(self, client):
        response = client.post("/admin/register", json={"email": "root@example.com", "password": "secret123"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert isinstance(body["adminId"], int)

        response = client.post("/admin/login", json={"email": "root@example.com", "password": "secret123"})
        assert response.status_code == 200
        assert response.json()["token"]

    def test_duplicate_register_is_400(self, client):
        body = {"email": "root@example.com", "password": "secret123"}
        assert client.post("/admin/register", json=body).status_code == 200

        response = client.post("/admin/register", json=body)

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.parametrize("body", [
        {"email": "root@example.com", "password": "12345"},
        {"email": "not-an-email", "password": "secret123"},
        {"email": "root@example.com"},
    ])
    def test_invalid_register_is_400(self, client, body):
        assert client.post("/admin/register", json=body).status_code == 400

    def test_bad_credentials_are_401_with_one_message(self, client, admin_token):
        wrong_password = client.post("/admin/login", json={"email": "admin@example.com", "password": "nope-nope"})
        unknown_email = client.post("/admin/login", json={"email": "ghost@example.com", "password": "secret123"})

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()
        assert wrong_password.json()["message"] == "Invalid email or password"

    def test_login_missing_password_is_400(self, client):
        assert client.post("/admin/login", json={"email": "admin@example.com"}).status_code == 400


# ==================== /admin/dashboard ====================

class TestDashboard:

    def test_dashboard_lists_accounts(self, client, admin_headers, clock):
        first = create_user(client)
        clock.advance(minutes=1)
        second = create_user(client, {"firstName": "Bo", "lastName": "Ng", "email": "bo@x.com"})

        response = client.get("/admin/dashboard", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["total"] == 2
        assert [u["user_id"] for u in body["users"]] == [second["userId"], first["userId"]]
        row = body["users"][1]
        assert row["first_name"] == "Ann"
        assert row["out_of_date"] == first["out_of_date"] == "2026-02-14T12:00:00+00:00"
        assert row["created_at"] == "2026-01-15T12:00:00+00:00"
        assert row["last_login"] == "2026-01-15T12:00:00+00:00"
        assert row["last_name"] == "Lee"
        assert row["api_key"] == first["apiKey"]
        assert row["is_active"] is True
        assert row["status"] == "active"

    def test_dashboard_sweeps_expired_keys(self, client, admin_headers, db, clock):
        issued = create_user(client)
        with db.session_scope() as session:
            key = session.query(ApiKey).filter_by(api_key=issued["apiKey"]).one()
            key.out_of_date = clock.now - timedelta(days=1)

        # Until the sweep runs the flag alone decides
        assert client.post("/checkapi", json={"apiKey": issued["apiKey"]}).status_code == 200

        row = client.get("/admin/dashboard", headers=admin_headers).json()["users"][0]
        assert row["status"] == "inactive"
        assert row["is_active"] is False

        assert client.post("/checkapi", json={"apiKey": issued["apiKey"]}).status_code == 401

    def test_dashboard_sweeps_idle_accounts(self, client, admin_headers, config, clock):
        config.inactivity_days = 10
        issued = create_user(client)
        clock.advance(days=11)

        row = client.get("/admin/dashboard", headers=admin_headers).json()["users"][0]

        assert row["status"] == "inactive"
        assert client.post("/checkapi", json={"apiKey": issued["apiKey"]}).status_code == 401

    def test_validation_keeps_account_alive(self, client, admin_headers, clock):
        issued = create_user(client)
        clock.advance(days=20)
        assert client.post("/checkapi", json={"apiKey": issued["apiKey"]}).status_code == 200
        clock.advance(days=9)

        row = client.get("/admin/dashboard", headers=admin_headers).json()["users"][0]

        assert row["status"] == "active"

    def test_dashboard_not_cached(self, client, admin_headers):
        response = client.get("/admin/dashboard", headers=admin_headers)
        assert response.headers["Cache-Control"] == "no-store"


# ==================== SESSION CHECKS ====================

class TestAdminSession:

    def test_missing_header_is_401(self, client):
        response = client.get("/admin/dashboard")

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Unauthorized"}

    @pytest.mark.parametrize("header", ["Token abc", "Bearer", "Bearer a b", "bearer abc"])
    def test_malformed_header_is_401(self, client, admin_token, header):
        response = client.get("/admin/dashboard", headers={"Authorization": header})

        assert response.status_code == 401
        assert response.json()["message"] in ("Invalid token format", "Unauthorized")

    def test_garbage_token_is_401(self, client):
        response = client.get("/admin/dashboard", headers={"Authorization": "Bearer not.a.token"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    def test_expired_token_is_401(self, client, auth_manager):
        admin_id = auth_manager.register("old@example.com", "secret123")
        token = auth_manager.create_session_token(admin_id, "old@example.com", now=utcnow() - timedelta(hours=9))

        response = client.get("/admin/dashboard", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_delete_requires_session(self, client):
        assert client.delete("/admin/user/1").status_code == 401


# ==================== DELETE /admin/user/{id} ====================

class TestDeleteUser:

    def test_delete_unknown_user_is_404(self, client, admin_headers):
        response = client.delete("/admin/user/999", headers=admin_headers)

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "User not found"}

    def test_delete_id_beyond_integer_range_is_404(self, client, admin_headers):
        response = client.delete("/admin/user/99999999999999999999", headers=admin_headers)

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "User not found"}

    def test_delete_user(self, client, admin_headers):
        issued = create_user(client)

        response = client.delete(f"/admin/user/{issued['userId']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "User deleted"}

        dashboard = client.get("/admin/dashboard", headers=admin_headers).json()
        assert dashboard["total"] == 0
        assert client.post("/checkapi", json={"apiKey": issued["apiKey"]}).status_code == 401

    def test_non_integer_id_is_400(self, client, admin_headers):
        assert client.delete("/admin/user/abc", headers=admin_headers).status_code == 400


# ==================== MISC ====================

def test_landing_page(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert response.headers["X-Frame-Options"] == "DENY"


def test_unknown_route_is_404(client):
    response = client.get("/no-such-page")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_full_flow(client, admin_headers, db, clock):
    """Create, check, expire, sweep, delete."""
    issued = create_user(client)
    assert issued["out_of_date"] == "2026-02-14T12:00:00+00:00"

    check = client.post("/checkapi", json={"apiKey": issued["apiKey"]}).json()
    assert check["valid"] is True
    assert check["data"]["user"]["first_name"] == "Ann"

    with db.session_scope() as session:
        session.query(ApiKey).filter_by(api_key=issued["apiKey"]).one().out_of_date = clock.now - timedelta(days=1)

    users = client.get("/admin/dashboard", headers=admin_headers).json()["users"]
    assert users[0]["status"] == "inactive"
    assert client.post("/checkapi", json={"apiKey": issued["apiKey"]}).status_code == 401

    assert client.delete(f"/admin/user/{issued['userId']}", headers=admin_headers).status_code == 200
    assert client.get("/admin/dashboard", headers=admin_headers).json()["total"] == 0
