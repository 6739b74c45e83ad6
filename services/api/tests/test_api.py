"""
HTTP tests for the sheet and notification routes.

Run with: pytest tests/test_api.py -v
"""
import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from main import RateLimiter, create_app
from settings import Settings

JWT_SECRET = "test-secret"
ADMIN = {"x-api-key": "key-all"}
USERS_ONLY = {"x-api-key": "key-users"}


@pytest.fixture
def settings():
    return Settings(
        storage_backend="memory",
        jwt_secret=JWT_SECRET,
        notify_url="",
        allowed_origins="http://localhost:5173",
    )


@pytest.fixture
def client(settings, store):
    return TestClient(create_app(settings=settings, store=store))


def bearer(user_id="u1"):
    token = jwt.encode({"user_id": user_id, "exp": int(time.time()) + 600}, JWT_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


class TestAuthRequired:
    def test_missing_api_key(self, client):
        resp = client.get("/api/v1/sheets/Users")
        assert resp.status_code == 401
        assert resp.json()["message"] == "API key is required"

    def test_invalid_api_key(self, client):
        resp = client.get("/api/v1/sheets/Users", headers={"x-api-key": "nope"})
        assert resp.status_code == 401

    def test_sheet_not_in_allow_list(self, client):
        resp = client.get("/api/v1/sheets/Bookings", headers=USERS_ONLY)
        assert resp.status_code == 403

    def test_sheet_in_allow_list(self, client):
        assert client.get("/api/v1/sheets/Users", headers=USERS_ONLY).status_code == 200


class TestReadRoutes:
    def test_list_rows(self, client):
        resp = client.get("/api/v1/sheets/Users", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json() == [{"email": "a@b.com", "password": "pw", "login_count": 3}]
        assert "X-Request-ID" in resp.headers
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

    def test_list_rows_filtered(self, client):
        resp = client.get("/api/v1/sheets/Bookings", params={"packageId": "P2"}, headers=ADMIN)
        assert [r["booking_id"] for r in resp.json()] == ["B1", "B3"]

    def test_get_row(self, client):
        resp = client.get("/api/v1/sheets/Bookings/booking_id/B2", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["paid"] is False

    def test_get_row_not_found(self, client):
        resp = client.get("/api/v1/sheets/Bookings/booking_id/B9", headers=ADMIN)
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"

    def test_unknown_sheet(self, client):
        assert client.get("/api/v1/sheets/Nope", headers=ADMIN).status_code == 404


class TestWriteRoutes:
    def test_update_cell_then_read(self, client):
        resp = client.put(
            "/api/v1/sheets/Users/Email/a@b.com",
            json={"column": "login_count", "value": 4},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["range"] == "C2"

        rows = client.get("/api/v1/sheets/Users", headers=ADMIN).json()
        assert rows[0]["login_count"] == 4

    def test_update_unknown_column(self, client):
        resp = client.put(
            "/api/v1/sheets/Users/Email/a@b.com",
            json={"column": "nickname", "value": "x"},
            headers=ADMIN,
        )
        assert resp.status_code == 400
        assert resp.json()["available_headers"] == ["Email", "Password", "login_count"]

    def test_update_missing_row(self, client):
        resp = client.put(
            "/api/v1/sheets/Users/Email/nobody@x.com",
            json={"column": "login_count", "value": 1},
            headers=ADMIN,
        )
        assert resp.status_code == 404

    def test_update_requires_column(self, client):
        resp = client.put("/api/v1/sheets/Users/Email/a@b.com", json={"value": 1}, headers=ADMIN)
        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

    def test_update_rejects_object_value(self, client):
        resp = client.put(
            "/api/v1/sheets/Users/Email/a@b.com",
            json={"column": "login_count", "value": {"a": 1}},
            headers=ADMIN,
        )
        assert resp.status_code == 400

    def test_bulk_update(self, client, backend):
        resp = client.put(
            "/api/v1/sheets/Bookings/Booking ID/B2/bulk",
            json=[{"column": "event_id", "value": "E5"}, {"column": "paid", "value": True}],
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert backend.snapshot("Bookings")[2][1] == "E5"
        assert backend.snapshot("Bookings")[2][4] == "TRUE"

    def test_bulk_update_requires_array(self, client):
        resp = client.put("/api/v1/sheets/Bookings/Booking ID/B2/bulk", json=[], headers=ADMIN)
        assert resp.status_code == 400

    def test_create_row_from_object(self, client, backend):
        resp = client.post(
            "/api/v1/sheets/Users",
            json={"Email": "new@b.com", "Password": "pw", "nickname": "dropped"},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert backend.snapshot("Users")[-1] == ["new@b.com", "pw", ""]

    def test_create_row_from_array(self, client, backend):
        resp = client.post("/api/v1/sheets/Users", json=["arr@b.com", "pw", 1], headers=ADMIN)
        assert resp.status_code == 200
        assert backend.snapshot("Users")[-1] == ["arr@b.com", "pw", "1"]

    def test_create_empty_body(self, client):
        assert client.post("/api/v1/sheets/Users", json={}, headers=ADMIN).status_code == 400

    def test_delete(self, client, backend):
        resp = client.delete("/api/v1/sheets/Bookings/Booking ID/B1", headers=ADMIN)
        assert resp.status_code == 200
        assert len(backend.snapshot("Bookings")) == 3

    def test_delete_not_found(self, client, backend):
        before = backend.snapshot("Users")
        resp = client.delete("/api/v1/sheets/Users/Email/nobody@x.com", headers=ADMIN)
        assert resp.status_code == 404
        assert backend.snapshot("Users") == before


class TestNotificationRoutes:
    def test_requires_bearer_token(self, client):
        resp = client.get("/api/v1/notifications/seen", headers=ADMIN)
        assert resp.status_code == 401
        assert resp.json()["requiresReauth"] is True

    def test_mark_and_list_seen(self, client, backend):
        headers = {**ADMIN, **bearer("u1")}
        resp = client.post(
            "/api/v1/notifications/seen", json={"bookingIds": ["B1", "B2", "B1"]}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["count"] == 2

        again = client.post("/api/v1/notifications/seen", json={"bookingIds": ["B2", "B3"]}, headers=headers)
        assert again.json()["count"] == 1

        assert client.get("/api/v1/notifications/seen", headers=headers).json() == ["B1", "B2", "B3"]
        other = client.get("/api/v1/notifications/seen", headers={**ADMIN, **bearer("u2")})
        assert other.json() == []

    def test_unset_secret_rejects_forged_token(self, store, settings):
        settings.jwt_secret = ""
        client = TestClient(create_app(settings=settings, store=store))
        forged = jwt.encode({"user_id": "u1"}, "change-me", algorithm="HS256")
        resp = client.get(
            "/api/v1/notifications/seen",
            headers={**ADMIN, "Authorization": f"Bearer {forged}"},
        )
        assert resp.status_code == 401


class TestOps:
    def test_health(self, client):
        assert client.get("/healthz").json()["status"] == "ok"
        assert client.get("/health").json()["backend"] == "memory"

    def test_readyz(self, client):
        assert client.get("/readyz").status_code == 200

    def test_metrics_include_store_stats(self, client):
        client.get("/api/v1/sheets/Users", headers=ADMIN)
        body = client.get("/metrics").json()
        assert body["store"]["pending_writes"] == 0
        assert body["requests"]["by_endpoint"]["GET /api/v1/sheets/Users"] == 1


class TestRateLimiter:
    def test_blocks_after_limit(self):
        limiter = RateLimiter(read_limit=2, write_limit=1)
        assert limiter.check("1.1.1.1", "GET")[0]
        assert limiter.check("1.1.1.1", "GET")[0]
        allowed, retry_after = limiter.check("1.1.1.1", "GET")
        assert not allowed
        assert retry_after > 0

    def test_separate_clients(self):
        limiter = RateLimiter(write_limit=1)
        assert limiter.check("1.1.1.1", "PUT")[0]
        assert limiter.check("2.2.2.2", "PUT")[0]
        assert not limiter.check("1.1.1.1", "PUT")[0]

    def test_writes_share_one_budget_across_rows(self, store, settings):
        settings.rate_limit_write = 2
        client = TestClient(create_app(settings=settings, store=store))
        for email in ("a@b.com", "x@b.com"):
            client.delete(f"/api/v1/sheets/Users/Email/{email}", headers=ADMIN)

        resp = client.put(
            "/api/v1/sheets/Bookings/Booking ID/B1",
            json={"column": "paid", "value": True},
            headers=ADMIN,
        )
        assert resp.status_code == 429
        assert resp.headers["X-RateLimit-Limit"] == "2"

    def test_reads_and_writes_counted_separately(self):
        limiter = RateLimiter(read_limit=1, write_limit=1)
        assert limiter.check("1.1.1.1", "POST")[0]
        assert limiter.check("1.1.1.1", "GET")[0]
        assert not limiter.check("1.1.1.1", "DELETE")[0]

    def test_idle_clients_are_dropped(self):
        limiter = RateLimiter()
        start = datetime(2026, 1, 1, 12, 0, 0)
        for i in range(50):
            limiter.check(f"10.0.0.{i}", "PUT", now=start)
        assert limiter.tracked_clients() == 50

        limiter.check("10.0.1.1", "GET", now=start + timedelta(minutes=2))
        assert limiter.tracked_clients() == 1
