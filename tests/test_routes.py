"""
HTTP tests through the Flask test client; outbound calls are patched.
"""

import hashlib
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest

from chai_orders.errors import CourierTimeoutError, PersistenceError


@pytest.fixture
def admin_headers(components):
    components["auth_service"].create_admin("owner@example.com", "pw123456", "Owner")
    token = components["auth_service"].login("owner@example.com", "pw123456")["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def courier(components):
    mock = MagicMock()
    mock.transform_order.return_value = {"order_id": "GG-1"}
    mock.create_order.return_value = {"order_id": 321}
    components["order_service"].courier = mock
    return mock


def sign(payload, key="TESTKEY", salt="TESTSALT"):
    udfs = [payload.get(f"udf{i}", "") for i in range(10, 0, -1)]
    parts = [salt, payload["status"], *udfs, payload["email"], payload["firstname"],
             payload["productinfo"], payload["amount"], payload["txnid"], key]
    payload["hash"] = hashlib.sha512("|".join(parts).encode("utf-8")).hexdigest()
    return payload


def test_health(client):
    assert client.get("/health").get_json()["success"] is True


class TestCheckout:
    def test_creates_and_registers(self, client, courier):
        resp = client.post("/api/orders", json=_payload())

        body = resp.get_json()
        assert resp.status_code == 200
        assert body["data"]["total_amount"] == 1000.0
        assert body["data"]["courier_order_id"] == "321"
        assert "integration_error" not in body["data"]

    def test_courier_failure_is_reported(self, client, courier, components):
        courier.create_order.side_effect = CourierTimeoutError()
        body = client.post("/api/orders", json=_payload()).get_json()

        assert body["success"] is True
        assert body["data"]["integration_error"] == "Courier service timed out"
        assert components["order_store"].get_order(body["data"]["order_id"]) is not None

    @pytest.mark.parametrize("path", ["/api/orders", "/api/payment/initiate", "/api/auth/login"])
    def test_non_object_body_is_rejected(self, client, path):
        resp = client.post(path, json=[1, 2])

        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_missing_fields(self, client):
        payload = _payload()
        del payload["phone"]
        resp = client.post("/api/orders", json=payload)

        assert resp.status_code == 400
        assert resp.get_json()["errors"] == ["phone"]


class TestAdminRoutes:
    def test_requires_token(self, client):
        assert client.get("/api/orders").status_code == 401
        assert client.get("/api/orders", headers={"Authorization": "Bearer junk"}).status_code == 401

    def test_list_summary_delete(self, client, courier, admin_headers):
        number = client.post("/api/orders", json=_payload()).get_json()["data"]["order_number"]

        rows = client.get("/api/orders", headers=admin_headers).get_json()["data"]
        assert [r["id"] for r in rows] == [number]
        summary = client.get("/api/orders/summary", headers=admin_headers).get_json()["data"]
        assert summary["total_orders"] == 1

        assert client.delete(f"/api/orders/{number}", headers=admin_headers).status_code == 200
        assert client.delete(f"/api/orders/{number}", headers=admin_headers).status_code == 404

    def test_shipment_conflict(self, client, courier, admin_headers):
        order_id = client.post("/api/orders", json=_payload()).get_json()["data"]["order_id"]
        resp = client.post(f"/api/orders/{order_id}/create-shipment", headers=admin_headers)
        assert resp.status_code == 409

    def test_tracking_without_shipment(self, client, courier):
        order_id = client.post("/api/orders", json=_payload()).get_json()["data"]["order_id"]
        assert client.get(f"/api/orders/{order_id}/tracking").status_code == 409

    def test_login_route(self, client, admin_headers):
        resp = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong"})
        assert resp.status_code == 401
        me = client.get("/api/auth/me", headers=admin_headers).get_json()
        assert me["data"]["email"] == "owner@example.com"


class TestPaymentRoutes:
    def _initiate(self, client):
        with patch("chai_orders.services.easebuzz_service.requests.post") as post:
            post.return_value = MagicMock(json=MagicMock(return_value={"status": 1, "data": "ACCESS"}))
            resp = client.post("/api/payment/initiate", json=_payload())
        params = post.call_args.kwargs["data"]
        return resp.get_json()["data"], params

    def test_initiate_requires_valid_email(self, client):
        payload = _payload()
        payload["email"] = "not-an-email"
        assert client.post("/api/payment/initiate", json=payload).status_code == 400

    def test_initiate_uses_callback_url(self, client):
        data, params = self._initiate(client)

        assert data["access_key"] == "ACCESS"
        assert params["surl"] == "http://api.test/api/payment/callback"
        assert params["furl"] == params["surl"]

    def test_callback_success_redirect(self, client, components):
        data, params = self._initiate(client)
        callback = sign({k: params[k] for k in ("txnid", "amount", "productinfo", "firstname", "email", "udf1", "udf2")}
                        | {"status": "success"})

        resp = client.post("/api/payment/callback", data=callback)

        assert resp.status_code == 302
        location = urlparse(resp.headers["Location"])
        assert location.path == "/payment/success"
        assert parse_qs(location.query)["order"] == [data["order_number"]]
        order = components["order_store"].get_order_by_number(data["order_number"])
        assert order.payment_status == "completed"

    def test_callback_failure_redirect_via_get(self, client):
        _, params = self._initiate(client)
        callback = sign({k: params[k] for k in ("txnid", "amount", "productinfo", "firstname", "email", "udf1", "udf2")}
                        | {"status": "failure"})

        resp = client.get("/api/payment/callback", query_string=callback)

        assert urlparse(resp.headers["Location"]).path == "/payment/failure"

    def test_callback_bad_hash(self, client, components):
        data, params = self._initiate(client)
        callback = sign({k: params[k] for k in ("txnid", "amount", "productinfo", "firstname", "email", "udf1", "udf2")}
                        | {"status": "failure"})
        callback["status"] = "success"

        resp = client.post("/api/payment/callback", data=callback)

        assert resp.status_code == 400
        order = components["order_store"].get_order_by_number(data["order_number"])
        assert order.payment_status == "pending"

    def test_callback_storage_failure_redirects(self, client, components):
        _, params = self._initiate(client)
        callback = sign({k: params[k] for k in ("txnid", "amount", "productinfo", "firstname", "email", "udf1", "udf2")}
                        | {"status": "success"})

        with patch.object(components["payment_service"], "verify_callback",
                          side_effect=PersistenceError("database is locked")):
            resp = client.post("/api/payment/callback", data=callback)

        assert resp.status_code == 302
        assert resp.headers["Location"] == "http://shop.test/payment/failure?error=callback_failed"
        assert b"database is locked" not in resp.data

    def test_status_and_verify(self, client):
        data, _ = self._initiate(client)
        txnid = data["transaction_id"]

        status = client.get(f"/api/payment/status/{txnid}").get_json()["data"]
        assert status["status"] == "initiated"
        assert client.post("/api/payment/verify", json={}).status_code == 400
        assert client.post("/api/payment/verify", json={"txnid": "NOPE"}).status_code == 404


def _payload():
    return {
        "name": "Asha Patil",
        "phone": "9876543210",
        "email": "asha@example.com",
        "street": "12 Station Road",
        "city": "Shirdi",
        "taluka": "Rahata",
        "district": "Ahmednagar",
        "pincode": "423109",
        "product": "Gulacha Chaha",
        "price": "500",
        "qty": "2",
        "payment": "cod",
    }
