"""Transport-level behavior shared by the orders endpoints.

Liveness answers, method handling, request ids, body shape and size limits,
and throttling all come from the view layer and middleware, not the domain.
"""
import pytest
from rest_framework.throttling import ScopedRateThrottle


@pytest.mark.parametrize(
    "url, message",
    [
        ("/api/orders/ping/", "orders ok"),
        ("/api/orders/create/", "create-order is alive"),
        ("/api/orders/verify/", "verify-payment is alive"),
    ],
)
def test_liveness(client, url, message):
    r = client.get(url)
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": message}


def test_unsupported_method_uses_error_shape(client):
    r = client.put("/api/orders/create/", data={}, content_type="application/json")
    assert r.status_code == 405
    body = r.json()
    assert body["success"] is False
    assert "PUT" in body["message"]


def test_request_id_is_echoed(client):
    r = client.get("/api/orders/ping/", HTTP_X_REQUEST_ID="rid-123")
    assert r["X-Request-ID"] == "rid-123"


def test_request_id_is_generated(client):
    r = client.get("/api/orders/ping/")
    assert len(r["X-Request-ID"]) == 36


def test_non_object_body_is_rejected(client, wired):
    r = client.post("/api/orders/create/", data=[1, 2], content_type="application/json")
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "Request body must be a JSON object"}


def test_malformed_json_is_rejected(client, wired):
    r = client.post("/api/orders/verify/", data="{not json", content_type="application/json")
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_payload_too_large(client, wired, settings):
    settings.API_MAX_BYTES = 64
    r = client.post("/api/orders/create/", data={"buyerId": "x" * 200}, content_type="application/json")
    assert r.status_code == 413
    assert r.json() == {"success": False, "message": "Payload too large"}


def test_create_is_throttled(client, monkeypatch):
    monkeypatch.setattr(ScopedRateThrottle, "THROTTLE_RATES", {"orders_create": "2/min", "orders_verify": "2/min"})
    codes = [client.get("/api/orders/create/").status_code for _ in range(3)]
    assert codes == [200, 200, 429]


def test_unusable_request_id_is_replaced(client):
    r = client.get("/api/orders/ping/", HTTP_X_REQUEST_ID="x" * 500)
    assert len(r["X-Request-ID"]) == 36
