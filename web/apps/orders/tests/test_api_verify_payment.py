"""API tests for the verify-payment endpoint.

The happy path goes through the whole flow: an order is created through the
API, the stub gateway records a captured payment for it, and the callback
signed with the configured secret is posted back.
"""
import pytest

from apps.orders.domain import DocumentStoreError
from apps.orders.signing import compute_signature

CREATE_URL = "/api/orders/create/"
VERIFY_URL = "/api/orders/verify/"


def create_order(client, **overrides):
    body = {
        "buyerId": "user_1",
        "amount": 499,
        "items": [{"productRef": "TSHIRT-1", "quantity": 1, "unitPrice": 499}],
        "shippingAddress": {"name": "Asha Rao", "city": "Bengaluru", "postalCode": "560001"},
    }
    body.update(overrides)
    r = client.post(CREATE_URL, data=body, content_type="application/json")
    assert r.status_code == 201
    return r.json()["record"]["gatewayOrderId"]


def callback(settings, order_id, payment_id="pay_TEST123", **extra):
    body = {
        "gatewayOrderId": order_id,
        "gatewayPaymentId": payment_id,
        "clientSignature": compute_signature(settings.RAZORPAY_KEY_SECRET, order_id, payment_id),
    }
    body.update(extra)
    return body


def test_verify_payment_marks_order_paid(client, wired, settings):
    """A correctly signed callback for a captured payment marks the order paid."""
    gateway, store = wired
    order_id = create_order(client)
    gateway.add_payment(order_id, "pay_TEST123", method="card")

    r = client.post(VERIFY_URL, data=callback(settings, order_id, amount=499), content_type="application/json")

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["alreadyPaid"] is False
    record = body["record"]
    assert record["status"] == "paid"
    assert record["gatewayPaymentId"] == "pay_TEST123"
    assert record["paidAmountMinorUnits"] == 49900
    assert record["gatewayPaymentMethod"] == "card"
    assert record["paidAt"]


def test_verify_payment_is_idempotent(client, wired, settings):
    """Replaying the callback answers 200 without another write."""
    gateway, store = wired
    order_id = create_order(client)
    gateway.add_payment(order_id, "pay_TEST123")
    body = callback(settings, order_id)

    first = client.post(VERIFY_URL, data=body, content_type="application/json")
    writes = store.writes
    calls = len(gateway.calls)
    second = client.post(VERIFY_URL, data=body, content_type="application/json")

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["alreadyPaid"] is True
    assert second.json()["message"] == "Payment already verified"
    assert store.writes == writes
    assert len(gateway.calls) == calls


def test_verify_tampered_signature(client, wired, settings):
    gateway, store = wired
    order_id = create_order(client)
    body = callback(settings, order_id)
    body["clientSignature"] = "0" * 64

    r = client.post(VERIFY_URL, data=body, content_type="application/json")

    assert r.status_code == 400
    assert r.json()["message"] == "Invalid signature"
    doc = next(iter(store.documents.values()))
    assert doc["status"] == "payment_failed_signature"
    assert ("fetch_payment", "pay_TEST123") not in gateway.calls


@pytest.mark.parametrize("missing", ["gatewayOrderId", "gatewayPaymentId", "clientSignature"])
def test_verify_missing_fields(client, wired, settings, missing):
    gateway, store = wired
    body = callback(settings, "order_X")
    del body[missing]

    r = client.post(VERIFY_URL, data=body, content_type="application/json")

    assert r.status_code == 400
    assert missing in r.json()["message"]
    assert store.reads == 0


def test_verify_without_secret_is_server_error(client, wired, settings):
    gateway, store = wired
    body = callback(settings, "order_X")
    settings.RAZORPAY_KEY_SECRET = ""

    r = client.post(VERIFY_URL, data=body, content_type="application/json")

    assert r.status_code == 500
    assert r.json()["message"].startswith("Server misconfigured")
    assert store.reads == 0


def test_verify_unknown_order(client, wired, settings):
    r = client.post(VERIFY_URL, data=callback(settings, "order_UNKNOWN"), content_type="application/json")
    assert r.status_code == 404
    assert r.json()["message"] == "Order not found"


def test_verify_amount_mismatch(client, wired, settings):
    gateway, store = wired
    order_id = create_order(client)
    gateway.add_payment(order_id, "pay_TEST123", amount=100)

    r = client.post(VERIFY_URL, data=callback(settings, order_id, amount=499), content_type="application/json")

    assert r.status_code == 400
    assert r.json()["code"] == "AMOUNT_MISMATCH"
    doc = next(iter(store.documents.values()))
    assert doc["status"] == "payment_failed_amount_mismatch"


def test_verify_store_failure_on_update(client, wired, settings, monkeypatch):
    gateway, store = wired
    order_id = create_order(client)
    gateway.add_payment(order_id, "pay_TEST123")

    def boom(*a, **kw):
        raise DocumentStoreError("Server Error")

    monkeypatch.setattr(store, "update_document", boom)
    r = client.post(VERIFY_URL, data=callback(settings, order_id), content_type="application/json")

    assert r.status_code == 500
    assert r.json()["message"] == "Order update failed: Server Error"


def test_verify_ignores_malformed_echoed_order_fields(client, wired, settings):
    """Echoed buyer/items/address fields never block a signed, captured payment."""
    gateway, store = wired
    order_id = create_order(client)
    gateway.add_payment(order_id, "pay_TEST123")
    body = callback(
        settings,
        order_id,
        buyerId=42,
        items=[{"productRef": "", "quantity": 0}],
        shippingAddress="not an address",
    )

    r = client.post(VERIFY_URL, data=body, content_type="application/json")

    assert r.status_code == 200
    assert r.json()["record"]["status"] == "paid"
    assert '"buyerMatches":false' in r.json()["record"]["verificationDetail"]


def test_verify_signature_is_compared_exactly(client, wired, settings):
    gateway, store = wired
    order_id = create_order(client)
    gateway.add_payment(order_id, "pay_TEST123")
    body = callback(settings, order_id)
    body["clientSignature"] = f" {body['clientSignature']}\n"

    r = client.post(VERIFY_URL, data=body, content_type="application/json")

    assert r.status_code == 400
    assert r.json()["message"] == "Invalid signature"
