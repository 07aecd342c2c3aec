"""Tests for the record <-> document mapping and the repository lookups."""
from datetime import datetime, timezone

from apps.orders.adapters import InMemoryDocumentStore
from apps.orders.domain import LineItem, OrderRecord, ShippingAddress
from apps.orders.repository import OrderRepository, from_document, to_document


def make_record(**overrides):
    fields = dict(
        gateway_order_id="order_ABC",
        buyer_id="user_1",
        amount_minor_units=49900,
        currency="INR",
        payment_method="gateway",
        status="created",
        receipt="rcpt_1",
        items=[LineItem("TSHIRT-1", 2, 249.5, {"size": "M"})],
        shipping_addresses=[
            ShippingAddress(name="Home", city="Pune", country="IN"),
            ShippingAddress(name="Office", city="Mumbai", country="IN"),
        ],
        primary_address_index=1,
        created_at=datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return OrderRecord(**fields)


def test_document_uses_primary_address_and_both_item_forms():
    doc = to_document(make_record())

    assert doc["gatewayOrderId"] == "order_ABC"
    assert doc["itemsSummary"] == "TSHIRT-1 x2 [size=M] @ 249.5"
    assert '"productRef":"TSHIRT-1"' in doc["itemsJson"]
    assert doc["shippingName"] == "Office"
    assert doc["shippingCity"] == "Mumbai"
    assert doc["createdAt"] == "2026-10-18T09:00:00+00:00"
    assert doc["paidAt"] is None


def test_partial_document_only_has_requested_fields():
    doc = to_document(make_record(status="paid"), ["status", "gateway_payment_id"])
    assert doc == {"status": "paid", "gatewayPaymentId": None}


def test_document_maps_back_to_record():
    record = from_document({**to_document(make_record()), "$id": "doc1"})

    assert record.local_id == "doc1"
    assert record.items[0].variant == {"size": "M"}
    assert record.primary_address.name == "Office"
    assert record.created_at == datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


def test_find_returns_single_match_or_none():
    store = InMemoryDocumentStore()
    repo = OrderRepository(store)
    created = repo.create(make_record())

    found = repo.find_by_gateway_order_id("order_ABC")
    assert found.local_id == created.local_id
    assert repo.find_by_gateway_order_id("order_OTHER") is None


def test_update_writes_only_listed_fields():
    store = InMemoryDocumentStore()
    repo = OrderRepository(store)
    record = repo.create(make_record())
    record.status = "paid"
    record.buyer_id = "someone_else"

    repo.update(record, ["status"])

    doc = store.documents[record.local_id]
    assert doc["status"] == "paid"
    assert doc["buyerId"] == "user_1"
