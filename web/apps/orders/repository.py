"""Repository layer for persisting order records.

This module maps ``OrderRecord`` domain objects to the flat documents kept
in the document store and back. It intentionally keeps a thin interface so
the domain layer is not coupled to the store's document format.
"""

import json
from datetime import datetime
from typing import List, Optional

from . import normalization
from .domain import DocumentStorePort, LineItem, OrderRecord, ShippingAddress

UNIQUE_ID = "unique()"

# record attribute -> document attribute
SCALAR_FIELDS = {
    "gateway_order_id": "gatewayOrderId",
    "buyer_id": "buyerId",
    "amount_minor_units": "amountMinorUnits",
    "currency": "currency",
    "payment_method": "paymentMethod",
    "status": "status",
    "receipt": "receipt",
    "primary_address_index": "primaryAddressIndex",
    "gateway_payment_id": "gatewayPaymentId",
    "gateway_signature": "gatewaySignature",
    "paid_amount_minor_units": "paidAmountMinorUnits",
    "gateway_payment_method": "gatewayPaymentMethod",
    "gateway_payment_status": "gatewayPaymentStatus",
    "verification_detail": "verificationDetail",
}
DATETIME_FIELDS = {
    "created_at": "createdAt",
    "paid_at": "paidAt",
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _items_from_json(raw: Optional[str]) -> List[LineItem]:
    if not raw:
        return []
    return [
        LineItem(
            product_ref=d.get("productRef", ""),
            quantity=d.get("quantity", 1),
            unit_price=d.get("unitPrice"),
            variant=d.get("variant") or {},
        )
        for d in json.loads(raw)
    ]


def _addresses_from_json(raw: Optional[str]) -> List[ShippingAddress]:
    if not raw:
        return []
    keys = normalization.ADDRESS_FIELDS.keys()
    return [ShippingAddress(**{k: d.get(k) or "" for k in keys}) for d in json.loads(raw)]


def _field_document(record: OrderRecord, name: str) -> dict:
    """Document attributes produced by a single record attribute."""
    if name in SCALAR_FIELDS:
        return {SCALAR_FIELDS[name]: getattr(record, name)}
    if name in DATETIME_FIELDS:
        return {DATETIME_FIELDS[name]: _iso(getattr(record, name))}
    if name == "items":
        return {
            "itemsSummary": normalization.summarize_items(record.items),
            "itemsJson": normalization.serialize_items(record.items),
        }
    if name in ("shipping_addresses", "primary_address"):
        doc = {"shippingAddressesJson": normalization.serialize_addresses(record.shipping_addresses)}
        if record.shipping_addresses:
            doc.update(normalization.flatten_address(record.primary_address))
        return doc
    raise KeyError(name)


def to_document(record: OrderRecord, fields: Optional[List[str]] = None) -> dict:
    """Serialize a record (or a subset of its attributes) into a document.

    Args:
        record: The record to serialize.
        fields: Record attribute names to include; all when None.

    Returns:
        dict: Store attributes keyed by their camelCase document names.
    """
    if fields is None:
        fields = [*SCALAR_FIELDS, *DATETIME_FIELDS, "items", "shipping_addresses"]
    doc: dict = {}
    for name in fields:
        doc.update(_field_document(record, name))
    return doc


def from_document(doc: dict) -> OrderRecord:
    kwargs = {name: doc.get(key) for name, key in SCALAR_FIELDS.items()}
    kwargs.update({name: _parse_dt(doc.get(key)) for name, key in DATETIME_FIELDS.items()})
    kwargs["primary_address_index"] = kwargs["primary_address_index"] or 0
    kwargs["amount_minor_units"] = kwargs["amount_minor_units"] or 0
    kwargs["receipt"] = kwargs["receipt"] or ""
    return OrderRecord(
        items=_items_from_json(doc.get("itemsJson")),
        shipping_addresses=_addresses_from_json(doc.get("shippingAddressesJson")),
        local_id=doc.get("$id"),
        **kwargs,
    )


def record_payload(record: OrderRecord) -> dict:
    """Public JSON representation of a record, as returned by the API."""
    return {"localId": record.local_id, **to_document(record)}


class OrderRepository:
    """Repository that persists ``OrderRecord`` objects in a document store.

    The repository exposes lookup by gateway order id, which is the unique
    business key of a record, plus create and partial update.
    """

    def __init__(self, store: DocumentStorePort):
        self.store = store

    def ensure_configured(self) -> None:
        self.store.ensure_configured()

    def find_by_gateway_order_id(self, gateway_order_id: str) -> Optional[OrderRecord]:
        """Return the record for ``gateway_order_id`` or None.

        Raises:
            DocumentStoreError: When the store cannot be queried.
        """
        docs = self.store.list_documents({"gatewayOrderId": gateway_order_id}, limit=1)
        return from_document(docs[0]) if docs else None

    def create(self, record: OrderRecord) -> OrderRecord:
        """Persist a new record and attach the store-assigned id to it."""
        doc = self.store.create_document(UNIQUE_ID, to_document(record))
        record.local_id = doc.get("$id")
        return record

    def update(self, record: OrderRecord, fields: Optional[List[str]] = None) -> OrderRecord:
        """Write ``fields`` (all attributes when None) of an existing record."""
        if not record.local_id:
            raise ValueError("record has no local id")
        self.store.update_document(record.local_id, to_document(record, fields))
        return record
