"""In-process stub adapters for the orders domain ports.

These stubs implement ``PaymentGatewayPort`` and ``DocumentStorePort``
without any network calls. They are intended for unit tests and local
development where deterministic behavior is useful and external services
are not required. Both record the calls they receive so tests can assert
which remote operations would have been issued.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .domain import DocumentStoreError, GatewayError, GatewayOrder, GatewayPayment


class PaymentGatewayStub:
    """Stub implementation of ``PaymentGatewayPort``.

    Orders get a random ``order_...`` id. Payments must be registered with
    ``add_payment`` before they can be fetched; unknown payment ids raise
    ``GatewayError`` like the real gateway's 400 response would.
    """

    def __init__(self):
        self.orders: Dict[str, GatewayOrder] = {}
        self.payments: Dict[str, GatewayPayment] = {}
        self.order_payments: Dict[str, List[str]] = {}
        self.calls: List[tuple] = []

    def create_order(self, amount_minor_units: int, currency: str, receipt: str) -> GatewayOrder:
        """Register a mock order.

        Args:
            amount_minor_units: Amount in minor units; must be positive.
            currency: ISO currency code.
            receipt: Merchant receipt token.

        Returns:
            GatewayOrder: The created order with status ``created``.

        Raises:
            GatewayError: When the amount is not positive.
        """
        self.calls.append(("create_order", amount_minor_units, currency, receipt))
        if amount_minor_units <= 0:
            raise GatewayError("The amount must be at least INR 1.00")
        order = GatewayOrder(
            id=f"order_{uuid.uuid4().hex[:14]}",
            amount=amount_minor_units,
            currency=currency,
            receipt=receipt,
            status="created",
        )
        self.orders[order.id] = order
        return order

    def ensure_configured(self) -> None:
        return None

    def add_payment(self, order_id: str, payment_id: Optional[str] = None, amount: Optional[int] = None,
                    status: str = "captured", method: str = "upi") -> GatewayPayment:
        """Simulate a checkout completing against ``order_id``."""
        order = self.orders.get(order_id)
        payment = GatewayPayment(
            id=payment_id or f"pay_{uuid.uuid4().hex[:14]}",
            amount=amount if amount is not None else (order.amount if order else 0),
            currency=order.currency if order else "INR",
            status=status,
            method=method,
        )
        self.payments[payment.id] = payment
        self.order_payments.setdefault(order_id, []).append(payment.id)
        return payment

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        self.calls.append(("fetch_payment", payment_id))
        try:
            return self.payments[payment_id]
        except KeyError:
            raise GatewayError("The id provided does not exist")

    def fetch_order_payments(self, order_id: str) -> List[GatewayPayment]:
        self.calls.append(("fetch_order_payments", order_id))
        return [self.payments[pid] for pid in self.order_payments.get(order_id, [])]


class InMemoryDocumentStore:
    """Stub implementation of ``DocumentStorePort`` backed by a dict.

    Documents carry ``$id``, ``$createdAt`` and ``$updatedAt`` like the real
    store. Reads and writes are counted in ``reads`` / ``writes``.
    """

    def __init__(self):
        self.documents: Dict[str, dict] = {}
        self.reads = 0
        self.writes = 0

    def ensure_configured(self) -> None:
        return None

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def list_documents(self, equal: dict, limit: int = 1) -> List[dict]:
        self.reads += 1
        found = [
            copy.deepcopy(doc)
            for doc in self.documents.values()
            if all(doc.get(k) == v for k, v in equal.items())
        ]
        return found[:limit]

    def create_document(self, document_id: str, data: dict) -> dict:
        self.writes += 1
        if document_id == "unique()":
            document_id = uuid.uuid4().hex[:20]
        if document_id in self.documents:
            raise DocumentStoreError("Document with the requested ID already exists.")
        now = self._now()
        doc = {**copy.deepcopy(data), "$id": document_id, "$createdAt": now, "$updatedAt": now}
        self.documents[document_id] = doc
        return copy.deepcopy(doc)

    def update_document(self, document_id: str, data: dict) -> dict:
        self.writes += 1
        doc = self.documents.get(document_id)
        if doc is None:
            raise DocumentStoreError("Document with the requested ID could not be found.")
        doc.update(copy.deepcopy(data))
        doc["$updatedAt"] = self._now()
        return copy.deepcopy(doc)
