"""HTTP adapter clients for the payment gateway and the document store.

This module implements concrete HTTP clients for the domain ports using
``httpx``:

- ``RazorpayGatewayClient`` talks to the gateway REST API with HTTP basic
  auth (key id / key secret).
- ``AppwriteDocumentStore`` talks to the document store REST API with the
  project id and an admin API key.

Both propagate ``X-Request-ID`` from the ContextVar set by the request-id
middleware. Each remote call is attempted exactly once; transport errors and
non-2xx answers are raised as ``GatewayError`` / ``DocumentStoreError``
carrying the upstream message, never the credentials.
"""

import json
import logging
from typing import List, Optional

import httpx
from django.conf import settings

from core.middleware import REQUEST_ID_CTX

from .domain import ConfigurationError, DocumentStoreError, GatewayError, GatewayOrder, GatewayPayment

logger = logging.getLogger("orders.http")


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build base headers including X-Request-ID and any extras.

    Args:
        extra: Optional dict of additional headers to include.

    Returns:
        dict: Final headers dictionary for the outgoing request.
    """
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _error_message(resp: httpx.Response) -> str:
    """Extract the upstream error text from a JSON error body."""
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict) and err.get("description"):
        return str(err["description"])
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP {resp.status_code}"


def _json_body(resp: httpx.Response, error_cls) -> dict:
    """Decode a 2xx body, raising ``error_cls`` when it is not a JSON object."""
    try:
        body = resp.json()
    except ValueError:
        raise error_cls(f"HTTP {resp.status_code} response is not valid JSON")
    if not isinstance(body, dict):
        raise error_cls(f"HTTP {resp.status_code} response is not a JSON object")
    return body


# ---------------- Payment gateway ---------------- #

def _payment_from_json(data) -> GatewayPayment:
    try:
        return GatewayPayment(
            id=data["id"],
            amount=int(data.get("amount") or 0),
            currency=data.get("currency") or "",
            status=data.get("status") or "",
            method=data.get("method") or "",
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise GatewayError(f"malformed payment in gateway response: {e!r}")


class RazorpayGatewayClient:
    """HTTP client for the payment gateway orders and payments API."""

    def __init__(self, key_id: str | None = None, key_secret: str | None = None,
                 base_url: str | None = None, timeout: float | None = None):
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        self.base_url = (base_url or settings.RAZORPAY_API_BASE).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def ensure_configured(self) -> None:
        if not (self.key_id and self.key_secret):
            raise ConfigurationError("payment gateway is not configured: missing RAZORPAY_KEY_ID or RAZORPAY_KEY_SECRET")

    def _call(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        """Send one authenticated request and return the decoded JSON body.

        Raises:
            ConfigurationError: If the key id or secret is missing; raised
                before any network activity.
            GatewayError: On transport errors or non-2xx responses.
        """
        self.ensure_configured()

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, auth=(self.key_id, self.key_secret)) as client:
                resp = client.request(method, url, json=payload, headers=_request_headers())
        except httpx.RequestError as e:
            logger.warning("gateway unreachable", extra={"path": path, "error": str(e)})
            raise GatewayError(f"payment gateway unreachable: {e}")

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("gateway error", extra={"path": path, "status": resp.status_code, "error": message})
            raise GatewayError(message)
        return _json_body(resp, GatewayError)

    def create_order(self, amount_minor_units: int, currency: str, receipt: str) -> GatewayOrder:
        """Create a gateway order.

        Args:
            amount_minor_units: Amount in minor units (paise for INR).
            currency: ISO currency code.
            receipt: Merchant receipt token (max 40 chars).

        Returns:
            GatewayOrder: The order registered by the gateway.
        """
        data = self._call(
            "POST",
            "/orders",
            {"amount": amount_minor_units, "currency": currency, "receipt": receipt, "payment_capture": 1},
        )
        if not data.get("id"):
            raise GatewayError("gateway order response has no id")
        return GatewayOrder(
            id=data["id"],
            amount=int(data.get("amount") or amount_minor_units),
            currency=data.get("currency") or currency,
            receipt=data.get("receipt") or receipt,
            status=data.get("status") or "created",
        )

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        return _payment_from_json(self._call("GET", f"/payments/{payment_id}"))

    def fetch_order_payments(self, order_id: str) -> List[GatewayPayment]:
        data = self._call("GET", f"/orders/{order_id}/payments")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise GatewayError("gateway payments response has no item list")
        return [_payment_from_json(item) for item in items]


# ---------------- Document store ---------------- #

class AppwriteDocumentStore:
    """HTTP client for one collection of the document store databases API.

    Notes:
        Queries use the JSON query syntax (``{"method": "equal", ...}``) sent
        as repeated ``queries[]`` parameters.
    """

    def __init__(self, endpoint: str | None = None, project_id: str | None = None,
                 api_key: str | None = None, database_id: str | None = None,
                 collection_id: str | None = None, timeout: float | None = None):
        self.endpoint = (endpoint or settings.APPWRITE_ENDPOINT or "").rstrip("/")
        self.project_id = project_id or settings.APPWRITE_PROJECT_ID
        self.api_key = api_key or settings.APPWRITE_API_KEY
        self.database_id = database_id or settings.APPWRITE_DATABASE_ID
        self.collection_id = collection_id or settings.APPWRITE_ORDERS_COLLECTION_ID
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    @property
    def documents_url(self) -> str:
        return f"{self.endpoint}/databases/{self.database_id}/collections/{self.collection_id}/documents"

    def ensure_configured(self) -> None:
        missing = [
            name
            for name, value in (
                ("APPWRITE_ENDPOINT", self.endpoint),
                ("APPWRITE_PROJECT_ID", self.project_id),
                ("APPWRITE_API_KEY", self.api_key),
                ("APPWRITE_DATABASE_ID", self.database_id),
                ("APPWRITE_ORDERS_COLLECTION_ID", self.collection_id),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"document store is not configured: missing {', '.join(missing)}")

    def _call(self, method: str, url: str, payload: Optional[dict] = None, params=None) -> dict:
        self.ensure_configured()
        headers = _request_headers({"X-Appwrite-Project": self.project_id, "X-Appwrite-Key": self.api_key})
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.request(method, url, json=payload, params=params, headers=headers)
        except httpx.RequestError as e:
            logger.warning("document store unreachable", extra={"method": method, "error": str(e)})
            raise DocumentStoreError(f"document store unreachable: {e}")

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("document store error", extra={"method": method, "status": resp.status_code, "error": message})
            raise DocumentStoreError(message)
        return _json_body(resp, DocumentStoreError)

    def list_documents(self, equal: dict, limit: int = 1) -> List[dict]:
        queries = [
            json.dumps({"method": "equal", "attribute": attr, "values": [value]})
            for attr, value in equal.items()
        ]
        queries.append(json.dumps({"method": "limit", "values": [limit]}))
        data = self._call("GET", self.documents_url, params=[("queries[]", q) for q in queries])
        return data.get("documents", [])

    def create_document(self, document_id: str, data: dict) -> dict:
        return self._call("POST", self.documents_url, {"documentId": document_id, "data": data})

    def update_document(self, document_id: str, data: dict) -> dict:
        return self._call("PATCH", f"{self.documents_url}/{document_id}", {"data": data})
