"""Domain models, ports and service for payment orders.

This module contains the dataclasses used as DTOs for order records and
gateway responses, protocol definitions (ports) for the two external
dependencies (the payment gateway and the document store), and the domain
service that creates orders and reconciles verified payments.

The service never touches the network directly: every remote call goes
through a port, so views and tests can inject HTTP clients or in-process
stubs interchangeably.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Protocol

from . import normalization
from .signing import signature_matches

logger = logging.getLogger("orders.service")


# ---- Enums ----
class OrderStatus(str, Enum):
    """Enumeration of the stored order statuses.

    Non-captured gateway states are stored as ``payment_<status>`` and are
    therefore not members of this enum.
    """

    CREATED = "created"
    PENDING = "pending"
    PAID = "paid"
    PAYMENT_FAILED_SIGNATURE = "payment_failed_signature"
    PAYMENT_FAILED_AMOUNT_MISMATCH = "payment_failed_amount_mismatch"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    GATEWAY = "gateway"
    COD = "cod"


# ---- Errors ----
class OrderFlowError(ValueError):
    """Client or business-state failure with an HTTP status attached.

    Attributes:
        code: Short machine-readable code (e.g. ``INVALID_SIGNATURE``).
        message: Human-readable message returned to the caller.
        status_code: HTTP status the views should answer with.
    """

    def __init__(self, code: str, message: str, status_code: int = 400):
        super().__init__(code)
        self.code = code
        self.message = message
        self.status_code = status_code


class ConfigurationError(RuntimeError):
    """A required credential or setting is missing."""


class GatewayError(RuntimeError):
    """The payment gateway failed or rejected a request."""


class DocumentStoreError(RuntimeError):
    """The document store failed or rejected a request."""


class OrderNotSavedError(DocumentStoreError):
    """The record could not be saved after the gateway order was created.

    The gateway order is not rolled back; it is carried here so the caller
    can report its id for later reconciliation.
    """

    def __init__(self, message: str, gateway_order: Optional["GatewayOrder"] = None):
        super().__init__(message)
        self.gateway_order = gateway_order


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class LineItem:
    """A single line item of an order.

    Attributes:
        product_ref: Catalog reference of the product.
        quantity: Number of units.
        unit_price: Unit price in major currency units, as sent by the client.
        variant: Variant attributes such as ``{"size": "M"}``.
    """

    product_ref: str
    quantity: int = 1
    unit_price: Optional[float] = None
    variant: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ShippingAddress:
    name: str = ""
    phone: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = ""


@dataclass(frozen=True)
class GatewayOrder:
    """Order object returned by the gateway's create-order call."""

    id: str
    amount: int
    currency: str
    receipt: str
    status: str

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "currency": self.currency,
            "receipt": self.receipt,
            "status": self.status,
        }


@dataclass(frozen=True)
class GatewayPayment:
    """Payment details returned by the gateway's fetch-payment call."""

    id: str
    amount: int
    currency: str
    status: str
    method: str = ""

    @property
    def captured(self) -> bool:
        return self.status == "captured"


@dataclass
class OrderRecord:
    """Order record as persisted in the document store.

    ``amount_minor_units`` is the canonical amount; every comparison is done
    in minor units. ``local_id`` is assigned by the store and stays ``None``
    until the record has been created.
    """

    gateway_order_id: str
    buyer_id: str
    amount_minor_units: int
    currency: str
    payment_method: str = PaymentMethod.GATEWAY.value
    status: str = OrderStatus.CREATED.value
    receipt: str = ""
    items: List[LineItem] = field(default_factory=list)
    shipping_addresses: List[ShippingAddress] = field(default_factory=list)
    primary_address_index: int = 0
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None
    paid_amount_minor_units: Optional[int] = None
    gateway_payment_method: Optional[str] = None
    gateway_payment_status: Optional[str] = None
    verification_detail: Optional[str] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    local_id: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID.value

    @property
    def primary_address(self) -> ShippingAddress:
        return self.shipping_addresses[self.primary_address_index]


@dataclass(frozen=True)
class OrderDraft:
    """Validated order intent handed over by the view to the service."""

    buyer_id: str
    currency: str
    items: List[LineItem]
    shipping_addresses: List[ShippingAddress]
    primary_address_index: int = 0
    payment_method: PaymentMethod = PaymentMethod.GATEWAY
    amount: Optional[float] = None
    amount_minor_units: Optional[int] = None


@dataclass(frozen=True)
class PaymentCallback:
    """Payment callback fields submitted by the client after checkout."""

    gateway_order_id: str
    gateway_payment_id: str
    client_signature: str
    buyer_id: Optional[str] = None
    amount: Optional[float] = None
    amount_minor_units: Optional[int] = None


@dataclass(frozen=True)
class CreateOrderResult:
    record: OrderRecord
    gateway_order: Optional[GatewayOrder]
    created: bool


@dataclass(frozen=True)
class VerificationResult:
    record: OrderRecord
    already_paid: bool


# ---- Ports (DIP) ----
class PaymentGatewayPort(Protocol):
    """Port describing the payment gateway operations used by the domain."""

    def ensure_configured(self) -> None:
        """Raise ``ConfigurationError`` when credentials are missing."""
        raise NotImplementedError()

    def create_order(self, amount_minor_units: int, currency: str, receipt: str) -> GatewayOrder:
        """Create a remote payment order.

        Args:
            amount_minor_units: Amount in the smallest currency unit.
            currency: ISO currency code, e.g. ``INR``.
            receipt: Merchant receipt token.

        Returns:
            GatewayOrder: The order as registered by the gateway.

        Raises:
            GatewayError: When the gateway rejects or cannot serve the call.
            ConfigurationError: When gateway credentials are missing.
        """
        raise NotImplementedError()

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """Fetch full payment details by gateway payment id."""
        raise NotImplementedError()

    def fetch_order_payments(self, order_id: str) -> List[GatewayPayment]:
        """List every payment attempt registered against a gateway order."""
        raise NotImplementedError()


class DocumentStorePort(Protocol):
    """Port describing the document store operations used by the domain.

    The store is bound to a single database/collection pair at construction
    time. Documents are plain dicts; the store-assigned id is exposed under
    the ``$id`` key.
    """

    def ensure_configured(self) -> None:
        """Raise ``ConfigurationError`` when the store is not configured."""
        raise NotImplementedError()

    def list_documents(self, equal: dict, limit: int = 1) -> List[dict]:
        """Return documents whose attributes equal every ``equal`` entry."""
        raise NotImplementedError()

    def create_document(self, document_id: str, data: dict) -> dict:
        """Create a document; ``document_id`` may be ``"unique()"``."""
        raise NotImplementedError()

    def update_document(self, document_id: str, data: dict) -> dict:
        """Patch the given attributes of an existing document."""
        raise NotImplementedError()


class OrderRepositoryPort(Protocol):
    def ensure_configured(self) -> None: ...

    def find_by_gateway_order_id(self, gateway_order_id: str) -> Optional[OrderRecord]: ...

    def create(self, record: OrderRecord) -> OrderRecord: ...

    def update(self, record: OrderRecord, fields: Optional[List[str]] = None) -> OrderRecord: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---- Domain service ----
class OrderService:
    """Domain service that creates orders and reconciles verified payments.

    All collaborators are injected: the gateway port, the order repository,
    the signing secret and the clock/id factories. The service keeps no state
    between calls.
    """

    def __init__(
        self,
        gateway: PaymentGatewayPort,
        repository: OrderRepositoryPort,
        signing_secret: Optional[str],
        minor_unit_threshold: int = normalization.DEFAULT_MINOR_UNIT_THRESHOLD,
        default_country: str = "IN",
        required_variant_attribute: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
        cod_id_factory: Callable[[datetime], str] = normalization.cod_order_id,
    ):
        """Initialize the service with its dependencies.

        Args:
            gateway: Port used to create orders and fetch payments.
            repository: Repository used to read and write order records.
            signing_secret: Shared HMAC secret; may be ``None`` so that a
                misconfiguration is reported at verification time.
            minor_unit_threshold: Integer amounts at or above this value are
                treated as already expressed in minor units.
            default_country: Country stored when the address omits one.
            required_variant_attribute: When set, at least one line item must
                carry this variant attribute.
            clock: Returns the current aware datetime.
            cod_id_factory: Builds the local order id for COD orders.
        """
        self.gateway = gateway
        self.repository = repository
        self.signing_secret = signing_secret
        self.minor_unit_threshold = minor_unit_threshold
        self.default_country = default_country
        self.required_variant_attribute = required_variant_attribute
        self.clock = clock
        self.cod_id_factory = cod_id_factory

    # -- helpers --
    def _minor_units(self, amount, amount_minor_units) -> Optional[int]:
        return normalization.to_minor_units(
            amount, amount_minor_units, threshold=self.minor_unit_threshold
        )

    def _persist_best_effort(self, record: Optional[OrderRecord], status: str, **changes) -> None:
        """Store a diagnostic status, logging and swallowing store failures.

        Paid records are never downgraded.
        """
        if record is None or record.is_paid:
            return
        record.status = status
        for name, value in changes.items():
            setattr(record, name, value)
        try:
            self.repository.update(record, ["status", *changes.keys()])
        except DocumentStoreError as e:
            logger.warning(
                "diagnostic status not persisted",
                extra={"gateway_order_id": record.gateway_order_id, "status": status, "error": str(e)},
            )

    def _find_best_effort(self, gateway_order_id: str) -> Optional[OrderRecord]:
        try:
            return self.repository.find_by_gateway_order_id(gateway_order_id)
        except DocumentStoreError as e:
            logger.warning(
                "order lookup failed on failure path",
                extra={"gateway_order_id": gateway_order_id, "error": str(e)},
            )
            return None

    def _validate_draft(self, draft: OrderDraft) -> Optional[int]:
        if not draft.buyer_id:
            raise OrderFlowError("MISSING_BUYER_ID", "buyerId is required")
        if not draft.shipping_addresses:
            raise OrderFlowError("MISSING_SHIPPING_ADDRESS", "shippingAddress is required")
        if not 0 <= draft.primary_address_index < len(draft.shipping_addresses):
            raise OrderFlowError("INVALID_PRIMARY_ADDRESS", "primaryAddressIndex is out of range")

        attr = self.required_variant_attribute
        if attr and not any(item.variant.get(attr) for item in draft.items):
            raise OrderFlowError("MISSING_VARIANT", f"items require a '{attr}' variant")

        try:
            minor = self._minor_units(draft.amount, draft.amount_minor_units)
        except ValueError:
            raise OrderFlowError("INVALID_AMOUNT", "amount must be a positive number")

        if draft.payment_method is PaymentMethod.GATEWAY:
            if minor is None:
                raise OrderFlowError("MISSING_AMOUNT", "amount is required")
            if minor <= 0:
                raise OrderFlowError("INVALID_AMOUNT", "amount must be a positive number")
        elif minor is not None and minor < 0:
            raise OrderFlowError("INVALID_AMOUNT", "amount must be a positive number")
        return minor

    # -- operations --
    def create_order(self, draft: OrderDraft) -> CreateOrderResult:
        """Create a gateway order (or a COD id) and upsert the local record.

        Args:
            draft: Validated order intent.

        Returns:
            CreateOrderResult: The saved record, the gateway order when one
            was created, and whether the record was newly created.

        Raises:
            OrderFlowError: For invalid input (400).
            ConfigurationError: When gateway credentials are missing.
            GatewayError: When the gateway order cannot be created.
            OrderNotSavedError: When the record cannot be read or written.
                The gateway order, if any, is not rolled back.
        """
        minor = self._validate_draft(draft) or 0
        if draft.payment_method is PaymentMethod.GATEWAY:
            self.gateway.ensure_configured()
        self.repository.ensure_configured()
        now = self.clock()
        gateway_order = None

        if draft.payment_method is PaymentMethod.GATEWAY:
            receipt = normalization.receipt_token(now)
            gateway_order = self.gateway.create_order(minor, draft.currency, receipt)
            order_id = gateway_order.id
            initial_status = OrderStatus.CREATED.value
        else:
            receipt = ""
            order_id = self.cod_id_factory(now)
            initial_status = OrderStatus.PENDING.value

        addresses = [
            normalization.with_default_country(a, self.default_country)
            for a in draft.shipping_addresses
        ]
        record = OrderRecord(
            gateway_order_id=order_id,
            buyer_id=draft.buyer_id,
            amount_minor_units=minor,
            currency=draft.currency,
            payment_method=draft.payment_method.value,
            status=initial_status,
            receipt=receipt,
            items=list(draft.items),
            shipping_addresses=addresses,
            primary_address_index=draft.primary_address_index,
            created_at=now,
        )

        try:
            existing = self.repository.find_by_gateway_order_id(order_id)
            if existing is None:
                saved = self.repository.create(record)
                created = True
            else:
                record.local_id = existing.local_id
                record.created_at = existing.created_at or now
                if existing.is_paid:
                    record.status = existing.status
                saved = self.repository.update(record)
                created = False
        except DocumentStoreError as e:
            logger.error(
                "order record not saved",
                extra={"gateway_order_id": order_id, "error": str(e)},
            )
            raise OrderNotSavedError(str(e), gateway_order=gateway_order)

        logger.info(
            "order saved",
            extra={
                "gateway_order_id": order_id,
                "payment_method": draft.payment_method.value,
                "amount_minor_units": minor,
                "record_created": created,
            },
        )
        return CreateOrderResult(record=saved, gateway_order=gateway_order, created=created)

    def verify_payment(self, callback: PaymentCallback) -> VerificationResult:
        """Verify a payment callback and mark the matching order as paid.

        The HMAC check is authoritative. Payment-detail fetching and the
        diagnostic writes on failure paths are best effort and never change
        the outcome decided by the signature.

        Args:
            callback: Identifiers and signature sent by the client.

        Returns:
            VerificationResult: The paid record and whether it was already
            paid before this call (in which case nothing was written).

        Raises:
            OrderFlowError: Missing fields (400), invalid signature (400),
                order not found (404), amount mismatch (400) or a
                non-captured payment (400).
            ConfigurationError: When the signing secret is not configured.
            DocumentStoreError: When the lookup or the final update fails.
        """
        for name, value in (
            ("gatewayOrderId", callback.gateway_order_id),
            ("gatewayPaymentId", callback.gateway_payment_id),
            ("clientSignature", callback.client_signature),
        ):
            if not value:
                raise OrderFlowError("MISSING_FIELD", f"{name} is required")
        if not self.signing_secret:
            raise ConfigurationError("payment signing secret is not configured")
        self.repository.ensure_configured()

        order_id = callback.gateway_order_id
        payment_id = callback.gateway_payment_id

        # 1) Signature
        if not signature_matches(self.signing_secret, order_id, payment_id, callback.client_signature):
            logger.warning("invalid payment signature", extra={"gateway_order_id": order_id})
            self._persist_best_effort(
                self._find_best_effort(order_id),
                OrderStatus.PAYMENT_FAILED_SIGNATURE.value,
                gateway_payment_id=payment_id,
                gateway_signature=callback.client_signature,
                verification_detail=self._detail({"signatureValid": False}),
            )
            raise OrderFlowError("INVALID_SIGNATURE", "Invalid signature")

        # 2) Lookup
        record = self.repository.find_by_gateway_order_id(order_id)
        if record is None:
            raise OrderFlowError("ORDER_NOT_FOUND", "Order not found", status_code=404)
        if record.is_paid:
            logger.info("payment already reconciled", extra={"gateway_order_id": order_id})
            return VerificationResult(record=record, already_paid=True)

        # 3) Payment details (best effort)
        payment = None
        try:
            payment = self.gateway.fetch_payment(payment_id)
        except (GatewayError, ConfigurationError) as e:
            logger.warning(
                "payment details unavailable",
                extra={"gateway_order_id": order_id, "gateway_payment_id": payment_id, "error": str(e)},
            )

        # 4) Amount cross-check
        try:
            declared = self._minor_units(callback.amount, callback.amount_minor_units)
        except ValueError:
            raise OrderFlowError("INVALID_AMOUNT", "amount must be a positive number")
        detail = {
            "signatureValid": True,
            "paymentFetched": payment is not None,
            "declaredAmountMinorUnits": declared,
        }
        if callback.buyer_id is not None:
            # diagnostic only; the signature decides
            detail["buyerMatches"] = callback.buyer_id == record.buyer_id
        if payment is not None:
            detail.update(
                gatewayAmountMinorUnits=payment.amount,
                gatewayCurrency=payment.currency,
                gatewayStatus=payment.status,
                gatewayMethod=payment.method,
            )
            if declared is not None and declared != payment.amount:
                self._persist_best_effort(
                    record,
                    OrderStatus.PAYMENT_FAILED_AMOUNT_MISMATCH.value,
                    gateway_payment_id=payment_id,
                    gateway_signature=callback.client_signature,
                    verification_detail=self._detail(detail),
                )
                raise OrderFlowError("AMOUNT_MISMATCH", "Amount mismatch")

            # 5) Capture state
            if not payment.captured:
                self._persist_best_effort(
                    record,
                    f"payment_{payment.status}",
                    gateway_payment_id=payment_id,
                    gateway_signature=callback.client_signature,
                    gateway_payment_status=payment.status,
                    verification_detail=self._detail(detail),
                )
                raise OrderFlowError(
                    "PAYMENT_NOT_CAPTURED", f"Payment not captured (status={payment.status})"
                )

        # 6) Reconcile
        self._mark_paid(record, payment_id, callback.client_signature, payment, detail)
        logger.info(
            "payment verified",
            extra={"gateway_order_id": order_id, "gateway_payment_id": payment_id},
        )
        return VerificationResult(record=record, already_paid=False)

    def reconcile_order(self, gateway_order_id: str) -> VerificationResult:
        """Mark an order paid from the gateway's own payment list.

        Used for orders whose client callback never arrived. Trust comes from
        the authenticated gateway API instead of a client signature.

        Raises:
            OrderFlowError: Order not found (404) or no captured payment (400).
            GatewayError: When the gateway cannot list the payments.
            DocumentStoreError: When the record cannot be read or written.
        """
        self.gateway.ensure_configured()
        self.repository.ensure_configured()
        record = self.repository.find_by_gateway_order_id(gateway_order_id)
        if record is None:
            raise OrderFlowError("ORDER_NOT_FOUND", "Order not found", status_code=404)
        if record.is_paid:
            return VerificationResult(record=record, already_paid=True)

        payments = self.gateway.fetch_order_payments(gateway_order_id)
        captured = next((p for p in payments if p.captured), None)
        if captured is None:
            states = ",".join(p.status for p in payments) or "none"
            raise OrderFlowError("PAYMENT_NOT_CAPTURED", f"No captured payment (payments={states})")

        detail = {
            "reconciled": True,
            "gatewayAmountMinorUnits": captured.amount,
            "gatewayCurrency": captured.currency,
            "gatewayStatus": captured.status,
            "gatewayMethod": captured.method,
        }
        self._mark_paid(record, captured.id, None, captured, detail)
        logger.info("order reconciled", extra={"gateway_order_id": gateway_order_id})
        return VerificationResult(record=record, already_paid=False)

    def _mark_paid(self, record, payment_id, signature, payment, detail) -> None:
        now = self.clock()
        detail = dict(detail, verifiedAt=now.isoformat())
        record.status = OrderStatus.PAID.value
        record.gateway_payment_id = payment_id
        record.gateway_signature = signature
        # el importe declarado por el cliente solo queda en verificationDetail
        record.paid_amount_minor_units = payment.amount if payment is not None else record.amount_minor_units
        record.gateway_payment_method = payment.method if payment is not None else None
        record.gateway_payment_status = payment.status if payment is not None else None
        record.verification_detail = self._detail(detail)
        record.paid_at = now
        self.repository.update(
            record,
            [
                "status",
                "gateway_payment_id",
                "gateway_signature",
                "paid_amount_minor_units",
                "gateway_payment_method",
                "gateway_payment_status",
                "verification_detail",
                "paid_at",
            ],
        )

    @staticmethod
    def _detail(detail: dict) -> str:
        return normalization.truncate_json(detail, normalization.VERIFICATION_DETAIL_MAX_LENGTH)
