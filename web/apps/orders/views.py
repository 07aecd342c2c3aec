"""HTTP views for the orders app.

This module contains the DRF API views of the payment orders service. Views
are kept intentionally small: they validate requests (via Pydantic), map
them to domain DTOs, delegate to the domain service, and return an HTTP
response in the ``{success, message?, ...payload}`` shape.

The views obtain a configured ``OrderService`` from ``get_order_service()``
which returns HTTP adapter-backed ports (``RazorpayGatewayClient``,
``AppwriteDocumentStore``) or in-process stubs depending on runtime
settings. This allows tests and local development to swap implementations
without changing view logic.

Transport: each endpoint accepts ``POST`` with a JSON object body; ``GET``
answers a liveness payload; any other method gets 405.
"""

import logging

from django.conf import settings
from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .domain import (
    ConfigurationError,
    DocumentStoreError,
    GatewayError,
    LineItem,
    OrderDraft,
    OrderFlowError,
    OrderNotSavedError,
    PaymentCallback,
    PaymentMethod,
    ShippingAddress,
)
from .repository import record_payload
from .schemas import CreateOrderDTO, VerifyPaymentDTO

logger = logging.getLogger("orders.api")


def _fail(message: str, status_code: int, **payload) -> Response:
    return Response({"success": False, "message": message, **payload}, status=status_code)


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
    return f"{loc}: {err.get('msg', 'invalid value')}"


def _parse(dto_cls, request):
    """Validate the request body against ``dto_cls``.

    Returns:
        tuple: ``(dto, None)`` on success or ``(None, Response)`` with a 400.
    """
    if not isinstance(request.data, dict):
        return None, _fail("Request body must be a JSON object", status.HTTP_400_BAD_REQUEST)
    try:
        return dto_cls.model_validate(request.data), None
    except ValidationError as e:
        return None, _fail(_validation_message(e), status.HTTP_400_BAD_REQUEST)


def _addresses(dto) -> list:
    return [ShippingAddress(**a.model_dump()) for a in (dto.shipping_address or [])]


def _items(dto) -> list:
    return [
        LineItem(product_ref=i.product_ref, quantity=i.quantity, unit_price=i.unit_price, variant=dict(i.variant))
        for i in dto.items
    ]


class OrdersPingView(APIView):
    """Simple health-check endpoint for the orders module."""

    def get(self, request):
        return Response({"success": True, "message": "orders ok"})


class CreateOrderView(APIView):
    """Create a payment order and persist its local record.

    On the gateway path a remote order is created first, then the record is
    upserted by the gateway order id. On the collect-on-delivery path a local
    id is synthesized and no gateway call is made.
    """

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_create"

    def get(self, request):
        return Response({"success": True, "message": "create-order is alive"})

    def post(self, request):
        """Create an order.

        Args:
            request (Request): DRF request with a JSON object body.

        Returns:
            Response: One of the following responses.
            - 201 with {success, gatewayOrder, record} when a record is created.
            - 200 with the same body when an existing record was updated.
            - 400 for invalid or missing input; the message names the field.
            - 500 when configuration is missing, the gateway fails, or the
              record cannot be saved (the gateway order id is included so
              the order can be reconciled later).
        """
        dto, error = _parse(CreateOrderDTO, request)
        if error:
            return error

        draft = OrderDraft(
            buyer_id=dto.buyer_id or "",
            currency=dto.currency,
            items=_items(dto),
            shipping_addresses=_addresses(dto),
            primary_address_index=dto.primary_address_index,
            payment_method=PaymentMethod(dto.payment_method),
            amount=dto.amount,
            amount_minor_units=dto.amount_minor_units,
        )

        service = providers.get_order_service()
        try:
            result = service.create_order(draft)
        except OrderFlowError as e:
            return _fail(e.message, e.status_code, code=e.code)
        except ConfigurationError as e:
            logger.error("server misconfigured", extra={"error": str(e)})
            return _fail(f"Server misconfigured: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR)
        except GatewayError as e:
            return _fail(f"Payment gateway error: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR)
        except OrderNotSavedError as e:
            gateway_order = e.gateway_order.as_dict() if e.gateway_order else None
            return _fail(f"Order not saved: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR, gatewayOrder=gateway_order)

        body = {
            "success": True,
            "message": "Order created" if result.created else "Order updated",
            "gatewayOrder": result.gateway_order.as_dict() if result.gateway_order else None,
            "record": record_payload(result.record),
        }
        if result.gateway_order:
            body["gatewayKeyId"] = settings.RAZORPAY_KEY_ID
        return Response(body, status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK)


class VerifyPaymentView(APIView):
    """Verify a payment callback and reconcile the matching order record."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_verify"

    def get(self, request):
        return Response({"success": True, "message": "verify-payment is alive"})

    def post(self, request):
        """Verify a payment.

        Returns:
            Response: One of the following responses.
            - 200 with {success, alreadyPaid, record} when the order is paid.
            - 400 for missing fields, an invalid signature, an amount
              mismatch, or a payment that is not captured.
            - 404 when no order matches ``gatewayOrderId``.
            - 500 when the signing secret or store is not configured, or the
              record cannot be read or updated.
        """
        dto, error = _parse(VerifyPaymentDTO, request)
        if error:
            return error

        callback = PaymentCallback(
            gateway_order_id=(dto.gateway_order_id or "").strip(),
            gateway_payment_id=(dto.gateway_payment_id or "").strip(),
            client_signature=dto.client_signature or "",
            buyer_id=str(dto.buyer_id) if dto.buyer_id is not None else None,
            amount=dto.amount,
            amount_minor_units=dto.amount_minor_units,
        )

        service = providers.get_order_service()
        try:
            result = service.verify_payment(callback)
        except OrderFlowError as e:
            return _fail(e.message, e.status_code, code=e.code)
        except ConfigurationError as e:
            logger.error("server misconfigured", extra={"error": str(e)})
            return _fail(f"Server misconfigured: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR)
        except DocumentStoreError as e:
            return _fail(f"Order update failed: {e}", status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(
            {
                "success": True,
                "message": "Payment already verified" if result.already_paid else "Payment verified",
                "alreadyPaid": result.already_paid,
                "record": record_payload(result.record),
            },
            status=status.HTTP_200_OK,
        )
