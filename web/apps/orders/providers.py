"""Service provider helpers for wiring OrderService with ports.

This module exposes a small factory function ``get_order_service`` that
returns a configured ``OrderService`` instance. When
``settings.USE_HTTP_ADAPTERS`` is truthy it uses the HTTP adapter clients
for the payment gateway and the document store. Otherwise it falls back to
in-process stubs suitable for tests and local development; the stubs are
module-level singletons so that state survives between requests of one
development process.
"""

from django.conf import settings

from .adapters import InMemoryDocumentStore, PaymentGatewayStub
from .domain import OrderService
from .http_adapters import AppwriteDocumentStore, RazorpayGatewayClient
from .repository import OrderRepository

_local_gateway = PaymentGatewayStub()
_local_store = InMemoryDocumentStore()


def build_order_service(gateway, store) -> OrderService:
    """Return an ``OrderService`` over the given ports using settings tunables."""
    return OrderService(
        gateway=gateway,
        repository=OrderRepository(store),
        signing_secret=settings.RAZORPAY_KEY_SECRET or None,
        minor_unit_threshold=settings.ORDERS_MINOR_UNIT_THRESHOLD,
        default_country=settings.ORDERS_DEFAULT_COUNTRY,
        required_variant_attribute=settings.ORDERS_REQUIRED_VARIANT_ATTRIBUTE or None,
    )


def get_order_service() -> OrderService:
    """Return a configured OrderService instance.

    Returns:
        OrderService: A service instance with appropriate ports.
    """
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return build_order_service(RazorpayGatewayClient(), AppwriteDocumentStore())
    return build_order_service(_local_gateway, _local_store)
