# Fixtures compartidos: servicio con stubs en memoria inyectado en las vistas
import pytest
from django.core.cache import cache

from apps.orders import providers
from apps.orders.adapters import InMemoryDocumentStore, PaymentGatewayStub

TEST_SECRET = "test_key_secret"


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False
    settings.RAZORPAY_KEY_ID = "rzp_test_key"
    settings.RAZORPAY_KEY_SECRET = TEST_SECRET
    settings.ORDERS_REQUIRED_VARIANT_ATTRIBUTE = ""
    cache.clear()  # throttle counters


@pytest.fixture
def gateway():
    return PaymentGatewayStub()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def wired(monkeypatch, gateway, store):
    """Make the views use a service over the ``gateway``/``store`` stubs."""
    monkeypatch.setattr(
        providers,
        "get_order_service",
        lambda: providers.build_order_service(gateway, store),
        raising=True,
    )
    return gateway, store
