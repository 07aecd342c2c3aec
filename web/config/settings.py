"""Django settings for the payment orders service.

Every credential comes from the environment; nothing secret is committed.
The document store variables also accept the ``APPWRITE_FUNCTION_*`` names
injected by the serverless function runtime.
"""

import os
from pathlib import Path

from django.core.management.utils import get_random_secret_key

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def env_first(*names: str, default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY") or get_random_secret_key()
DEBUG = env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "apps.orders",
]

MIDDLEWARE = [
    "core.middleware.RequestIdMiddleware",
    "core.middleware.ApiSizeLimitMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# Orders live in the external document store; no relational database.
DATABASES = {}

USE_TZ = True
TIME_ZONE = "UTC"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "EXCEPTION_HANDLER": "core.exceptions.api_exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        "orders_create": os.getenv("THROTTLE_ORDERS_CREATE", "60/min"),
        "orders_verify": os.getenv("THROTTLE_ORDERS_VERIFY", "120/min"),
    },
}

# ---- Payment gateway ----
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
RAZORPAY_API_BASE = os.getenv("RAZORPAY_API_BASE", "https://api.razorpay.com/v1")

# ---- Document store ----
APPWRITE_ENDPOINT = env_first("APPWRITE_ENDPOINT", "APPWRITE_FUNCTION_ENDPOINT")
APPWRITE_PROJECT_ID = env_first("APPWRITE_PROJECT_ID", "APPWRITE_FUNCTION_PROJECT_ID")
APPWRITE_API_KEY = env_first("APPWRITE_API_KEY", "APPWRITE_FUNCTION_API_KEY")
APPWRITE_DATABASE_ID = os.getenv("APPWRITE_DATABASE_ID", "")
APPWRITE_ORDERS_COLLECTION_ID = os.getenv("APPWRITE_ORDERS_COLLECTION_ID", "")

# ---- Adapters ----
USE_HTTP_ADAPTERS = env_bool("USE_HTTP_ADAPTERS", True)
HTTP_TIMEOUT_SECS = float(os.getenv("HTTP_TIMEOUT_SECS", "10"))
API_MAX_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))

# ---- Orders ----
ORDERS_MINOR_UNIT_THRESHOLD = int(os.getenv("ORDERS_MINOR_UNIT_THRESHOLD", "10000"))
ORDERS_DEFAULT_COUNTRY = os.getenv("ORDERS_DEFAULT_COUNTRY", "IN")
ORDERS_REQUIRED_VARIANT_ATTRIBUTE = os.getenv("ORDERS_REQUIRED_VARIANT_ATTRIBUTE", "")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": "core.logging_filters.RequestIdFilter"},
    },
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["request_id"],
        },
    },
    "loggers": {
        "orders": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
}
