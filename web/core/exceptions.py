"""DRF exception handler producing the ``{success, message}`` error shape.

Framework-level failures (malformed JSON, unsupported method, throttling)
are reshaped so every API answer follows the same contract as the views.
Unexpected exceptions are logged with their traceback and answered with a
generic 500 that does not leak internals.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger("orders.api")


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception("unhandled error", extra={"view": type(view).__name__ if view else "-"})
        return Response(
            {"success": False, "message": "Internal server error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    detail = response.data.get("detail") if isinstance(response.data, dict) else None
    response.data = {"success": False, "message": str(detail) if detail is not None else "Request failed"}
    return response
