"""Request-scoped middleware for the orders API.

``RequestIdMiddleware`` tags each request with an id (the client's
``X-Request-ID`` when sent, a UUID4 otherwise), echoes it on the response and
publishes it in ``REQUEST_ID_CTX`` for log records and outbound gateway and
store calls.

``ApiSizeLimitMiddleware`` answers 413 for ``/api/`` requests whose declared
body exceeds ``API_MAX_BYTES``.
"""

import contextvars
import uuid

from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")

# ids travel to the gateway and the store as a header value
MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request) -> str:
    rid = (request.META.get("HTTP_X_REQUEST_ID") or "").strip()
    if not rid or len(rid) > MAX_REQUEST_ID_LENGTH or not rid.isprintable():
        return str(uuid.uuid4())
    return rid


class RequestIdMiddleware(MiddlewareMixin):
    def process_request(self, request):
        request.request_id = _incoming_request_id(request)
        REQUEST_ID_CTX.set(request.request_id)

    def process_response(self, request, response):
        response["X-Request-ID"] = getattr(request, "request_id", REQUEST_ID_CTX.get())
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    def process_request(self, request):
        if not request.path.startswith("/api/"):
            return None
        declared = request.META.get("CONTENT_LENGTH") or ""
        if declared.isdigit() and int(declared) > settings.API_MAX_BYTES:
            return JsonResponse({"success": False, "message": "Payload too large"}, status=413)
        return None
