# common/middleware.py
import logging
import time

from django.conf import settings
from django.http import HttpResponse

logger = logging.getLogger("quote_backend.requests")


def _allowed_origin(request):
    origin = request.headers.get("Origin")
    if not origin:
        return None
    allowed = getattr(settings, "CORS_ALLOWED_ORIGINS", [])
    if "*" in allowed or origin in allowed:
        return origin
    return None


class CorsMiddleware:
    """
    Answers preflight requests and stamps CORS headers for whitelisted origins
    (settings.CORS_ALLOWED_ORIGINS). Other origins get no CORS headers at all.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        origin = _allowed_origin(request)

        if request.method == "OPTIONS" and request.headers.get("Access-Control-Request-Method"):
            response = HttpResponse()
            if origin:
                response["Access-Control-Allow-Origin"] = origin
                response["Access-Control-Allow-Credentials"] = "true"
                response["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
                response["Access-Control-Allow-Headers"] = (
                    "Origin, X-Requested-With, Content-Type, Accept, Authorization"
                )
                response["Access-Control-Max-Age"] = "86400"
            return response

        response = self.get_response(request)

        if origin:
            response["Access-Control-Allow-Origin"] = origin
            response["Access-Control-Allow-Credentials"] = "true"
            # PDF downloads need the filename
            response["Access-Control-Expose-Headers"] = "Content-Disposition"
        return response


class RequestLogMiddleware:
    """One log line per request: method, path, status, duration."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = (time.monotonic() - started) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s %s %s %.1fms",
            request.method,
            request.get_full_path(),
            response.status_code,
            elapsed_ms,
        )
        return response
