"""HTTP middleware: request correlation, security headers and origin checks.

Registered in this order by the app factory (outermost first):
- ``request_id_middleware``: accepts or generates X-Request-ID, stores it in
  contextvars for log correlation and reports request duration
- ``security_headers_middleware``: hardens every response
- ``csrf_origin_middleware``: rejects cross-site mutations from browsers

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid
from urllib.parse import urlsplit

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from coach_relay.core.config import settings_for
from coach_relay.core.logging import clear_request_id, get_request_id, set_request_id

logger = logging.getLogger(__name__)

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
DEFAULT_PORTS = {"http": 80, "https": 443}


async def request_id_middleware(request: Request, call_next) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. The ID is propagated back in the response headers and stored
    in contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings_for(request).log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Add the fixed set of security headers to every response."""

    response: Response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


def origin_host(origin: str) -> str | None:
    """Return ``host[:port]`` of an Origin value, omitting userinfo and default ports.

    Returns None when the value has no scheme, no host or an invalid port.
    """
    parts = urlsplit(origin)
    if not parts.scheme or not parts.hostname:
        return None
    try:
        port = parts.port
    except ValueError:
        return None

    host = f"[{parts.hostname}]" if ":" in parts.hostname else parts.hostname
    if port is None or port == DEFAULT_PORTS.get(parts.scheme.lower()):
        return host
    return f"{host}:{port}"


def _csrf_rejection(code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={"error": {"code": code, "message": message, "request_id": get_request_id()}},
    )


async def csrf_origin_middleware(request: Request, call_next) -> Response:
    """Reject browser mutations whose Origin host differs from the Host header.

    Requests without an Origin header (curl, server-to-server) pass through;
    browsers always send one on cross-site POST/PUT/PATCH/DELETE.
    """

    if request.method in MUTATING_METHODS:
        origin = request.headers.get("origin")
        host = request.headers.get("host")
        if origin and host:
            expected = origin_host(origin)
            if expected is None:
                logger.warning("csrf.invalid_origin", extra={"path": request.url.path})
                return _csrf_rejection("csrf_invalid_origin", "CSRF validation failed: invalid origin")
            if expected != host.lower():
                logger.warning(
                    "csrf.origin_mismatch",
                    extra={"path": request.url.path, "origin_host": expected},
                )
                return _csrf_rejection("csrf_origin_mismatch", "CSRF validation failed: origin mismatch")

    return await call_next(request)
