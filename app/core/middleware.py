"""
HTTP middleware: security response headers and request logging.
===============================================================

Both middlewares run inside Starlette's ServerErrorMiddleware, so a
response built for an unhandled exception never passes through them.
The unhandled-error handler calls ``apply_response_headers`` itself to
give 500 responses the same headers as every other response.
"""

import time
import uuid

from fastapi import Request, Response

from app.core.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


def apply_response_headers(request: Request, response: Response) -> Response:
    """
    Add the security headers and echo the request id on a response.

    Headers already set by a handler are left alone.
    """
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    return apply_response_headers(request, response)


async def log_requests(request: Request, call_next):
    """
    Access log: method, path, status, duration, client address, user agent
    and request id. Requests that end in an unhandled exception are logged
    as 500 before the exception continues to the error handler.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        _log_request(request, 500, started)
        raise

    _log_request(request, response.status_code, started)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _log_request(request: Request, status_code: int, started: float) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000
    client = request.client.host if request.client else "-"
    logger.info(
        f"{request.method} {request.url.path} {status_code} "
        f"{elapsed_ms:.1f}ms ip={client} ua={request.headers.get('user-agent', '-')} "
        f"id={request.state.request_id}"
    )
