"""Per-request access log and correlation id.

A caller may supply its own ``x-request-id``; otherwise one is minted.
The id lands on ``request.state.request_id`` for the ApiResponse envelope
and is echoed back in the response header.

Client errors log at WARNING and server errors at ERROR. Polling of
/api/health logs at DEBUG. A typical line:

    method=POST path=/api/synthetic/trade status=200 ms=3.8 guest=guest-ab12 id=req_0f3a9c1d22e4
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("ms.request")

REQUEST_ID_HEADER = "x-request-id"
_CLIENT_ID = re.compile(r"^[A-Za-z0-9_.-]{8,64}$")
_QUIET_PATHS = frozenset({"/api/health"})


def resolve_request_id(supplied: str | None) -> str:
    if supplied and _CLIENT_ID.match(supplied):
        return supplied
    return f"req_{uuid.uuid4().hex[:12]}"


def level_for(path: str, status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.DEBUG if path in _QUIET_PATHS else logging.INFO


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        guest = request.headers.get("x-guest-id") or "-"
        path = request.url.path

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                "method=%s path=%s status=500 guest=%s id=%s (unhandled)",
                request.method, path, guest, request_id,
            )
            raise
        elapsed = (time.perf_counter() - started) * 1000

        logger.log(
            level_for(path, response.status_code),
            "method=%s path=%s status=%d ms=%.1f guest=%s id=%s",
            request.method, path, response.status_code, elapsed, guest, request_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
