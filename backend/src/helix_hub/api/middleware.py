"""API middleware for request logging and correlation IDs."""

import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ..logging import log_api_request, reset_request_id, set_request_id
from . import generic_exception_handler

REQUEST_ID_HEADER = "X-Request-ID"


def get_request_id(request: Request) -> str:
    """Use the caller's correlation ID when given, else generate one."""
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return incoming or uuid.uuid4().hex


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a correlation ID to the request and logs its outcome.

    The ID is echoed in the ``X-Request-ID`` response header and is
    attached to every log line emitted while the request is handled.
    Unhandled exceptions are turned into the 500 envelope here, while
    the ID is still bound, so failed requests carry it too.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = get_request_id(request)
        request.state.request_id = request_id
        token = set_request_id(request_id)
        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as e:
                response = await generic_exception_handler(request, e)
            response.headers[REQUEST_ID_HEADER] = request_id
            log_api_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            return response
        finally:
            reset_request_id(token)
