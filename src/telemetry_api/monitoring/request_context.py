"""Request context middleware for logging."""
import time
import uuid
from typing import Any
from typing import Callable

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


def get_client_ip(request: Request) -> str:
    """Client address, taken from the first X-Forwarded-For hop when behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every log written while serving a request with its request id, and log the request once."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        """
        Serve the request inside logger.contextualize().

        Background tasks spawned by the request copy the current context, so a
        delete-by-rule operation keeps the request id of the call that started it.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        with logger.contextualize(request_id=request_id, client_ip=get_client_ip(request)):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            log = logger.warning if response.status_code >= 500 else logger.info
            log(
                f"{request.method} {request.url.path} - {response.status_code}",
                http_method=request.method,
                url_path=request.url.path,
                url_query=str(request.query_params) or None,
                status_code=response.status_code,
                response_time_ms=elapsed_ms,
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
