"""Error handling for the FastAPI application and document storage exceptions."""

from typing import Any
from typing import Dict

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from telemetry_api.monitoring.logger import log_response_info
from telemetry_api.storage.errors import StorageError

__all__ = [
    "handle_broad_exceptions",
    "handle_pydantic_validation_errors",
    "handle_storage_errors",
]


def _error_response(request: Request, status_code: int, content: Dict[str, Any], level: str, message: str, **context):
    logger.log(
        level,
        message,
        http_status=status_code,
        http_method=request.method,
        url_path=str(request.url.path),
        response_body=content,
        **context,
    )
    response = JSONResponse(status_code=status_code, content=content)
    log_response_info(response)
    return response


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Turn any exception no specific handler caught into a 500 response."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"detail": "Internal server error", "error_type": type(err).__name__},
            "ERROR",
            f"Unhandled exception: {type(err).__name__}: {err}",
            error_type=type(err).__name__,
        )


# fastapi docs on error handlers: https://fastapi.tiangolo.com/tutorial/handling-errors/
async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Report pydantic validation errors raised while building a response model as 422."""
    errors = exc.errors()
    return _error_response(
        request,
        422,
        {"detail": [{"msg": error["msg"], "input": error["input"]} for error in errors]},
        "WARNING",
        f"Validation error: {len(errors)} validation errors",
        error_type="ValidationError",
    )


async def handle_storage_errors(request: Request, exc: StorageError) -> JSONResponse:
    """
    Handle document store failures.

    The store is treated as temporarily unavailable, so callers get 503 and may retry.
    """
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        {
            "detail": "Alarm storage is temporarily unavailable. Please retry.",
            "error_type": type(exc).__name__,
        },
        "ERROR",
        f"Storage error: {exc}",
        error_type=type(exc).__name__,
    )
