"""Monitoring package for logging and request context."""

from telemetry_api.monitoring.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
]
