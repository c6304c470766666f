"""FastAPI dependencies for accessing app state."""

from fastapi import HTTPException
from fastapi import Request
from fastapi import status

from telemetry_api.alarms.service import AlarmsService
from telemetry_api.settings import Settings


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_alarms_service(request: Request) -> AlarmsService:
    """
    Get the alarms service from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    AlarmsService
        Alarms service bound to the document store

    Raises
    ------
    HTTPException
        503 if no document store is configured
    """
    service = getattr(request.app.state, "alarms_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Alarm storage is not configured (storage_connection_string not set)",
        )
    return service
