"""Alarms-by-rule API routes: counts per rule, alarms of a rule, delete by rule and its status."""

from datetime import datetime
from typing import List
from typing import Optional
from typing import Tuple
from uuid import uuid4

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from fastapi import status
from fastapi.responses import PlainTextResponse
from loguru import logger

from telemetry_api.alarms.models import DeleteStatus
from telemetry_api.alarms.service import AlarmsService
from telemetry_api.dependencies import get_alarms_service
from telemetry_api.helpers.date_helper import parse_date
from telemetry_api.schemas.schemas_alarms import AlarmApiModel
from telemetry_api.schemas.schemas_alarms import AlarmByRuleListResponse
from telemetry_api.schemas.schemas_alarms import AlarmCountByRuleApiModel
from telemetry_api.schemas.schemas_alarms import AlarmListByRuleResponse
from telemetry_api.storage.query_builder import DEVICE_LIMIT

# Default page size for alarm reads
QUERY_LIMIT = 1000

ROUTER_ALARMS_BY_RULE = APIRouter(tags=["AlarmsByRule"], prefix="/alarmsbyrule")


def _parse_filters(
    from_: Optional[str],
    to: Optional[str],
    order: Optional[str],
    devices: Optional[str],
) -> Tuple[Optional[datetime], Optional[datetime], str, List[str]]:
    """
    Validate the query parameters shared by the alarms-by-rule routes.

    Raises
    ------
    HTTPException
        400 if a date or the order is invalid, or if more than DEVICE_LIMIT devices are requested
    """
    try:
        from_date = parse_date(from_)
        to_date = parse_date(to)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    order = (order or "asc").strip().lower()
    if order not in ("asc", "desc"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid order '{order}'. Expected 'asc' or 'desc'",
        )

    device_ids = [device.strip() for device in devices.split(",") if device.strip()] if devices else []
    if len(device_ids) > DEVICE_LIMIT:
        logger.warning("The client requested too many devices", devices=len(device_ids))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"The number of devices cannot exceed {DEVICE_LIMIT}",
        )

    return from_date, to_date, order, device_ids


@ROUTER_ALARMS_BY_RULE.get(
    "",
    response_model=AlarmByRuleListResponse,
    summary="Count alarms by rule",
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "Invalid date, order, or too many devices"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Alarm storage unavailable"},
    },
)
async def list_alarm_counts_by_rule(
    from_: Optional[str] = Query(None, alias="from", description="ISO-8601 datetime, NOW or NOW-<duration>"),
    to: Optional[str] = Query(None, description="ISO-8601 datetime, NOW or NOW-<duration>"),
    order: Optional[str] = Query(None, description="asc or desc, by last occurrence"),
    skip: int = Query(0, ge=0),
    limit: int = Query(QUERY_LIMIT, ge=1),
    devices: Optional[str] = Query(None, description="Comma separated device ids"),
    service: AlarmsService = Depends(get_alarms_service),
):
    """Count alarms per rule, with the status and time of each rule's latest alarm."""
    from_date, to_date, order, device_ids = _parse_filters(from_, to, order, devices)

    counts = await service.get_alarm_count_by_rule(from_date, to_date, order, skip, limit, device_ids)
    return AlarmByRuleListResponse(Items=[AlarmCountByRuleApiModel.from_count(count) for count in counts])


@ROUTER_ALARMS_BY_RULE.get(
    "/{rule_id}",
    response_model=AlarmListByRuleResponse,
    summary="List alarms raised by a rule",
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "Invalid date, order, or too many devices"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Alarm storage unavailable"},
    },
)
async def list_alarms_by_rule(
    rule_id: str,
    from_: Optional[str] = Query(None, alias="from", description="ISO-8601 datetime, NOW or NOW-<duration>"),
    to: Optional[str] = Query(None, description="ISO-8601 datetime, NOW or NOW-<duration>"),
    order: Optional[str] = Query(None, description="asc or desc, by creation time"),
    skip: int = Query(0, ge=0),
    limit: int = Query(QUERY_LIMIT, ge=1),
    devices: Optional[str] = Query(None, description="Comma separated device ids"),
    service: AlarmsService = Depends(get_alarms_service),
):
    """List the alarms raised by one rule."""
    from_date, to_date, order, device_ids = _parse_filters(from_, to, order, devices)

    alarms = await service.list_by_rule(rule_id, from_date, to_date, order, skip, limit, device_ids)
    return AlarmListByRuleResponse(Items=[AlarmApiModel.from_alarm(alarm) for alarm in alarms])


@ROUTER_ALARMS_BY_RULE.post(
    "/delete/{rule_id}",
    status_code=status.HTTP_202_ACCEPTED,
    response_class=PlainTextResponse,
    summary="Delete the alarms raised by a rule",
    responses={
        202: {
            "description": "Delete accepted; poll /alarmsbyrule/deletestatus/{operation_id}",
            "content": {"text/plain": {"example": "OperationId: 3f1c2a9e-7d51-4c43-9a38-2b1f0e6f4b7d"}},
        },
        status.HTTP_400_BAD_REQUEST: {"description": "Invalid date, order, or too many devices"},
    },
)
async def delete_alarms_by_rule(
    rule_id: str,
    from_: Optional[str] = Query(None, alias="from", description="ISO-8601 datetime, NOW or NOW-<duration>"),
    to: Optional[str] = Query(None, description="ISO-8601 datetime, NOW or NOW-<duration>"),
    order: Optional[str] = Query(None, description="asc or desc, by creation time"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, description="Delete at most this many alarms; omit to delete all"),
    devices: Optional[str] = Query(None, description="Comma separated device ids"),
    service: AlarmsService = Depends(get_alarms_service),
):
    """
    Start deleting the alarms raised by a rule.

    Returns 202 Accepted right away with the operation id; deletion runs in the background.
    """
    from_date, to_date, order, device_ids = _parse_filters(from_, to, order, devices)

    operation_id = str(uuid4())
    service.start_delete_by_rule(rule_id, from_date, to_date, order, skip, limit, device_ids, operation_id)

    return PlainTextResponse(content=f"OperationId: {operation_id}", status_code=status.HTTP_202_ACCEPTED)


@ROUTER_ALARMS_BY_RULE.get(
    "/deletestatus/{operation_id}",
    response_model=DeleteStatus,
    summary="Get the status of a delete-by-rule operation",
    responses={
        status.HTTP_200_OK: {
            "description": "Status snapshot; Unknown when the operation is not found or stalled",
            "content": {
                "application/json": {
                    "example": {
                        "Id": "3f1c2a9e-7d51-4c43-9a38-2b1f0e6f4b7d",
                        "Status": "InProgress",
                        "Timestamp": "2026-01-05T12:00:00.000000Z",
                        "RecordsDeleted": 150,
                    }
                }
            },
        },
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Alarm storage unavailable"},
    },
)
async def get_delete_status(
    operation_id: str,
    service: AlarmsService = Depends(get_alarms_service),
):
    """Get the status of a delete-by-rule operation."""
    return await service.get_delete_by_rule_status(operation_id)
