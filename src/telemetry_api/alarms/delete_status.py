"""
Delete Status Reader

Answers "what is the state of operation X" from the persisted progress record.
A missing record, or an InProgress record that stopped being refreshed, reads as Unknown.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from telemetry_api.alarms.config import AlarmsConfig
from telemetry_api.alarms.models import DeleteStatus
from telemetry_api.alarms.models import DeleteStatusValue
from telemetry_api.storage.query_builder import build_filter_options
from telemetry_api.storage.query_builder import build_id_query


def is_stale(timestamp: Optional[datetime], now: datetime, threshold: timedelta) -> bool:
    """True when timestamp is missing or older than threshold at now."""
    if timestamp is None:
        return True
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return now - timestamp > threshold


def resolve_delete_status(
    operation_id: str,
    stored: Optional[DeleteStatus],
    now: datetime,
    threshold: timedelta,
) -> DeleteStatus:
    """
    Map a stored record to the status reported to callers.

    - no record: Unknown
    - InProgress older than threshold: Unknown (the operation stalled or its process died)
    - anything else: the stored record verbatim
    """
    if stored is None:
        return DeleteStatus.unknown(operation_id)

    if stored.Status == DeleteStatusValue.IN_PROGRESS and is_stale(stored.Timestamp, now, threshold):
        return DeleteStatus.unknown(operation_id)

    return stored


async def read_delete_status(
    storage,
    config: AlarmsConfig,
    operation_id: str,
    now: Optional[datetime] = None,
) -> DeleteStatus:
    """
    Read the status of a delete-by-rule operation.

    Args:
        storage: StorageClient
        config: Alarms configuration (status collection and staleness threshold)
        operation_id: Operation id returned when the delete was accepted
        now: Reference time, defaults to the current UTC time

    Returns:
        DeleteStatus; Unknown when the record is missing, stale or unreadable
    """
    documents = await storage.query_documents(
        config.database,
        config.delete_status_collection,
        build_filter_options("asc"),
        build_id_query(operation_id),
        0,
        1,
    )
    stored = None
    if documents:
        try:
            stored = DeleteStatus.model_validate(documents[0])
        except ValidationError as e:
            # Reported like a missing record
            logger.warning(
                f"[{operation_id}] Unreadable delete status record, reporting Unknown",
                operation_id=operation_id,
                error_count=e.error_count(),
            )

    return resolve_delete_status(
        operation_id,
        stored,
        now or datetime.now(timezone.utc),
        timedelta(seconds=config.delete_status_stale_after_seconds),
    )
