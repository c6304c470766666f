"""
Delete Status Tracker

Writes the progress record of a delete-by-rule operation.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Optional

from loguru import logger

from telemetry_api.alarms.models import DeleteStatus
from telemetry_api.alarms.models import DeleteStatusValue


class DeleteStatusTracker:
    """
    Helper for persisting delete-by-rule progress.

    The record is the only state pollers can see. Once a terminal status
    (Success or Failed) has been written, further writes are refused.
    """

    def __init__(self, storage, database: str, collection: str, operation_id: str):
        """
        Initialize status tracker.

        Args:
            storage: StorageClient used to upsert the record
            database: Database holding status records
            collection: Collection holding status records
            operation_id: Operation id, used as the record id
        """
        self.storage = storage
        self.database = database
        self.collection = collection
        self.operation_id = operation_id
        self.last_written: Optional[DeleteStatus] = None

    async def update(self, records_deleted: int) -> DeleteStatus:
        """Checkpoint progress (InProgress)."""
        status = await self._write(DeleteStatusValue.IN_PROGRESS, records_deleted)
        logger.debug(f"[{self.operation_id}] Checkpoint: {records_deleted} records deleted")
        return status

    async def complete(self, records_deleted: int) -> DeleteStatus:
        """Mark the operation as Success."""
        status = await self._write(DeleteStatusValue.SUCCESS, records_deleted)
        logger.success(f"[{self.operation_id}] Delete by rule COMPLETED: {records_deleted} records deleted")
        return status

    async def fail(self, records_deleted: int) -> DeleteStatus:
        """Mark the operation as Failed."""
        status = await self._write(DeleteStatusValue.FAILED, records_deleted)
        logger.info(f"[{self.operation_id}] Delete by rule marked FAILED after {records_deleted} records deleted")
        return status

    def _next_timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self.last_written is not None and now <= self.last_written.Timestamp:
            # Clock did not advance since the previous write
            now = self.last_written.Timestamp + timedelta(microseconds=1)
        return now

    async def _write(self, status: DeleteStatusValue, records_deleted: int) -> DeleteStatus:
        if self.last_written is not None:
            if self.last_written.is_terminal:
                raise RuntimeError(
                    f"Delete status {self.operation_id} is already {self.last_written.Status.value}; "
                    f"refusing to write {status.value}"
                )
            if records_deleted < self.last_written.RecordsDeleted:
                raise ValueError(
                    f"RecordsDeleted cannot decrease ({self.last_written.RecordsDeleted} -> {records_deleted})"
                )

        record = DeleteStatus(
            Id=self.operation_id,
            Status=status,
            Timestamp=self._next_timestamp(),
            RecordsDeleted=records_deleted,
        )
        await self.storage.upsert_document(self.database, self.collection, record.to_document())
        self.last_written = record
        return record
