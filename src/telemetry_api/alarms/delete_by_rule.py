"""
Delete By Rule Orchestrator

Deletes the alarms raised by one rule, page by page, checkpointing progress into a
DeleteStatus record that pollers read independently.

Steps:
1. Checkpoint InProgress (0 records) so the operation becomes visible
2. Query a page of matching alarms
3. Delete each alarm, retrying a failed attempt up to the configured budget
4. Checkpoint every N deletions and at the end of every page
5. Checkpoint Success once no candidates remain, or Failed when a step gives up
"""

from datetime import datetime
from functools import partial
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Optional
from typing import Sequence
from typing import Set

from loguru import logger

from telemetry_api.alarms.config import AlarmsConfig
from telemetry_api.alarms.status_tracker import DeleteStatusTracker
from telemetry_api.storage.query_builder import build_alarms_query
from telemetry_api.storage.query_builder import build_filter_options


class OperationAborted(Exception):
    """Raised inside a delete-by-rule operation to stop it and record Failed."""


class DeleteByRuleOperation:
    """
    One delete-by-rule run.

    Documents are processed one at a time, so records_deleted needs no locking.
    run() never raises: every outcome ends up in the status record or the log.
    """

    def __init__(
        self,
        storage,
        config: AlarmsConfig,
        rule_id: str,
        from_date: Optional[datetime],
        to_date: Optional[datetime],
        order: Optional[str],
        skip: int,
        limit: Optional[int],
        device_ids: Sequence[str],
        operation_id: str,
    ):
        self.storage = storage
        self.config = config
        self.rule_id = rule_id
        self.from_date = from_date
        self.to_date = to_date
        self.order = order
        self.skip = skip
        self.limit = limit
        self.device_ids = list(device_ids or [])
        self.operation_id = operation_id

        self.records_deleted = 0
        self.tracker = DeleteStatusTracker(
            storage,
            config.database,
            config.delete_status_collection,
            operation_id,
        )

    async def run(self) -> None:
        """Run the operation to a terminal status."""
        logger.info(
            f"[{self.operation_id}] Delete by rule started",
            operation_id=self.operation_id,
            rule_id=self.rule_id,
            skip=self.skip,
            limit=self.limit,
            devices=len(self.device_ids),
        )

        try:
            await self._checkpoint()
            await self._delete_all_pages()
            await self._attempt("Write Success status", partial(self.tracker.complete, self.records_deleted))
        except OperationAborted as e:
            logger.error(
                f"[{self.operation_id}] Delete by rule failed: {e}",
                operation_id=self.operation_id,
                rule_id=self.rule_id,
                records_deleted=self.records_deleted,
            )
            await self._record_failure()

    async def _delete_all_pages(self) -> None:
        page_size = self.limit if self.limit is not None else self.config.delete_page_size
        try:
            filter_options = build_filter_options(self.order)
            query = build_alarms_query(self.rule_id, self.from_date, self.to_date, self.device_ids)
        except ValueError as e:
            raise OperationAborted(str(e)) from e

        previous_page_ids: Set[str] = set()
        while True:
            try:
                documents = await self.storage.query_documents(
                    self.config.database,
                    self.config.collection,
                    filter_options,
                    query,
                    self.skip,
                    page_size,
                )
            except Exception as e:
                # Queries are not retried
                raise OperationAborted(f"Query for alarms of rule {self.rule_id} failed: {e}") from e

            page_ids = [str(document.get("id", document.get("Id"))) for document in documents]
            if not page_ids:
                return

            if previous_page_ids.issuperset(page_ids):
                # The store still returns documents this operation already deleted
                logger.info(
                    f"[{self.operation_id}] Query returned only deleted alarms, stopping",
                    operation_id=self.operation_id,
                )
                return

            for document_id in page_ids:
                if document_id in previous_page_ids:
                    continue
                await self._attempt(
                    "Delete alarm",
                    partial(self.storage.delete_document, self.config.database, self.config.collection, document_id),
                    document_id=document_id,
                )
                self.records_deleted += 1
                if self.records_deleted % self.config.delete_checkpoint_interval == 0:
                    await self._checkpoint()

            if self.tracker.last_written.RecordsDeleted != self.records_deleted:
                # Not already checkpointed by the interval above
                await self._checkpoint()
            previous_page_ids = set(page_ids)

            if self.limit is not None:
                # An explicit limit bounds the operation to the caller's window
                return

    async def _checkpoint(self) -> None:
        await self._attempt("Write progress checkpoint", partial(self.tracker.update, self.records_deleted))

    async def _attempt(self, description: str, action: Callable[[], Awaitable[Any]], **context: Any) -> Any:
        """
        Run action, retrying immediately on failure.

        Every failed attempt with budget left logs a warning; the attempt that
        exhausts the budget logs an error and raises OperationAborted.
        """
        max_attempts = self.config.max_delete_retries
        attempt = 0
        while True:
            attempt += 1
            try:
                return await action()
            except Exception as e:
                if attempt < max_attempts:
                    logger.warning(
                        f"[{self.operation_id}] {description} failed (attempt {attempt}/{max_attempts}), retrying: {e}",
                        operation_id=self.operation_id,
                        attempt=attempt,
                        error_type=type(e).__name__,
                        **context,
                    )
                    continue

                logger.error(
                    f"[{self.operation_id}] {description} failed after {attempt} attempts: {e}",
                    operation_id=self.operation_id,
                    attempt=attempt,
                    error_type=type(e).__name__,
                    **context,
                )
                raise OperationAborted(f"{description} failed after {attempt} attempts") from e

    async def _record_failure(self) -> None:
        try:
            await self._attempt("Write Failed status", partial(self.tracker.fail, self.records_deleted))
        except OperationAborted:
            # Already logged; the record stays InProgress and reads as Unknown once stale
            return
