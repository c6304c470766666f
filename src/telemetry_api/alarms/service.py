"""
Alarms Service

Entry point used by the API routes: alarm reads, delete-by-rule start and status.
"""

import asyncio
from datetime import datetime
from typing import List
from typing import Optional
from typing import Sequence

from loguru import logger

from telemetry_api.alarms.config import AlarmsConfig
from telemetry_api.alarms.delete_by_rule import DeleteByRuleOperation
from telemetry_api.alarms.delete_status import read_delete_status
from telemetry_api.alarms.models import Alarm
from telemetry_api.alarms.models import AlarmCountByRule
from telemetry_api.alarms.models import DeleteStatus
from telemetry_api.alarms.task_runner import BackgroundTaskRunner
from telemetry_api.storage.query_builder import build_alarms_query
from telemetry_api.storage.query_builder import build_filter_options


class AlarmsService:
    """Alarm operations over the document store."""

    def __init__(self, storage, config: AlarmsConfig, runner: BackgroundTaskRunner):
        """
        Initialize alarms service.

        Args:
            storage: StorageClient
            config: Alarms configuration
            runner: Runner for detached delete-by-rule operations
        """
        self.storage = storage
        self.config = config
        self.runner = runner

    async def list_by_rule(
        self,
        rule_id: str,
        from_date: Optional[datetime],
        to_date: Optional[datetime],
        order: Optional[str],
        skip: int,
        limit: int,
        device_ids: Sequence[str],
    ) -> List[Alarm]:
        """List alarms raised by one rule."""
        documents = await self.storage.query_documents(
            self.config.database,
            self.config.collection,
            build_filter_options(order),
            build_alarms_query(rule_id, from_date, to_date, device_ids),
            skip,
            limit,
        )
        return [Alarm.model_validate(document) for document in documents]

    async def get_alarm_count_by_rule(
        self,
        from_date: Optional[datetime],
        to_date: Optional[datetime],
        order: Optional[str],
        skip: int,
        limit: int,
        device_ids: Sequence[str],
    ) -> List[AlarmCountByRule]:
        """Count alarms per rule."""
        rows = await self.storage.count_documents_by_rule(
            self.config.database,
            self.config.collection,
            build_filter_options(order),
            build_alarms_query(None, from_date, to_date, device_ids),
            skip,
            limit,
        )
        return [AlarmCountByRule.model_validate(row) for row in rows]

    def start_delete_by_rule(
        self,
        rule_id: str,
        from_date: Optional[datetime],
        to_date: Optional[datetime],
        order: Optional[str],
        skip: int,
        limit: Optional[int],
        device_ids: Sequence[str],
        operation_id: str,
    ) -> asyncio.Task:
        """
        Start deleting the alarms of a rule in the background.

        Returns immediately; progress is visible through get_delete_by_rule_status.
        """
        operation = DeleteByRuleOperation(
            self.storage,
            self.config,
            rule_id,
            from_date,
            to_date,
            order,
            skip,
            limit,
            device_ids,
            operation_id,
        )
        logger.info(f"Delete by rule accepted: {operation_id}", operation_id=operation_id, rule_id=rule_id)
        return self.runner.spawn(operation.run(), name=f"delete-by-rule-{operation_id}")

    async def get_delete_by_rule_status(self, operation_id: str) -> DeleteStatus:
        """Get the status of a delete-by-rule operation (Unknown when not found or stale)."""
        return await read_delete_status(self.storage, self.config, operation_id)
