"""
Alarms API Response Schemas

Response models for alarm endpoints (PascalCase fields per existing pattern).
"""

from datetime import datetime
from datetime import timezone
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import Field

from telemetry_api.alarms.models import Alarm
from telemetry_api.alarms.models import AlarmCountByRule


def _from_epoch_millis(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class AlarmApiModel(BaseModel):
    """Single alarm."""

    Id: str
    RuleId: str
    DeviceId: str
    Status: str
    Description: str
    Severity: Optional[str] = None
    GroupId: Optional[str] = None
    DateCreated: datetime
    DateModified: Optional[datetime] = None

    @classmethod
    def from_alarm(cls, alarm: Alarm) -> "AlarmApiModel":
        return cls(
            Id=alarm.id,
            RuleId=alarm.rule_id,
            DeviceId=alarm.device_id,
            Status=alarm.status,
            Description=alarm.description,
            Severity=alarm.severity,
            GroupId=alarm.group_id,
            DateCreated=_from_epoch_millis(alarm.created),
            DateModified=_from_epoch_millis(alarm.modified),
        )


class AlarmListByRuleResponse(BaseModel):
    """Alarms raised by one rule."""

    Items: List[AlarmApiModel] = Field(default_factory=list)


class AlarmCountByRuleApiModel(BaseModel):
    """Alarm count for one rule."""

    RuleId: str
    Count: int
    Status: Optional[str] = None
    LastOccurrence: Optional[datetime] = None

    @classmethod
    def from_count(cls, count: AlarmCountByRule) -> "AlarmCountByRuleApiModel":
        return cls(
            RuleId=count.rule_id,
            Count=count.count,
            Status=count.status,
            LastOccurrence=_from_epoch_millis(count.last_created),
        )


class AlarmByRuleListResponse(BaseModel):
    """Alarm counts grouped by rule."""

    Items: List[AlarmCountByRuleApiModel] = Field(default_factory=list)
