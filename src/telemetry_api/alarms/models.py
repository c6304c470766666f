"""
Alarm Models

Stored alarm documents, alarm counts per rule and the delete-by-rule progress record.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from typing import Dict
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import field_validator


class DeleteStatusValue(str, Enum):
    """State of a delete-by-rule operation."""

    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILED = "Failed"
    UNKNOWN = "Unknown"  # Never persisted; computed when reading status


TERMINAL_STATUSES = {DeleteStatusValue.SUCCESS, DeleteStatusValue.FAILED}


class DeleteStatus(BaseModel):
    """Progress record of one delete-by-rule operation (PascalCase fields per API pattern)."""

    Id: str
    Status: DeleteStatusValue
    Timestamp: Optional[datetime] = None
    RecordsDeleted: Optional[int] = None

    @field_validator("Status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        """Accept the spaced 'In Progress' spelling written by older deployments."""
        if isinstance(v, str) and v.replace(" ", "").lower() == "inprogress":
            return DeleteStatusValue.IN_PROGRESS
        return v

    @property
    def is_terminal(self) -> bool:
        return self.Status in TERMINAL_STATUSES

    @classmethod
    def unknown(cls, operation_id: str) -> "DeleteStatus":
        return cls(Id=operation_id, Status=DeleteStatusValue.UNKNOWN)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Alarm(BaseModel):
    """Alarm document as stored; created and modified are epoch milliseconds."""

    model_config = ConfigDict(extra="ignore")

    id: str
    rule_id: str
    device_id: str
    status: str = "open"
    description: str = ""
    severity: Optional[str] = None
    group_id: Optional[str] = None
    created: int
    modified: Optional[int] = None


class AlarmCountByRule(BaseModel):
    """Number of alarms raised by one rule, with the status of its latest alarm."""

    rule_id: str
    count: int
    status: Optional[str] = None
    last_created: Optional[int] = None
