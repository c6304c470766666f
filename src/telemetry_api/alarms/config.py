"""Alarms configuration shared by the read paths and delete-by-rule."""

from pydantic import BaseModel
from pydantic import Field

from telemetry_api.settings import Settings


class AlarmsConfig(BaseModel):
    """Storage location and delete-by-rule tuning for alarms."""

    database: str
    collection: str
    delete_status_collection: str
    max_delete_retries: int = Field(default=3, ge=1)
    delete_checkpoint_interval: int = Field(default=50, ge=1)
    delete_page_size: int = Field(default=1000, ge=1)
    delete_status_stale_after_seconds: int = Field(default=600, ge=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlarmsConfig":
        return cls(
            database=settings.alarms_database,
            collection=settings.alarms_collection,
            delete_status_collection=settings.alarms_delete_status_collection,
            max_delete_retries=settings.alarms_max_delete_retries,
            delete_checkpoint_interval=settings.alarms_delete_checkpoint_interval,
            delete_page_size=settings.alarms_delete_page_size,
            delete_status_stale_after_seconds=settings.alarms_delete_status_stale_after_seconds,
        )
