"""Settings for the device telemetry API."""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the device telemetry API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) reads
    configuration values from environment variables and, for local development, a .env file.

    Environment variable names are treated case-insensitively.
    """

    # Document storage
    storage_connection_string: Optional[str] = None
    """PostgreSQL connection string for the alarm document store."""

    storage_pool_min_size: int = 2
    """Minimum number of pooled storage connections."""

    storage_pool_max_size: int = 10
    """Maximum number of pooled storage connections."""

    # Alarms
    alarms_database: str = "pcs-iothub-stream"
    """Logical database holding alarm documents."""

    alarms_collection: str = "alarms"
    """Collection holding alarm documents."""

    alarms_delete_status_collection: str = "alarm-delete-status"
    """Collection holding delete-by-rule progress records."""

    alarms_max_delete_retries: int = 3
    """Attempts allowed per storage write before a delete-by-rule operation fails."""

    alarms_delete_checkpoint_interval: int = 50
    """Successful deletions between two progress checkpoints."""

    alarms_delete_page_size: int = 1000
    """Page size used by delete-by-rule when the caller gives no limit."""

    alarms_delete_status_stale_after_seconds: int = 600
    """Age after which an InProgress checkpoint is reported as Unknown."""

    # Logging
    log_level: str = "INFO"
    """Minimum level written to stdout."""

    log_json: bool = False
    """Write logs as one JSON object per line instead of the text format."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )
