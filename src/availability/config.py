"""Engine configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class SchedulingConfig(BaseSettings):
    """Schedule/Roster API and logging settings.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Schedule/Roster API
    api_base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the Schedule/Roster API",
    )
    api_token: str = Field(
        default="",
        description="Bearer token sent with every API request",
    )
    week_id: str = Field(
        default="",
        description="Default target week for reads and batch writes",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Per-request HTTP timeout",
    )
    read_retry_attempts: int = Field(
        default=3,
        description="Attempts for idempotent GET requests on transient failures",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "SCHEDULING_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Singleton pattern
_config: SchedulingConfig | None = None


def get_config() -> SchedulingConfig:
    """Get the configuration singleton.

    Returns:
        SchedulingConfig: Configuration instance
    """
    global _config
    if _config is None:
        _config = SchedulingConfig()
    return _config
