"""
Session store configuration using Pydantic Settings.

Configuration values can be set via environment variables (prefixed with
DYNAMODB_SESSIONS_) or a .env file. Nothing reads the environment unless a
SessionStoreSettings instance is explicitly created.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PREFIX = "sess:"
DEFAULT_TABLE = "sessions"
DEFAULT_REGION = "us-east-1"
DEFAULT_CAPACITY_UNITS = 5

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SessionStoreSettings(BaseSettings):
    """Settings for DynamoDBSessionStore with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="DYNAMODB_SESSIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Key namespace and table
    prefix: str = DEFAULT_PREFIX
    table: str = Field(default=DEFAULT_TABLE, min_length=1)

    # Client construction (ignored when a client is passed to the store)
    region: str = DEFAULT_REGION
    aws_config_path: Optional[str] = None
    endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_session_token: Optional[str] = None

    # Table bootstrap throughput
    read_capacity: int = Field(default=DEFAULT_CAPACITY_UNITS, ge=1)
    write_capacity: int = Field(default=DEFAULT_CAPACITY_UNITS, ge=1)

    # Seconds between expired-session sweeps; 0 disables the sweep
    reap_interval: float = Field(default=0, ge=0)

    # Logging: level of the package logger; log_handler attaches a stderr
    # handler of its own, otherwise records propagate to the host app
    log_level: str = "INFO"
    json_logging: bool = False
    log_handler: bool = False

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    def client_options(self) -> dict:
        """Keyword options for building a DynamoDB client from these settings."""
        return {
            "region": self.region,
            "aws_config_path": self.aws_config_path,
            "endpoint_url": self.endpoint_url,
            "aws_access_key_id": self.aws_access_key_id,
            "aws_secret_access_key": self.aws_secret_access_key,
            "aws_session_token": self.aws_session_token,
        }
