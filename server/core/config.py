"""Environment-driven configuration with Pydantic v2."""

from datetime import timedelta
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from constants import KEYS_CHARSET, ONE_MEBIBYTE, HOURS_IN_DAY, HOURS_IN_MONTH, MONTHS_IN_YEAR


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="localhost", env="HOST")
    port: int = Field(default=8080, env="PORT", ge=1, le=65535)
    debug: bool = Field(default=False, env="DEBUG")
    workers: int = Field(default=1, env="WORKERS", ge=1, le=8)
    version: str = Field(default="built-from-source", env="VERSION")
    health_enabled: bool = Field(default=False, env="HEALTH_ENABLED")

    # Store Configuration
    redis_enabled: bool = Field(default=True, env="REDIS_ENABLED")
    redis_url: str = Field(default="redis://localhost:6379", env="REDIS_URL")
    redis_max_retries: int = Field(default=5, env="REDIS_MAX_RETRIES", ge=0, le=10)
    redis_socket_timeout: float = Field(default=5.0, env="REDIS_SOCKET_TIMEOUT", gt=0)
    redis_connect_timeout: float = Field(default=10.0, env="REDIS_CONNECT_TIMEOUT", gt=0)
    records_db: int = Field(default=0, env="RECORDS_DB", ge=0)
    apikeys_db: int = Field(default=1, env="APIKEYS_DB", ge=0)
    quota_db: int = Field(default=2, env="QUOTA_DB", ge=0)

    # Per-operation deadline (seconds)
    operation_timeout: float = Field(default=3.0, env="OPERATION_TIMEOUT", gt=0, le=60)

    # API key usage auditing
    usage_events_enabled: bool = Field(default=True, env="USAGE_EVENTS_ENABLED")
    usage_events_stream: str = Field(default="apikeysusage", env="USAGE_EVENTS_STREAM")
    usage_events_stream_maxlen: int = Field(default=100000, env="USAGE_EVENTS_STREAM_MAXLEN", ge=1)
    usage_events_queue_size: int = Field(default=1024, env="USAGE_EVENTS_QUEUE_SIZE", ge=1)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: Literal["json", "console"] = Field(default="console", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    # Request validation
    unprivileged_max_body_size: int = Field(default=ONE_MEBIBYTE, env="UNPRIVILEGED_MAX_BODY_SIZE", ge=1)
    privileged_max_body_size: int = Field(default=100 * ONE_MEBIBYTE, env="PRIVILEGED_MAX_BODY_SIZE", ge=1)
    min_ttl_seconds: int = Field(default=1, env="MIN_TTL_SECONDS", ge=1)
    default_ttl_seconds: int = Field(default=HOURS_IN_MONTH * 3600, env="DEFAULT_TTL_SECONDS", ge=1)
    unprivileged_max_ttl_seconds: int = Field(default=HOURS_IN_MONTH * 3600, env="UNPRIVILEGED_MAX_TTL_SECONDS", ge=1)
    privileged_max_ttl_seconds: int = Field(
        default=HOURS_IN_MONTH * MONTHS_IN_YEAR * 3600, env="PRIVILEGED_MAX_TTL_SECONDS", ge=1
    )
    max_key_length: int = Field(default=20, env="MAX_KEY_LENGTH", ge=1, le=255)
    default_key_length: int = Field(default=14, env="DEFAULT_KEY_LENGTH", ge=1, le=255)
    unprivileged_min_key_length: int = Field(default=8, env="UNPRIVILEGED_MIN_KEY_LENGTH", ge=1, le=255)
    privileged_min_key_length: int = Field(default=3, env="PRIVILEGED_MIN_KEY_LENGTH", ge=1, le=255)
    allowed_key_chars: str = Field(default=KEYS_CHARSET, env="ALLOWED_KEY_CHARS", min_length=2)

    # Quota
    quota: int = Field(default=50, env="QUOTA", ge=1)
    quota_reset_period_seconds: int = Field(default=HOURS_IN_DAY * 3600, env="QUOTA_RESET_PERIOD_SECONDS", ge=1)

    # Caching
    compress_threshold_bytes: int = Field(default=4096, env="COMPRESS_THRESHOLD_BYTES", ge=0, le=65535)
    attempts_to_increase_key_length: int = Field(default=20, env="ATTEMPTS_TO_INCREASE_KEY_LENGTH", ge=1, le=255)
    keys_charset: str = Field(default=KEYS_CHARSET, env="KEYS_CHARSET", min_length=2)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Accept level names in any case."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v}")
        return "WARNING" if level == "WARN" else level

    @model_validator(mode="after")
    def validate_bounds(self):
        """Keep min/default/max triples ordered."""
        if not (self.privileged_min_key_length <= self.default_key_length <= self.max_key_length):
            raise ValueError("default_key_length must lie between privileged_min_key_length and max_key_length")
        if self.unprivileged_min_key_length > self.max_key_length:
            raise ValueError("unprivileged_min_key_length can't exceed max_key_length")
        if self.min_ttl_seconds > self.unprivileged_max_ttl_seconds:
            raise ValueError("min_ttl_seconds can't exceed unprivileged_max_ttl_seconds")
        if self.unprivileged_max_ttl_seconds > self.privileged_max_ttl_seconds:
            raise ValueError("unprivileged_max_ttl_seconds can't exceed privileged_max_ttl_seconds")
        if self.unprivileged_max_body_size > self.privileged_max_body_size:
            raise ValueError("unprivileged_max_body_size can't exceed privileged_max_body_size")
        return self

    @property
    def min_ttl(self) -> timedelta:
        return timedelta(seconds=self.min_ttl_seconds)

    @property
    def default_ttl(self) -> timedelta:
        return timedelta(seconds=self.default_ttl_seconds)

    @property
    def unprivileged_max_ttl(self) -> timedelta:
        return timedelta(seconds=self.unprivileged_max_ttl_seconds)

    @property
    def privileged_max_ttl(self) -> timedelta:
        return timedelta(seconds=self.privileged_max_ttl_seconds)

    @property
    def quota_reset_period(self) -> timedelta:
        return timedelta(seconds=self.quota_reset_period_seconds)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
