from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HTTPSettings(BaseSettings):
    """Target API and per-request client configuration."""

    base_url: str = "http://localhost:8089/api/orders"
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        le=600.0,
        description="Timeout applied to every request (connect + read)",
    )
    max_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Extra attempts for requests that fail at the transport level",
    )
    retry_base_delay: float = Field(default=0.5, ge=0.0, le=5.0)
    retry_multiplier: float = Field(default=2.0, ge=1.0, le=5.0)

    model_config = SettingsConfigDict(env_prefix="LOADGEN_HTTP_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Base URL must start with http:// or https://")
        return v.rstrip("/")


class RunSettings(BaseSettings):
    """Scheduling and shutdown behaviour of a run."""

    grace_period_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Time in-flight requests may take to finish once a scenario ends",
    )
    tick_seconds: float = Field(
        default=0.05,
        gt=0.0,
        le=1.0,
        description="Scheduler polling interval",
    )
    duration_scale: float = Field(
        default=1.0,
        gt=0.0,
        description="Multiplier applied to every scenario duration (smoke runs)",
    )

    model_config = SettingsConfigDict(env_prefix="LOADGEN_RUN_")


class MetricsSettings(BaseSettings):
    """Live Prometheus exposition of harness metrics."""

    enabled: bool = False
    port: int = Field(default=9465, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="LOADGEN_METRICS_")


class Settings(BaseSettings):
    http: HTTPSettings = Field(default_factory=HTTPSettings)
    run: RunSettings = Field(default_factory=RunSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_prefix="LOADGEN_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
