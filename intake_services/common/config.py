from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "intake-service"


class ServiceSettings(BaseSettings):
    """Base settings shared by the intake FastAPI services."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    service_host: str = Field(default="0.0.0.0")
    service_port: int = Field(default=8000)
    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=False)
    tracing_endpoint: str | None = Field(default=None)
    tracing_protocol: Literal["http/protobuf", "grpc"] = Field(default="http/protobuf")
    tracing_insecure: bool = Field(default=True)
    tracing_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    public_base_url: str = Field(default="http://localhost:3000")
    audit_log_enabled: bool = Field(default=True)
    notification_sms_provider: str = Field(default="mock")
    notification_sms_from_number: str = Field(default="+15551234567")
    notification_sms_delay_ms: int = Field(default=1000, ge=0)
    notification_sms_failure_rate: float = Field(default=0.05, ge=0.0, le=1.0)
    notification_sms_cost: float = Field(default=0.01, ge=0.0)
    notification_email_provider: str = Field(default="mock")
    notification_email_from: str = Field(default="noreply@gotooptical.com")
    notification_email_from_name: str = Field(default="GoTo Optical")
    notification_email_delay_ms: int = Field(default=2000, ge=0)
    notification_email_failure_rate: float = Field(default=0.03, ge=0.0, le=1.0)
    notification_email_cost: float = Field(default=0.001, ge=0.0)
    notification_delivery_timeout_seconds: float | None = Field(default=10.0, gt=0.0)
    notification_max_retries: int = Field(default=3, ge=0)
    notification_default_timezone: str = Field(default="America/New_York")
    notification_random_seed: int | None = Field(default=None)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="SERVICE_", extra="ignore"
    )


@lru_cache
def get_settings() -> ServiceSettings:
    """Return cached service settings."""

    return ServiceSettings()
