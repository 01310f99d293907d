"""Application configuration using pydantic-settings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class ProvisioningSettings(BaseSettings):
    """Provisioning run timing and buffering."""

    timeout_seconds: float = Field(default=15 * 60, alias="PROVISIONING_TIMEOUT_SECONDS")
    completed_retention_seconds: float = Field(
        default=60, alias="PROVISIONING_COMPLETED_RETENTION_SECONDS"
    )
    failed_retention_seconds: float = Field(
        default=5 * 60, alias="PROVISIONING_FAILED_RETENTION_SECONDS"
    )
    log_buffer_size: int = Field(default=100, alias="PROVISIONING_LOG_BUFFER_SIZE")
    status_poll_interval_seconds: float = Field(
        default=10.0, alias="PROVISIONING_STATUS_POLL_INTERVAL_SECONDS"
    )
    status_poll_attempts: int = Field(default=30, alias="PROVISIONING_STATUS_POLL_ATTEMPTS")
    default_gateway_port: int = Field(default=18789, alias="PROVISIONING_DEFAULT_GATEWAY_PORT")

    model_config = {"env_prefix": "PROVISIONING_", "extra": "ignore", "populate_by_name": True}


class AwsCliSettings(BaseSettings):
    """Defaults for the CLI-driven serverless-container backend."""

    binary: str = Field(default="aws", alias="AWS_CLI_BINARY")
    command_timeout_seconds: float = Field(default=120.0, alias="AWS_CLI_TIMEOUT_SECONDS")
    default_cluster: str = Field(default="botfleet-cluster", alias="AWS_CLI_DEFAULT_CLUSTER")
    default_image: str = Field(
        default="ghcr.io/clawdbot/clawdbot:latest", alias="AWS_CLI_DEFAULT_IMAGE"
    )
    default_cpu: int = Field(default=256, alias="AWS_CLI_DEFAULT_CPU")
    default_memory: int = Field(default=512, alias="AWS_CLI_DEFAULT_MEMORY")

    model_config = {"env_prefix": "AWS_CLI_", "extra": "ignore", "populate_by_name": True}


class AzureSettings(BaseSettings):
    """Defaults for the SDK-driven container-group backend."""

    default_image: str = Field(
        default="ghcr.io/clawdbot/clawdbot:latest", alias="AZURE_DEFAULT_IMAGE"
    )
    default_cpu: float = Field(default=1.0, alias="AZURE_DEFAULT_CPU")
    default_memory_mb: int = Field(default=2048, alias="AZURE_DEFAULT_MEMORY_MB")
    resource_group_prefix: str = Field(default="botfleet", alias="AZURE_RESOURCE_GROUP_PREFIX")

    model_config = {"env_prefix": "AZURE_", "extra": "ignore", "populate_by_name": True}


class WorkerSettings(BaseSettings):
    """Provisioning worker configuration."""

    enabled: bool = Field(default=False, alias="WORKER_ENABLED")
    poll_interval: float = Field(default=2.0, alias="WORKER_POLL_INTERVAL")
    max_concurrent: int = Field(default=5, alias="WORKER_MAX_CONCURRENT")

    model_config = {"env_prefix": "WORKER_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    otlp_endpoint: str = Field(default="http://localhost:4317", alias="OTLP_ENDPOINT")
    service_name: str = Field(default="botfleet-provisioner", alias="SERVICE_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")
    tracing_enabled: bool = Field(default=False, alias="TRACING_ENABLED")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    host: str = Field(default="0.0.0.0", alias="HOST")  # noqa: S104
    port: int = Field(default=8000, alias="PORT")
    workers: int = Field(default=1, alias="WORKERS")

    provisioning: ProvisioningSettings = Field(default_factory=ProvisioningSettings)
    aws_cli: AwsCliSettings = Field(default_factory=AwsCliSettings)
    azure: AzureSettings = Field(default_factory=AzureSettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
