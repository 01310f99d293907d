"""Deployment target construction inputs.

Every value a backend needs is carried explicitly here. One control plane
drives many tenants' accounts concurrently, so nothing is inferred from the
process environment.
"""

from __future__ import annotations

from pydantic import Field, model_validator, SecretStr

from botfleet.domain.models.backend import BackendKind
from botfleet.domain.models.base import ValueObject


class EcsFargateConfig(ValueObject):
    """Serverless-container (ECS Fargate) target configuration."""

    region: str = Field(..., min_length=1)
    access_key_id: str = Field(..., min_length=1)
    secret_access_key: SecretStr
    session_token: SecretStr | None = None
    cluster_name: str | None = None
    image: str | None = None
    cpu: int | None = None
    memory: int | None = None
    subnet_ids: list[str] = Field(default_factory=list)
    security_group_id: str | None = None
    assign_public_ip: bool = True
    execution_role_arn: str | None = None
    task_role_arn: str | None = None


class ContainerGroupConfig(ValueObject):
    """Container-group (Azure Container Instances) target configuration."""

    subscription_id: str = Field(..., min_length=1)
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    region: str = "eastus"
    resource_group: str | None = None
    key_vault_name: str | None = None
    log_analytics_workspace_id: str | None = None
    image: str | None = None
    cpu: float | None = None
    memory_mb: int | None = None
    dns_name_label: str | None = None


class TargetConfig(ValueObject):
    """Backend kind plus the configuration block that kind requires."""

    kind: BackendKind
    ecs: EcsFargateConfig | None = None
    aci: ContainerGroupConfig | None = None

    @model_validator(mode="after")
    def _check_block(self) -> TargetConfig:
        if self.kind == BackendKind.ECS_FARGATE and self.ecs is None:
            raise ValueError("ecs-fargate targets require an 'ecs' configuration block")
        if self.kind == BackendKind.ACI and self.aci is None:
            raise ValueError("aci targets require an 'aci' configuration block")
        return self
