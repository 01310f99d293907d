"""Provisioning progress models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"


class ProvisioningStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"
    TIMEOUT = "timeout"


TERMINAL_STEP_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.ERROR, StepStatus.SKIPPED})


class ProvisioningStep(BaseModel):
    """One step of a provisioning run. Only status fields mutate."""

    id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STEP_STATUSES


class ProvisioningProgress(BaseModel):
    """Progress record of a single provisioning run."""

    instance_id: str
    status: ProvisioningStatus = ProvisioningStatus.IN_PROGRESS
    current_step: str = ""
    steps: list[ProvisioningStep] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None
    error: str | None = None

    def find_step(self, step_id: str) -> ProvisioningStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def first_with_status(self, status: StepStatus) -> ProvisioningStep | None:
        for step in self.steps:
            if step.status == status:
                return step
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status != ProvisioningStatus.IN_PROGRESS

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.COMPLETED)


class ProvisioningOutcome(BaseModel):
    """Result of one provisioning run, returned instead of raised."""

    instance_id: str
    success: bool
    message: str
    gateway_host: str | None = None
    gateway_port: int | None = None

    model_config = {"frozen": True}
