"""API schemas for provisioning progress endpoints."""

from __future__ import annotations

from pydantic import BaseModel

from botfleet.domain.provisioning_steps import LifecyclePhase


class CatalogStepResponse(BaseModel):
    id: str
    name: str
    phase: LifecyclePhase


class CatalogResponse(BaseModel):
    default_backend_kind: str
    backends: dict[str, list[CatalogStepResponse]]
