"""Tracing and metrics around any deployment target."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from botfleet.domain.models.backend import (
    ConfigureResult,
    GatewayConfigPayload,
    GatewayEndpoint,
    InstallOptions,
    InstallResult,
    LogQuery,
    TargetStatus,
)
from botfleet.domain.ports.targets import DeploymentTarget
from botfleet.infrastructure.observability.metrics import (
    TARGET_OPERATION_DURATION,
    TARGET_OPERATIONS_TOTAL,
)
from botfleet.infrastructure.observability.tracing import target_operation_span


T = TypeVar("T")


class InstrumentedTarget(DeploymentTarget):
    """Delegates to a concrete target, recording a span and metrics per call."""

    def __init__(self, inner: DeploymentTarget, instance_id: str) -> None:
        self._inner = inner
        self._instance_id = instance_id
        self.kind = inner.kind

    @property
    def inner(self) -> DeploymentTarget:
        return self._inner

    async def _observe(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        kind = self.kind.value
        started = time.perf_counter()
        result = "failure"
        try:
            with target_operation_span(kind, operation, self._instance_id):
                value = await call()
            success = getattr(value, "success", True)
            result = "success" if success else "failure"
            return value
        finally:
            TARGET_OPERATIONS_TOTAL.labels(
                backend_kind=kind, operation=operation, result=result
            ).inc()
            TARGET_OPERATION_DURATION.labels(backend_kind=kind, operation=operation).observe(
                time.perf_counter() - started
            )

    async def install(self, options: InstallOptions) -> InstallResult:
        return await self._observe("install", lambda: self._inner.install(options))

    async def configure(self, payload: GatewayConfigPayload) -> ConfigureResult:
        return await self._observe("configure", lambda: self._inner.configure(payload))

    async def start(self) -> None:
        await self._observe("start", self._inner.start)

    async def stop(self) -> None:
        await self._observe("stop", self._inner.stop)

    async def restart(self) -> None:
        await self._observe("restart", self._inner.restart)

    async def get_status(self) -> TargetStatus:
        return await self._observe("get_status", self._inner.get_status)

    async def get_logs(self, query: LogQuery | None = None) -> list[str]:
        return await self._observe("get_logs", lambda: self._inner.get_logs(query))

    async def get_endpoint(self) -> GatewayEndpoint:
        return await self._observe("get_endpoint", self._inner.get_endpoint)

    async def destroy(self) -> None:
        await self._observe("destroy", self._inner.destroy)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)
