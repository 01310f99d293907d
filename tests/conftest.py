"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from pydantic import SecretStr

from botfleet.config import Environment, Settings
from botfleet.domain.models.backend import (
    BackendKind,
    ConfigureResult,
    GatewayConfigPayload,
    GatewayEndpoint,
    InstallOptions,
    InstallResult,
    LogQuery,
    TargetState,
    TargetStatus,
)
from botfleet.domain.models.instance import BotInstance
from botfleet.domain.models.targets import ContainerGroupConfig, EcsFargateConfig, TargetConfig
from botfleet.domain.ports.services import Scheduler, TimerHandle
from botfleet.domain.ports.targets import DeploymentTarget
from botfleet.domain.services.provisioning_tracker import ProvisioningTracker
from botfleet.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from botfleet.infrastructure.messaging.progress_hub import ProvisioningEventHub
from botfleet.infrastructure.persistence.repositories.in_memory import InMemoryInstanceRepository


# ----------------------------------------------------------------------
# Fakes
# ----------------------------------------------------------------------


class FakeTimerHandle(TimerHandle):
    def __init__(self, due: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Simulated clock. Timers fire only when the test advances time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.elapsed = 0.0
        self.timers: list[FakeTimerHandle] = []

    def clock(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    def call_later(
        self, delay_seconds: float, callback: Callable[[], Awaitable[None]]
    ) -> TimerHandle:
        timer = FakeTimerHandle(self.elapsed + delay_seconds, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [t for t in self.timers if not t.cancelled]

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.elapsed + seconds
        while True:
            due = sorted(
                (t for t in self.pending if t.due <= target), key=lambda t: t.due
            )
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.elapsed = max(self.elapsed, timer.due)
            await timer.callback()
        self.elapsed = target


class FakeCliRunner:
    """Stands in for the ``aws`` CLI runner.

    Responses are queued per ``(service, command)``; the last queued response
    repeats. A queued exception is raised instead of returned.
    """

    region = "us-east-1"

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self._responses: dict[tuple[str, ...], list[Any]] = {}

    def respond(self, service: str, command: str, *results: Any) -> None:
        self._responses.setdefault((service, command), []).extend(results)

    def _next(self, args: tuple[str, ...]) -> Any:
        self.calls.append(args)
        queue = self._responses.get(args[:2])
        if not queue:
            return {}
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def run(self, *args: str) -> str:
        result = self._next(args)
        return result if isinstance(result, str) else json.dumps(result)

    async def run_json(self, *args: str) -> dict[str, Any]:
        result = self._next(args)
        return result if isinstance(result, dict) else {}

    def commands(self) -> list[tuple[str, ...]]:
        return [call[:2] for call in self.calls]

    def calls_for(self, service: str, command: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[:2] == (service, command)]


class FakeTarget(DeploymentTarget):
    """Scriptable deployment target recording every call."""

    kind = BackendKind.ECS_FARGATE

    def __init__(
        self,
        install_success: bool = True,
        configure_success: bool = True,
        requires_restart: bool = True,
        statuses: list[TargetState] | None = None,
        endpoint: GatewayEndpoint | None = None,
        endpoint_error: Exception | None = None,
    ) -> None:
        self.install_success = install_success
        self.configure_success = configure_success
        self.requires_restart = requires_restart
        self.statuses = list(statuses or [TargetState.RUNNING])
        self.endpoint = endpoint or GatewayEndpoint(host="203.0.113.10", port=18789)
        self.endpoint_error = endpoint_error
        self.calls: list[str] = []

    async def install(self, options: InstallOptions) -> InstallResult:
        self.calls.append("install")
        return InstallResult(
            success=self.install_success,
            instance_id=f"botfleet-{options.profile_name}",
            message="installed" if self.install_success else "quota exceeded",
        )

    async def configure(self, payload: GatewayConfigPayload) -> ConfigureResult:
        self.calls.append("configure")
        return ConfigureResult(
            success=self.configure_success,
            message="configured" if self.configure_success else "secret store unavailable",
            requires_restart=self.requires_restart,
        )

    async def start(self) -> None:
        self.calls.append("start")

    async def stop(self) -> None:
        self.calls.append("stop")

    async def restart(self) -> None:
        self.calls.append("restart")

    async def get_status(self) -> TargetStatus:
        self.calls.append("get_status")
        state = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return TargetStatus(state=state, gateway_port=18789)

    async def get_logs(self, query: LogQuery | None = None) -> list[str]:
        self.calls.append("get_logs")
        return ["gateway started"]

    async def get_endpoint(self) -> GatewayEndpoint:
        self.calls.append("get_endpoint")
        if self.endpoint_error is not None:
            raise self.endpoint_error
        return self.endpoint

    async def destroy(self) -> None:
        self.calls.append("destroy")


async def no_sleep(_seconds: float) -> None:
    return None


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clear_stores() -> None:
    """Clear in-memory stores before each test."""
    InMemoryInstanceRepository.clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(environment=Environment.TESTING, debug=True)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def event_publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def event_hub() -> ProvisioningEventHub:
    return ProvisioningEventHub(log_buffer_size=5)


@pytest.fixture
def tracker(
    scheduler: FakeScheduler,
    event_hub: ProvisioningEventHub,
    event_publisher: InMemoryEventPublisher,
) -> ProvisioningTracker:
    return ProvisioningTracker(
        scheduler=scheduler,
        notifier=event_hub,
        event_publisher=event_publisher,
        clock=scheduler.clock,
    )


@pytest.fixture
def instance_repo() -> InMemoryInstanceRepository:
    return InMemoryInstanceRepository()


@pytest.fixture
def cli_runner() -> FakeCliRunner:
    return FakeCliRunner()


@pytest.fixture
def ecs_config() -> EcsFargateConfig:
    return EcsFargateConfig(
        region="us-east-1",
        access_key_id="AKIAEXAMPLE",
        secret_access_key=SecretStr("secret"),
        subnet_ids=["subnet-1", "subnet-2"],
        security_group_id="sg-1",
    )


@pytest.fixture
def aci_config() -> ContainerGroupConfig:
    return ContainerGroupConfig(
        subscription_id="00000000-0000-0000-0000-000000000001",
        tenant_id="tenant",
        client_id="client",
        client_secret=SecretStr("secret"),
        region="westeurope",
    )


@pytest.fixture
def ecs_instance(ecs_config: EcsFargateConfig) -> BotInstance:
    return BotInstance(
        name="Support bot",
        profile_name="support",
        target=TargetConfig(kind=BackendKind.ECS_FARGATE, ecs=ecs_config),
        environment={"BOT_TOKEN": "abc"},
    )


@pytest.fixture
def aci_instance(aci_config: ContainerGroupConfig) -> BotInstance:
    return BotInstance(
        name="Sales bot",
        profile_name="sales",
        target=TargetConfig(kind=BackendKind.ACI, aci=aci_config),
    )


@pytest.fixture
def fake_target() -> FakeTarget:
    return FakeTarget()
