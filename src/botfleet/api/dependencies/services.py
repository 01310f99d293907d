"""Service dependencies for FastAPI dependency injection."""

from __future__ import annotations

from botfleet.config import get_settings, Settings
from botfleet.domain.ports.repositories import InstanceRepository
from botfleet.domain.services.lifecycle_service import LifecycleService
from botfleet.domain.services.provisioning_tracker import ProvisioningTracker
from botfleet.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from botfleet.infrastructure.messaging.progress_hub import ProvisioningEventHub
from botfleet.infrastructure.persistence.repositories.in_memory import InMemoryInstanceRepository
from botfleet.infrastructure.scheduling.timers import AsyncioScheduler
from botfleet.infrastructure.targets.factory import TargetFactory
from botfleet.workers.provisioning_worker import ProvisioningWorkerAgent


class ServiceContainer:
    """Simple dependency injection container.

    Implements the Composition Root pattern for assembling
    dependencies and managing their lifecycle. The tracker and the
    event hub are process-local, so one container serves the process.
    """

    _instance: ServiceContainer | None = None

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        provisioning = self._settings.provisioning

        self._event_publisher = InMemoryEventPublisher()
        self._event_hub = ProvisioningEventHub(log_buffer_size=provisioning.log_buffer_size)
        self._scheduler = AsyncioScheduler()
        self._tracker = ProvisioningTracker(
            scheduler=self._scheduler,
            notifier=self._event_hub,
            event_publisher=self._event_publisher,
            timeout_seconds=provisioning.timeout_seconds,
            completed_retention_seconds=provisioning.completed_retention_seconds,
            failed_retention_seconds=provisioning.failed_retention_seconds,
        )
        self._instance_repo = InMemoryInstanceRepository()
        self._target_factory = TargetFactory(self._settings)
        self._lifecycle = LifecycleService(
            instance_repo=self._instance_repo,
            tracker=self._tracker,
            target_factory=self._target_factory,
            event_publisher=self._event_publisher,
            status_poll_interval=provisioning.status_poll_interval_seconds,
            status_poll_attempts=provisioning.status_poll_attempts,
        )
        self._worker = ProvisioningWorkerAgent(
            lifecycle=self._lifecycle,
            tracker=self._tracker,
            instance_repo=self._instance_repo,
            poll_interval=self._settings.worker.poll_interval,
            max_concurrent=self._settings.worker.max_concurrent,
            timeout_seconds=provisioning.timeout_seconds,
        )

    @classmethod
    def get_instance(cls) -> ServiceContainer:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def event_publisher(self) -> InMemoryEventPublisher:
        return self._event_publisher

    @property
    def event_hub(self) -> ProvisioningEventHub:
        return self._event_hub

    @property
    def tracker(self) -> ProvisioningTracker:
        return self._tracker

    @property
    def instance_repo(self) -> InstanceRepository:
        return self._instance_repo

    @property
    def target_factory(self) -> TargetFactory:
        return self._target_factory

    @property
    def lifecycle(self) -> LifecycleService:
        return self._lifecycle

    @property
    def worker(self) -> ProvisioningWorkerAgent:
        return self._worker


def get_service_container() -> ServiceContainer:
    return ServiceContainer.get_instance()
