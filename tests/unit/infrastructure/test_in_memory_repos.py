"""Unit tests for the in-memory instance repository."""

from __future__ import annotations

from datetime import timedelta

import pytest

from botfleet.domain.models.instance import BotInstance, InstanceStatus
from botfleet.infrastructure.persistence.repositories.in_memory import InMemoryInstanceRepository


class TestInMemoryInstanceRepository:
    @pytest.mark.asyncio
    async def test_save_and_get(
        self, instance_repo: InMemoryInstanceRepository, ecs_instance: BotInstance
    ) -> None:
        await instance_repo.save(ecs_instance)
        assert await instance_repo.get_by_id(ecs_instance.id) is ecs_instance
        assert await instance_repo.get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_store_is_shared(
        self, instance_repo: InMemoryInstanceRepository, ecs_instance: BotInstance
    ) -> None:
        await instance_repo.save(ecs_instance)
        assert await InMemoryInstanceRepository().get_by_id(ecs_instance.id) is ecs_instance

    @pytest.mark.asyncio
    async def test_list_newest_first(
        self,
        instance_repo: InMemoryInstanceRepository,
        ecs_instance: BotInstance,
        aci_instance: BotInstance,
    ) -> None:
        aci_instance.created_at = ecs_instance.created_at + timedelta(seconds=1)
        await instance_repo.save(ecs_instance)
        await instance_repo.save(aci_instance)

        assert [i.id for i in await instance_repo.list_all()] == [aci_instance.id, ecs_instance.id]
        assert [i.id for i in await instance_repo.list_all(limit=1, offset=1)] == [ecs_instance.id]

    @pytest.mark.asyncio
    async def test_list_by_status(
        self,
        instance_repo: InMemoryInstanceRepository,
        ecs_instance: BotInstance,
        aci_instance: BotInstance,
    ) -> None:
        aci_instance.begin_provisioning()
        await instance_repo.save(ecs_instance)
        await instance_repo.save(aci_instance)

        pending = await instance_repo.list_by_status(InstanceStatus.PENDING)
        creating = await instance_repo.list_by_status(InstanceStatus.CREATING)

        assert [i.id for i in pending] == [ecs_instance.id]
        assert [i.id for i in creating] == [aci_instance.id]

    @pytest.mark.asyncio
    async def test_acquire_oldest_pending(
        self,
        instance_repo: InMemoryInstanceRepository,
        ecs_instance: BotInstance,
        aci_instance: BotInstance,
    ) -> None:
        aci_instance.created_at = ecs_instance.created_at - timedelta(seconds=1)
        await instance_repo.save(ecs_instance)
        await instance_repo.save(aci_instance)

        first = await instance_repo.acquire_next_pending()
        second = await instance_repo.acquire_next_pending()
        third = await instance_repo.acquire_next_pending()

        assert first.id == aci_instance.id
        assert first.status == InstanceStatus.CREATING
        assert second.id == ecs_instance.id
        assert third is None

    @pytest.mark.asyncio
    async def test_clear(
        self, instance_repo: InMemoryInstanceRepository, ecs_instance: BotInstance
    ) -> None:
        await instance_repo.save(ecs_instance)
        InMemoryInstanceRepository.clear()
        assert await instance_repo.list_all() == []
