"""Unit tests for the ECS Fargate deployment target."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from botfleet.domain.models.backend import (
    GatewayConfigPayload,
    InstallOptions,
    LogQuery,
    TargetState,
)
from botfleet.domain.models.targets import EcsFargateConfig
from botfleet.domain.ports.targets import EndpointResolutionError, TargetConfigurationError
from botfleet.infrastructure.aws.cli_runner import CliCommandError
from botfleet.infrastructure.targets.ecs_fargate import EcsFargateTarget, resolve_image

from conftest import FakeCliRunner


def _conflict(command: str) -> CliCommandError:
    return CliCommandError(command, 254, "ResourceExistsException: already exists")


def _not_found(command: str) -> CliCommandError:
    return CliCommandError(command, 254, "ServiceNotFoundException: Service not found.")


@pytest.fixture
def target(ecs_config: EcsFargateConfig, cli_runner: FakeCliRunner) -> EcsFargateTarget:
    return EcsFargateTarget(ecs_config, "support", runner=cli_runner)


def _running_task(cli_runner: FakeCliRunner) -> None:
    cli_runner.respond("ecs", "list-tasks", {"taskArns": ["arn:aws:ecs:task/abc"]})
    cli_runner.respond("ecs", "describe-tasks", {"tasks": [{
        "attachments": [{
            "type": "ElasticNetworkInterface",
            "details": [
                {"name": "subnetId", "value": "subnet-1"},
                {"name": "networkInterfaceId", "value": "eni-123"},
            ],
        }],
    }]})
    cli_runner.respond("ec2", "describe-network-interfaces", {
        "NetworkInterfaces": [{"Association": {"PublicIp": "198.51.100.7"}}],
    })


class TestNaming:
    def test_resource_names_follow_profile(self, target: EcsFargateTarget) -> None:
        assert target.service_name == "botfleet-support"
        assert target.task_family == "botfleet-support"
        assert target.secret_name == "botfleet/support/config"
        assert target.log_group == "/ecs/botfleet-support"
        assert target.cluster_name == "botfleet-cluster"

    def test_explicit_cluster(self, ecs_config: EcsFargateConfig, cli_runner: FakeCliRunner) -> None:
        config = ecs_config.model_copy(update={"cluster_name": "tenant-a"})
        assert EcsFargateTarget(config, "support", runner=cli_runner).cluster_name == "tenant-a"

    def test_requires_subnets(self, cli_runner: FakeCliRunner) -> None:
        config = EcsFargateConfig(
            region="us-east-1", access_key_id="AKIA", secret_access_key="secret",
        )
        with pytest.raises(TargetConfigurationError):
            EcsFargateTarget(config, "support", runner=cli_runner)

    @pytest.mark.parametrize(
        "image,tag,expected",
        [
            ("ghcr.io/clawdbot/clawdbot:latest", None, "ghcr.io/clawdbot/clawdbot:latest"),
            ("ghcr.io/clawdbot/clawdbot:latest", "1.4.0", "ghcr.io/clawdbot/clawdbot:1.4.0"),
            ("clawdbot", "2.0", "clawdbot:2.0"),
        ],
    )
    def test_resolve_image(self, image: str, tag: str | None, expected: str) -> None:
        assert resolve_image(image, tag) == expected


class TestInstall:
    @pytest.mark.asyncio
    async def test_creates_service(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("ecs", "register-task-definition", {
            "taskDefinition": {"taskDefinitionArn": "arn:aws:ecs:task-definition/botfleet-support:3"},
        })

        result = await target.install(InstallOptions(profile_name="support", version_tag="1.4.0"))

        assert result.success is True
        assert result.service_name == "botfleet-support"
        assert "created" in result.message
        assert cli_runner.commands() == [
            ("ecs", "create-cluster"),
            ("logs", "create-log-group"),
            ("ecs", "register-task-definition"),
            ("ecs", "create-service"),
        ]

        register = cli_runner.calls_for("ecs", "register-task-definition")[0]
        definitions = json.loads(register[register.index("--container-definitions") + 1])
        assert definitions[0]["image"] == "ghcr.io/clawdbot/clawdbot:1.4.0"
        assert definitions[0]["portMappings"][0]["containerPort"] == 18789

        create = cli_runner.calls_for("ecs", "create-service")[0]
        assert "arn:aws:ecs:task-definition/botfleet-support:3" in create
        network = json.loads(create[create.index("--network-configuration") + 1])
        assert network["awsvpcConfiguration"]["subnets"] == ["subnet-1", "subnet-2"]
        assert network["awsvpcConfiguration"]["securityGroups"] == ["sg-1"]
        assert network["awsvpcConfiguration"]["assignPublicIp"] == "ENABLED"

    @pytest.mark.asyncio
    async def test_existing_service_is_updated(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("logs", "create-log-group", _conflict("logs create-log-group"))
        cli_runner.respond("ecs", "create-service", _conflict("ecs create-service"))

        result = await target.install(InstallOptions(profile_name="support"))

        assert result.success is True
        assert "updated" in result.message
        assert ("ecs", "update-service") in cli_runner.commands()

    @pytest.mark.asyncio
    async def test_failure_is_reported(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond(
            "ecs", "register-task-definition",
            CliCommandError("ecs register-task-definition", 254, "AccessDeniedException"),
        )

        result = await target.install(InstallOptions(profile_name="support"))

        assert result.success is False
        assert "AccessDeniedException" in result.message
        assert ("ecs", "create-service") not in cli_runner.commands()


class TestConfigure:
    @pytest.mark.asyncio
    async def test_creates_secret(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        result = await target.configure(GatewayConfigPayload(
            profile_name="support", environment={"BOT_TOKEN": "abc"}, config={"model": "x"},
        ))

        assert result.success is True
        assert result.requires_restart is True
        call = cli_runner.calls_for("secretsmanager", "create-secret")[0]
        document = json.loads(call[call.index("--secret-string") + 1])
        assert document["profileName"] == "support"
        assert document["environment"] == {"BOT_TOKEN": "abc"}
        assert document["model"] == "x"

    @pytest.mark.asyncio
    async def test_existing_secret_gets_new_value(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond(
            "secretsmanager", "create-secret", _conflict("secretsmanager create-secret")
        )

        result = await target.configure(GatewayConfigPayload(profile_name="support"))

        assert result.success is True
        put = cli_runner.calls_for("secretsmanager", "put-secret-value")[0]
        assert "botfleet/support/config" in put

    @pytest.mark.asyncio
    async def test_failure_is_reported(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond(
            "secretsmanager", "create-secret",
            CliCommandError("secretsmanager create-secret", 254, "AccessDeniedException"),
        )

        result = await target.configure(GatewayConfigPayload(profile_name="support"))

        assert result.success is False
        assert result.requires_restart is False
        assert not cli_runner.calls_for("secretsmanager", "put-secret-value")


class TestStatus:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "service,expected",
        [
            ({"status": "ACTIVE", "runningCount": 1, "desiredCount": 1}, TargetState.RUNNING),
            ({"status": "ACTIVE", "runningCount": 0, "desiredCount": 0}, TargetState.STOPPED),
            ({"status": "ACTIVE", "runningCount": 0, "desiredCount": 1}, TargetState.ERROR),
            ({"status": "INACTIVE", "runningCount": 0, "desiredCount": 0}, TargetState.NOT_INSTALLED),
        ],
    )
    async def test_state_mapping(
        self,
        target: EcsFargateTarget,
        cli_runner: FakeCliRunner,
        service: dict,
        expected: TargetState,
    ) -> None:
        cli_runner.respond("ecs", "describe-services", {"services": [service]})
        status = await target.get_status()
        assert status.state == expected

    @pytest.mark.asyncio
    async def test_pending_tasks_report_error_detail(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("ecs", "describe-services", {"services": [
            {"status": "ACTIVE", "runningCount": 0, "desiredCount": 1},
        ]})
        status = await target.get_status()
        assert status.error == "Service status: ACTIVE, running: 0/1"

    @pytest.mark.asyncio
    async def test_missing_service(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("ecs", "describe-services", {"services": []})
        assert (await target.get_status()).state == TargetState.NOT_INSTALLED

    @pytest.mark.asyncio
    async def test_not_found_error(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("ecs", "describe-services", _not_found("ecs describe-services"))
        assert (await target.get_status()).state == TargetState.NOT_INSTALLED

    @pytest.mark.asyncio
    async def test_other_error(self, target: EcsFargateTarget, cli_runner: FakeCliRunner) -> None:
        cli_runner.respond(
            "ecs", "describe-services",
            CliCommandError("ecs describe-services", 255, "ExpiredTokenException"),
        )
        status = await target.get_status()
        assert status.state == TargetState.ERROR
        assert "ExpiredTokenException" in status.error


class TestRunningState:
    @pytest.mark.asyncio
    async def test_start_and_stop_set_desired_count(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        await target.start()
        await target.stop()
        start, stop = cli_runner.calls_for("ecs", "update-service")
        assert start[start.index("--desired-count") + 1] == "1"
        assert stop[stop.index("--desired-count") + 1] == "0"

    @pytest.mark.asyncio
    async def test_restart_forces_new_deployment(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        await target.restart()
        assert "--force-new-deployment" in cli_runner.calls_for("ecs", "update-service")[0]


class TestEndpoint:
    @pytest.mark.asyncio
    async def test_resolves_public_ip(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        _running_task(cli_runner)
        endpoint = await target.get_endpoint()
        assert endpoint.host == "198.51.100.7"
        assert endpoint.port == 18789
        assert "eni-123" in cli_runner.calls_for("ec2", "describe-network-interfaces")[0]

    @pytest.mark.asyncio
    async def test_no_running_tasks(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("ecs", "list-tasks", {"taskArns": []})
        with pytest.raises(EndpointResolutionError, match="No running tasks"):
            await target.get_endpoint()

    @pytest.mark.asyncio
    async def test_no_public_ip(self, target: EcsFargateTarget, cli_runner: FakeCliRunner) -> None:
        cli_runner.respond("ec2", "describe-network-interfaces", {"NetworkInterfaces": [{}]})
        _running_task(cli_runner)
        with pytest.raises(EndpointResolutionError, match="No public IP"):
            await target.get_endpoint()

    @pytest.mark.asyncio
    async def test_cli_failure_is_wrapped(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond(
            "ecs", "list-tasks", CliCommandError("ecs list-tasks", 255, "ExpiredTokenException")
        )
        with pytest.raises(EndpointResolutionError):
            await target.get_endpoint()


class TestLogs:
    @pytest.mark.asyncio
    async def test_reads_latest_stream(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("logs", "describe-log-streams", {
            "logStreams": [{"logStreamName": "ecs/gateway/abc"}],
        })
        cli_runner.respond("logs", "get-log-events", {"events": [
            {"message": "gateway listening"},
            {"message": "ERROR channel failed"},
            {"message": "heartbeat"},
        ]})

        since = datetime(2024, 1, 1, tzinfo=timezone.utc)
        lines = await target.get_logs(LogQuery(lines=50, since=since, filter="error|listening"))

        assert lines == ["gateway listening", "ERROR channel failed"]
        call = cli_runner.calls_for("logs", "get-log-events")[0]
        assert call[call.index("--limit") + 1] == "50"
        assert call[call.index("--start-time") + 1] == str(int(since.timestamp() * 1000))

    @pytest.mark.asyncio
    async def test_invalid_pattern_matches_literally(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("logs", "describe-log-streams", {
            "logStreams": [{"logStreamName": "s"}],
        })
        cli_runner.respond("logs", "get-log-events", {"events": [
            {"message": "value [unclosed"}, {"message": "other"},
        ]})
        assert await target.get_logs(LogQuery(filter="[unclosed")) == ["value [unclosed"]

    @pytest.mark.asyncio
    async def test_no_streams(self, target: EcsFargateTarget, cli_runner: FakeCliRunner) -> None:
        cli_runner.respond("logs", "describe-log-streams", {"logStreams": []})
        assert await target.get_logs() == []

    @pytest.mark.asyncio
    async def test_failure_returns_empty(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("logs", "describe-log-streams", _not_found("logs describe-log-streams"))
        assert await target.get_logs() == []


class TestDestroy:
    @pytest.mark.asyncio
    async def test_removes_every_resource(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("ecs", "list-task-definitions", {"taskDefinitionArns": ["td:1", "td:2"]})

        await target.destroy()

        assert cli_runner.commands() == [
            ("ecs", "update-service"),
            ("ecs", "delete-service"),
            ("ecs", "list-task-definitions"),
            ("ecs", "deregister-task-definition"),
            ("ecs", "deregister-task-definition"),
            ("secretsmanager", "delete-secret"),
            ("logs", "delete-log-group"),
        ]

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_cleanup(
        self, target: EcsFargateTarget, cli_runner: FakeCliRunner
    ) -> None:
        cli_runner.respond("ecs", "update-service", _not_found("ecs update-service"))
        cli_runner.respond(
            "secretsmanager", "delete-secret",
            CliCommandError("secretsmanager delete-secret", 254, "AccessDeniedException"),
        )

        await target.destroy()

        commands = cli_runner.commands()
        assert ("ecs", "delete-service") not in commands
        assert ("ecs", "list-task-definitions") in commands
        assert ("logs", "delete-log-group") in commands
