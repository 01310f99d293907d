"""AWS CLI invocation with explicit per-call credentials."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any

import structlog

from botfleet.infrastructure.observability.metrics import CLI_COMMANDS_TOTAL


logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0

NOT_FOUND_MARKERS = (
    "NotFoundException",
    "ResourceNotFoundException",
    "ClusterNotFoundException",
    "ServiceNotFoundException",
    "InvalidNetworkInterfaceID.NotFound",
    "not found",
    "does not exist",
)

CONFLICT_MARKERS = (
    "ResourceExistsException",
    "ResourceAlreadyExistsException",
    "AlreadyExists",
    "already exists",
    "not idempotent",
)


class AwsCliRunner:
    """Runs ``aws`` subcommands for exactly one account and region.

    The child process sees only PATH plus the credentials given here. Shared
    config files and the instance metadata service are disabled so nothing
    leaks in from the host, and every call carries an explicit ``--region``.
    """

    def __init__(
        self,
        region: str,
        access_key_id: str,
        secret_access_key: str,
        session_token: str | None = None,
        binary: str = "aws",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._region = region
        self._binary = binary
        self._timeout = timeout_seconds
        self._env = {
            "PATH": os.environ.get("PATH", os.defpath),
            "AWS_ACCESS_KEY_ID": access_key_id,
            "AWS_SECRET_ACCESS_KEY": secret_access_key,
            "AWS_DEFAULT_REGION": region,
            "AWS_EC2_METADATA_DISABLED": "true",
            "AWS_CONFIG_FILE": os.devnull,
            "AWS_SHARED_CREDENTIALS_FILE": os.devnull,
            "AWS_PAGER": "",
        }
        if session_token:
            self._env["AWS_SESSION_TOKEN"] = session_token

    @property
    def region(self) -> str:
        return self._region

    async def run(self, *args: str) -> str:
        """Run ``aws <args> --region <region>`` and return trimmed stdout."""
        argv = [self._binary, *args, "--region", self._region]
        service = args[0] if args else ""
        command = " ".join(argv[1:3])

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
            )
        except FileNotFoundError as e:
            CLI_COMMANDS_TOTAL.labels(service=service, result="failure").inc()
            raise CliCommandError(command, None, f"{self._binary} executable not found") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            CLI_COMMANDS_TOTAL.labels(service=service, result="timeout").inc()
            logger.warning("aws_cli_timed_out", command=command, timeout=self._timeout)
            raise CliCommandError(
                command, None, f"timed out after {self._timeout:.0f}s"
            ) from e
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            logger.debug("aws_cli_cancelled", command=command)
            raise

        if process.returncode != 0:
            CLI_COMMANDS_TOTAL.labels(service=service, result="failure").inc()
            error_text = stderr.decode("utf-8", errors="replace").strip()
            logger.debug(
                "aws_cli_failed",
                command=command,
                returncode=process.returncode,
                stderr=error_text,
            )
            raise CliCommandError(command, process.returncode, error_text)

        CLI_COMMANDS_TOTAL.labels(service=service, result="success").inc()
        return stdout.decode("utf-8", errors="replace").strip()

    async def run_json(self, *args: str) -> dict[str, Any]:
        """Run a command with ``--output json`` and parse the result."""
        output = await self.run(*args, "--output", "json")
        if not output:
            return {}
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise CliCommandError(" ".join(args[:2]), 0, f"unparseable output: {e}") from e
        return data if isinstance(data, dict) else {}


class CliCommandError(Exception):
    """Raised when an ``aws`` invocation fails, times out or cannot start."""

    def __init__(self, command: str, returncode: int | None, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"AWS CLI failed: aws {command}: {stderr}")

    @property
    def is_not_found(self) -> bool:
        return any(marker in self.stderr for marker in NOT_FOUND_MARKERS)

    @property
    def is_conflict(self) -> bool:
        return any(marker in self.stderr for marker in CONFLICT_MARKERS)
