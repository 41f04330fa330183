"""Docker CLI wrapper."""

import os
from typing import List, Mapping, Optional

from cursor_wsl_iso.commands import run_command
from cursor_wsl_iso.types import CommandResult
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)

COMPOSE_PROJECT_LABEL = "com.docker.compose.project"


class DockerCli:
    """Thin async wrapper over the docker binary.

    Commands run with the given environment mapping so DOCKER_CONFIG
    overrides decide where contexts are stored.
    """

    def __init__(
        self,
        binary: str = "docker",
        environ: Optional[Mapping[str, str]] = None,
        timeout: float = 30.0,
    ):
        self.binary = binary
        self.environ = os.environ if environ is None else environ
        self.timeout = timeout

    async def run(self, *args: str) -> CommandResult:
        return await run_command(self.binary, *args, env=self.environ, timeout=self.timeout)

    async def version(self) -> CommandResult:
        return await self.run("--version")

    async def info(self) -> CommandResult:
        """Daemon health: OK only when the daemon answers."""
        return await self.run("info", "--format", "{{.ServerVersion}}")

    async def context_names(self) -> CommandResult:
        return await self.run("context", "ls", "--format", "{{.Name}}")

    async def show_context(self) -> CommandResult:
        return await self.run("context", "show")

    async def create_context(self, name: str, description: str, host: str) -> CommandResult:
        return await self.run(
            "context", "create", name,
            "--description", description,
            "--docker", f"host={host}",
        )

    async def use_context(self, name: str) -> CommandResult:
        return await self.run("context", "use", name)

    async def remove_context(self, name: str) -> CommandResult:
        return await self.run("context", "rm", "--force", name)

    async def list_containers(self, label: str, value: str) -> CommandResult:
        return await self.run("ps", "--all", "--quiet", "--filter", f"label={label}={value}")

    async def stop_containers(self, ids: List[str]) -> CommandResult:
        return await self.run("stop", *ids)

    async def remove_containers(self, ids: List[str]) -> CommandResult:
        return await self.run("rm", *ids)
