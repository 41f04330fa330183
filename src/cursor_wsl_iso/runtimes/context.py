"""Per-environment Docker context binding."""

import sys

from cursor_wsl_iso.errors import (
    CursorEnvError,
    RuntimeContextFailure,
    RuntimeUnavailable,
    log_error,
)
from cursor_wsl_iso.runtimes.docker import DockerCli
from cursor_wsl_iso.types import CommandResult, RuntimeStatus
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)

CONTEXT_PREFIX = "cursor-"
DEFAULT_CONTEXT = "default"
DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"


def context_name(env_id: int, prefix: str = CONTEXT_PREFIX) -> str:
    return f"{prefix}{env_id}"


def _reason(result: CommandResult) -> str:
    if result.unavailable:
        return "docker CLI not found"
    return result.stderr.strip() or f"exit code {result.returncode}"


class RuntimeContextBinder:
    """Creates, selects and resets the Docker context of an environment."""

    def __init__(
        self,
        docker: DockerCli,
        prefix: str = CONTEXT_PREFIX,
        docker_host: str = DEFAULT_DOCKER_HOST,
        default_context: str = DEFAULT_CONTEXT,
    ):
        self.docker = docker
        self.prefix = prefix
        self.docker_host = docker_host
        self.default_context = default_context
        self.unavailable_reported = False

    def _warn(self, error: CursorEnvError) -> None:
        log_error(error, logger=logger)
        print(f"⚠️  {error.describe()}", file=sys.stderr)

    async def is_available(self) -> bool:
        health = await self.docker.info()
        if health.ok:
            return True
        if not self.unavailable_reported:
            self.unavailable_reported = True
            self._warn(RuntimeUnavailable(
                "Docker daemon not running; Docker commands will not work "
                "(start it with: sudo systemctl start docker, or use Docker Desktop)",
                details={"reason": _reason(health)},
            ))
        return False

    async def activate(self, env_id: int) -> RuntimeStatus:
        """Create-if-absent and select the environment's context.

        Returns DISABLED without any mutating call when the daemon is down.
        If the context cannot be selected the default context stays active.
        """
        if not await self.is_available():
            return RuntimeStatus.disabled()

        name = context_name(env_id, self.prefix)
        listing = await self.docker.context_names()
        if not listing.ok:
            self._warn(RuntimeContextFailure("listing", name, _reason(listing)))

        if name not in listing.lines:
            logger.info({"event": "docker_context_create", "context": name})
            created = await self.docker.create_context(
                name, f"Cursor environment {env_id}", self.docker_host
            )
            if not created.ok:
                self._warn(RuntimeContextFailure("creation", name, _reason(created)))

        selected = await self.docker.use_context(name)
        if not selected.ok:
            self._warn(RuntimeContextFailure("selection", name, _reason(selected)))
            return RuntimeStatus.active(self.default_context)

        logger.info({"event": "docker_context_active", "context": name})
        return RuntimeStatus.active(name)

    async def deactivate(self, env_id: int) -> None:
        """Best-effort reset to the default context. Never raises."""
        try:
            result = await self.docker.use_context(self.default_context)
        except Exception as e:
            logger.warning({"event": "docker_context_reset_error", "env_id": env_id, "error": str(e)})
            return
        if result.ok:
            logger.info({"event": "docker_context_reset", "env_id": env_id})
        elif result.unavailable:
            logger.debug({"event": "docker_context_reset_skipped", "env_id": env_id})
        else:
            logger.warning(
                {"event": "docker_context_reset_failed", "env_id": env_id, "reason": _reason(result)}
            )
