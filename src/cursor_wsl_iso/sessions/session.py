"""Active environment session state."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from cursor_wsl_iso.config import Settings
from cursor_wsl_iso.environments.namespace import parse_env_id
from cursor_wsl_iso.errors import NotInSession
from cursor_wsl_iso.runtimes.docker import DockerCli
from cursor_wsl_iso.sessions import lifecycle
from cursor_wsl_iso.types import Namespace, RuntimeStatus, SavedState

RUNTIME_VAR = "CURSOR_ENV_RUNTIME"
RUNTIME_DISABLED = "disabled"

_REQUIRED_VARS = (
    "CURSOR_ENV_ID",
    "CURSOR_ENV_BASE",
    "ENV_ROOT",
    "ISOLATED_HOME",
    "ISOLATED_CACHE",
    "ISOLATED_CONFIG",
    "ISOLATED_DATA",
)


def runtime_from_value(value: Optional[str]) -> RuntimeStatus:
    if not value or value == RUNTIME_DISABLED:
        return RuntimeStatus.disabled()
    return RuntimeStatus.active(value)


def runtime_to_value(status: RuntimeStatus) -> str:
    return status.context_name if status.is_active else RUNTIME_DISABLED


@dataclass
class Session:
    """A bound environment: namespace, rollback record and runtime status.

    Inside the interactive shell the session is rebuilt from the bound
    variables with ``from_environ``; it is never re-resolved from the id.
    """
    namespace: Namespace
    settings: Settings
    compose_project: str
    runtime: RuntimeStatus = field(default_factory=RuntimeStatus.disabled)
    saved: Optional[SavedState] = None
    docker: Optional[DockerCli] = None
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    def __post_init__(self):
        if self.docker is None:
            self.docker = DockerCli(environ=self.environ)

    @property
    def env_id(self) -> int:
        return self.namespace.env_id

    @classmethod
    def from_environ(
        cls,
        settings: Settings,
        environ: Optional[Mapping[str, str]] = None,
        docker: Optional[DockerCli] = None,
    ) -> "Session":
        environ = os.environ if environ is None else environ
        for var in _REQUIRED_VARS:
            if not environ.get(var):
                raise NotInSession(var)

        namespace = Namespace(
            env_id=parse_env_id(environ["CURSOR_ENV_ID"]),
            project_type=environ.get("CURSOR_ENV_PROJECT_TYPE") or settings.default_project_type,
            base=Path(environ["CURSOR_ENV_BASE"]),
            root=Path(environ["ENV_ROOT"]),
            home=Path(environ["ISOLATED_HOME"]),
            cache=Path(environ["ISOLATED_CACHE"]),
            config=Path(environ["ISOLATED_CONFIG"]),
            data=Path(environ["ISOLATED_DATA"]),
        )
        return cls(
            namespace=namespace,
            settings=settings,
            compose_project=environ.get("COMPOSE_PROJECT_NAME")
            or f"{settings.compose_prefix}{namespace.env_id}",
            runtime=runtime_from_value(environ.get(RUNTIME_VAR)),
            docker=docker,
            environ=environ,
        )

    async def info(self) -> Dict[str, Any]:
        return await lifecycle.info(self)

    async def clean(self) -> None:
        await lifecycle.clean(self)

    def backup(self, name: Optional[str] = None) -> Path:
        return lifecycle.backup(self, name)

    def launch_editor(self, workspace: str = ".") -> int:
        return lifecycle.launch_editor(self, workspace)
