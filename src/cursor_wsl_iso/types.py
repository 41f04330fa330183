"""Core type definitions"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

Severity = Enum("Severity", ["FATAL", "ERROR", "WARNING"])
CommandStatus = Enum("CommandStatus", ["OK", "FAILED", "UNAVAILABLE"])
RuntimeMode = Enum("RuntimeMode", ["DISABLED", "ACTIVE"])
SessionState = Enum(
    "SessionState",
    ["IDLE", "RESOLVING", "BINDING", "RUNTIME_BINDING", "SESSION_ACTIVE", "UNBINDING"],
)


@dataclass(frozen=True)
class Namespace:
    """Filesystem paths owned by one environment"""
    env_id: int
    project_type: str
    base: Path
    root: Path
    home: Path
    cache: Path
    config: Path
    data: Path

    @property
    def local_bin(self) -> Path:
        return self.home / ".local" / "bin"

    @property
    def git_config(self) -> Path:
        return self.config / "git" / "config"

    @property
    def docker_config(self) -> Path:
        return self.config / "docker"

    @property
    def pip_prefix(self) -> Path:
        return self.data / "pip"

    @property
    def npm_prefix(self) -> Path:
        return self.data / "npm"

    @property
    def npm_cache(self) -> Path:
        return self.cache / "npm"

    @property
    def editor_data(self) -> Path:
        return self.data / "vscode"

    @property
    def editor_extensions(self) -> Path:
        return self.editor_data / "extensions"

    @property
    def directories(self) -> list[Path]:
        """Every directory that must exist before the namespace is bound."""
        return [
            self.home,
            self.cache,
            self.config,
            self.data,
            self.local_bin,
            self.git_config.parent,
            self.docker_config,
            self.pip_prefix,
            self.npm_prefix,
            self.editor_data,
            self.npm_cache,
        ]


@dataclass
class SavedState:
    """Previous values of every bound key, consumed once by unbind.

    A value of None means the key was unset before binding.
    """
    previous: dict[str, Optional[str]] = field(default_factory=dict)
    restored: bool = False

    def __contains__(self, key: str) -> bool:
        return key in self.previous

    @property
    def keys(self) -> list[str]:
        return list(self.previous)


@dataclass(frozen=True)
class RuntimeStatus:
    """Outcome of binding the container runtime"""
    mode: RuntimeMode
    context_name: Optional[str] = None

    @classmethod
    def disabled(cls) -> "RuntimeStatus":
        return cls(mode=RuntimeMode.DISABLED)

    @classmethod
    def active(cls, context_name: str) -> "RuntimeStatus":
        return cls(mode=RuntimeMode.ACTIVE, context_name=context_name)

    @property
    def is_active(self) -> bool:
        return self.mode == RuntimeMode.ACTIVE


@dataclass(frozen=True)
class CommandResult:
    """Result of running an external tool"""
    status: CommandStatus
    returncode: Optional[int] = None
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status == CommandStatus.OK

    @property
    def unavailable(self) -> bool:
        return self.status == CommandStatus.UNAVAILABLE

    @property
    def lines(self) -> list[str]:
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]
