import os
import logging
from pathlib import Path

import pytest

from cursor_wsl_iso.config import Settings
from cursor_wsl_iso.environments.namespace import resolve
from cursor_wsl_iso.runtimes.docker import DockerCli
from cursor_wsl_iso.sessions.session import Session
from cursor_wsl_iso.types import CommandResult, CommandStatus, RuntimeStatus

MUTATING = {"create", "use", "rm", "stop"}


class FakeDocker(DockerCli):
    """In-memory docker CLI: contexts, current context and labelled containers."""

    def __init__(self, environ=None, daemon_up=True, installed=True):
        super().__init__(environ=environ if environ is not None else {})
        self.daemon_up = daemon_up
        self.installed = installed
        self.contexts = {"default"}
        self.current = "default"
        self.containers = {}  # id -> compose project
        self.fail = set()  # verbs forced to fail, e.g. {"context create"}
        self.calls = []
        self.docker_configs = []

    @property
    def mutating_calls(self):
        return [c for c in self.calls if self._verb(c).split()[-1] in MUTATING]

    @staticmethod
    def _verb(args):
        if args[0] == "context":
            return f"context {args[1]}"
        return args[0]

    def _result(self, ok=True, stdout="", stderr=""):
        if ok:
            return CommandResult(status=CommandStatus.OK, returncode=0, stdout=stdout)
        return CommandResult(status=CommandStatus.FAILED, returncode=1, stderr=stderr or "failed")

    async def run(self, *args):
        self.calls.append(args)
        self.docker_configs.append(self.environ.get("DOCKER_CONFIG"))
        if not self.installed:
            return CommandResult(status=CommandStatus.UNAVAILABLE, stderr="docker: not found")

        verb = self._verb(args)
        if verb in self.fail:
            return self._result(False, stderr=f"{verb} refused")

        if verb == "--version":
            return self._result(stdout="Docker version 27.0.3, build 7d4bcd8\n")
        if verb == "info":
            if not self.daemon_up:
                return self._result(False, stderr="Cannot connect to the Docker daemon")
            return self._result(stdout="27.0.3\n")
        if verb == "context ls":
            return self._result(stdout="\n".join(sorted(self.contexts)) + "\n")
        if verb == "context show":
            return self._result(stdout=self.current + "\n")
        if verb == "context create":
            name = args[2]
            if name in self.contexts:
                return self._result(False, stderr=f'context "{name}" already exists')
            self.contexts.add(name)
            return self._result(stdout=name + "\n")
        if verb == "context use":
            name = args[2]
            if name not in self.contexts:
                return self._result(False, stderr=f'context "{name}" does not exist')
            self.current = name
            return self._result(stdout=name + "\n")
        if verb == "context rm":
            name = args[-1]
            if name not in self.contexts:
                return self._result(False, stderr=f'context "{name}" does not exist')
            self.contexts.discard(name)
            return self._result(stdout=name + "\n")
        if verb == "ps":
            label = args[-1].split("=", 1)[1]
            _, project = label.split("=", 1)
            ids = [cid for cid, p in self.containers.items() if p == project]
            return self._result(stdout="\n".join(ids))
        if verb == "stop":
            return self._result(stdout="\n".join(args[1:]))
        if verb == "rm":
            for cid in args[1:]:
                self.containers.pop(cid, None)
            return self._result(stdout="\n".join(args[1:]))
        return self._result(False, stderr=f"unknown command {args}")


@pytest.fixture(autouse=True)
def reset_app_logger():
    """Keep handlers from one test writing to another test's captured stream"""
    yield
    app_logger = logging.getLogger("cursor_wsl_iso")
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
    app_logger.setLevel(logging.NOTSET)
    app_logger.propagate = True


@pytest.fixture
def environments_base(tmp_path: Path) -> Path:
    return tmp_path / "cursor-environments"


@pytest.fixture
def settings(environments_base: Path, tmp_path: Path) -> Settings:
    return Settings(
        environments_base=environments_base,
        require_wsl=False,
        shell="/bin/sh",
        editor="code",
        config_file=tmp_path / "config.toml",
    )


@pytest.fixture
def environ(tmp_path: Path) -> dict:
    """A host environment with some keys set and others deliberately unset"""
    return {
        "HOME": str(tmp_path / "host-home"),
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        "PYTHONPATH": "/opt/host/lib",
        "NODE_PATH": "/opt/host/node_modules",
        "DOCKER_CONFIG": str(tmp_path / "host-docker"),
        "DISPLAY": ":7",
        "SHELL": "/bin/sh",
    }


@pytest.fixture
def docker(environ) -> FakeDocker:
    return FakeDocker(environ=environ)


@pytest.fixture
def namespace(environments_base: Path):
    return resolve(1, "python311", environments_base)


@pytest.fixture
def make_session(settings, environ):
    def factory(env_id=1, runtime=None, docker=None):
        ns = resolve(env_id, "python311", settings.environments_base)
        for path in ns.directories:
            path.mkdir(parents=True, exist_ok=True)
        return Session(
            namespace=ns,
            settings=settings,
            compose_project=f"cursor-env-{env_id}",
            runtime=runtime or RuntimeStatus.disabled(),
            docker=docker or FakeDocker(environ=environ),
            environ=environ,
        )
    return factory
