"""Operations run from inside an active environment: info, clean, backup, editor."""

import asyncio
import shutil
import subprocess
import sys
import tarfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from cursor_wsl_iso.commands import tool_version
from cursor_wsl_iso.errors import BackupWriteFailed, CleanPartialFailure, PreconditionFailed
from cursor_wsl_iso.host import detect_prerequisites
from cursor_wsl_iso.runtimes.context import context_name
from cursor_wsl_iso.runtimes.docker import COMPOSE_PROJECT_LABEL
from cursor_wsl_iso.types import CommandResult
from cursor_wsl_iso.logging import get_logger

if TYPE_CHECKING:
    from cursor_wsl_iso.sessions.session import Session

logger = get_logger(__name__)

NOT_AVAILABLE = "Not available"
BACKUP_SUFFIX = ".tar.gz"


async def info(session: "Session") -> Dict[str, Any]:
    """Resolved paths, tool versions and runtime status. Read-only."""
    ns = session.namespace
    env = session.environ

    checks = {
        "python": ("python3", "--version"),
        "node": ("node", "--version"),
        "docker": ("docker", "--version"),
        "editor": (session.settings.editor, "--version"),
    }
    versions = await asyncio.gather(*(tool_version(*args, env=env) for args in checks.values()))
    tools = {
        name: version or NOT_AVAILABLE for name, version in zip(checks, versions)
    }

    runtime: Dict[str, Any] = {"status": "unavailable"}
    if session.runtime.is_active:
        shown = await session.docker.show_context()
        runtime = {
            "status": "active",
            "context": shown.lines[0] if shown.ok and shown.lines else session.runtime.context_name,
            "compose_project": session.compose_project,
        }

    return {
        "env_id": ns.env_id,
        "project_type": ns.project_type,
        "paths": {
            "root": str(ns.root),
            "home": str(ns.home),
            "cache": str(ns.cache),
            "config": str(ns.config),
            "data": str(ns.data),
        },
        "tools": tools,
        "runtime": runtime,
        "prerequisites": detect_prerequisites(session.settings, env),
    }


def format_info(report: Dict[str, Any]) -> str:
    tools = report["tools"]
    paths = report["paths"]
    runtime = report["runtime"]
    lines = [
        f"🔍 Environment {report['env_id']} ({report['project_type']}) Info:",
        f"🐍 Python: {tools['python']}",
        f"📦 Node: {tools['node']}",
        f"🐳 Docker: {tools['docker']}",
    ]
    if runtime["status"] == "active":
        lines.append(f"🐳 Docker Context: {runtime['context']}")
        lines.append(f"🐳 Compose Project: {runtime['compose_project']}")
    else:
        lines.append("🐳 Docker Runtime: unavailable")
    lines.extend([
        f"📝 Editor: {tools['editor']}",
        f"📁 Root: {paths['root']}",
        f"💾 Data: {paths['data']}",
        f"⚙️  Config: {paths['config']}",
        f"🏠 Home: {paths['home']}",
    ])
    return "\n".join(lines)


def _failure(step: str, result: CommandResult) -> str:
    detail = result.stderr.strip() or f"exit code {result.returncode}"
    return f"{step}: {detail}"


async def _clean_runtime(session: "Session", failures: List[str]) -> None:
    docker = session.docker
    settings = session.settings
    env_context = context_name(session.env_id, settings.context_prefix)

    selected = await docker.use_context(session.runtime.context_name)
    if not selected.ok:
        failures.append(_failure(f"select context {session.runtime.context_name}", selected))

    found = await docker.list_containers(COMPOSE_PROJECT_LABEL, session.compose_project)
    if not found.ok:
        failures.append(_failure("list containers", found))
    elif found.lines:
        logger.info({"event": "containers_removing", "ids": found.lines})
        stopped = await docker.stop_containers(found.lines)
        if not stopped.ok:
            failures.append(_failure("stop containers", stopped))
        removed = await docker.remove_containers(found.lines)
        if not removed.ok:
            failures.append(_failure("remove containers", removed))

    reset = await docker.use_context(settings.default_context)
    if not reset.ok:
        failures.append(_failure(f"select context {settings.default_context}", reset))

    listing = await docker.context_names()
    if listing.ok and env_context not in listing.lines:
        return
    dropped = await docker.remove_context(env_context)
    if not dropped.ok:
        failures.append(_failure(f"remove context {env_context}", dropped))
    else:
        print(f"🐳 Docker context '{env_context}' removed")


def _remove_tree(root: Path, failures: List[str]) -> None:
    def collect(func, path, exc):
        # onexc passes the exception, onerror an exc_info tuple
        error = exc[1] if isinstance(exc, tuple) else exc
        failures.append(f"remove {path}: {error}")

    if not root.exists():
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(root, onexc=collect)
    else:
        shutil.rmtree(root, onerror=collect)


async def clean(session: "Session") -> None:
    """Remove the environment's containers, Docker context and directory tree.

    Every step is attempted; failures are raised together at the end.
    """
    print(f"🧹 Cleaning environment {session.env_id}...")
    failures: List[str] = []

    if session.runtime.is_active:
        print(f"🐳 Stopping Docker containers for environment {session.env_id}...")
        await _clean_runtime(session, failures)
    else:
        logger.info({"event": "clean_runtime_skipped", "env_id": session.env_id})

    _remove_tree(session.namespace.root, failures)

    if failures:
        raise CleanPartialFailure(session.env_id, failures)
    logger.info({"event": "environment_cleaned", "env_id": session.env_id})
    print(f"✅ Environment {session.env_id} cleaned")


def backup_path(session: "Session", label: str) -> Path:
    return session.namespace.base / f"{session.env_id}-{label}{BACKUP_SUFFIX}"


def backup(session: "Session", name: Optional[str] = None) -> Path:
    """Archive the whole namespace root to <base>/<id>-<label>.tar.gz."""
    label = name or datetime.now().strftime("backup-%Y%m%d-%H%M%S")
    target = backup_path(session, label)
    if "/" in label or label in (".", ".."):
        raise BackupWriteFailed(str(target), "backup name must not contain a path")

    print(f"💾 Backing up environment {session.env_id} as {label}...")
    try:
        with tarfile.open(target, "w:gz") as archive:
            archive.add(session.namespace.root, arcname=".")
    except (OSError, tarfile.TarError) as e:
        target.unlink(missing_ok=True)
        raise BackupWriteFailed(str(target), str(e)) from e

    logger.info({"event": "backup_written", "env_id": session.env_id, "path": str(target)})
    print(f"✅ Backup saved: {target}")
    return target


def launch_editor(session: "Session", workspace: str = ".") -> int:
    """Start the editor detached with per-environment data and extensions dirs."""
    ns = session.namespace
    cmd = [
        session.settings.editor,
        f"--user-data-dir={ns.editor_data}",
        f"--extensions-dir={ns.editor_extensions}",
        workspace,
    ]
    try:
        process = subprocess.Popen(
            cmd,
            env=dict(session.environ),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except FileNotFoundError as e:
        raise PreconditionFailed(
            f"Editor '{session.settings.editor}' not found on PATH",
            details={"editor": session.settings.editor},
        ) from e

    logger.info({"event": "editor_launched", "pid": process.pid, "workspace": workspace})
    print(f"🚀 Editor launched in environment {ns.env_id} (PID: {process.pid})")
    print(f"📁 Workspace: {workspace}")
    print(f"💾 Data: {ns.editor_data}")
    return process.pid
