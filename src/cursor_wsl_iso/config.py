"""Settings loading: defaults, then the TOML config file, then environment overrides."""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import appdirs
import tomli

from cursor_wsl_iso.errors import PreconditionFailed
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)

APP_NAME = "cursor-wsl-iso"
CONFIG_ENV_VAR = "CURSOR_ENV_CONFIG"

# Environment variable -> settings field
ENV_OVERRIDES = {
    "CURSOR_ENV_BASE_DIR": "environments_base",
    "CURSOR_ENV_REQUIRE_WSL": "require_wsl",
    "CURSOR_ENV_SHELL": "shell",
    "CURSOR_ENV_EDITOR": "editor",
    "CURSOR_ENV_DOCKER_HOST": "docker_host",
    "CURSOR_ENV_LOG_LEVEL": "log_level",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Tool configuration"""
    environments_base: Path
    default_project_type: str = "general"
    require_wsl: bool = True
    shell: str = "/bin/bash"
    editor: str = "code"
    docker_host: str = "unix:///var/run/docker.sock"
    context_prefix: str = "cursor-"
    compose_prefix: str = "cursor-env-"
    default_context: str = "default"
    log_level: str = "WARNING"
    config_file: Optional[Path] = None


def default_config_path() -> Path:
    return Path(appdirs.user_config_dir(APP_NAME)) / "config.toml"


def _coerce(name: str, value: Any) -> Any:
    if name == "environments_base":
        return Path(str(value)).expanduser()
    if name == "require_wsl":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise PreconditionFailed(
            f"Invalid boolean for {name}: {value!r}", details={"field": name}
        )
    return str(value)


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read the [environments] table (or top level) of a TOML config file."""
    if not path.is_file():
        return {}
    try:
        with open(path, "rb") as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        raise PreconditionFailed(
            f"Unreadable config file {path}: {e}", details={"path": str(path)}
        ) from e

    table = data.get("environments", data)
    if not isinstance(table, dict):
        raise PreconditionFailed(
            f"Config file {path}: 'environments' must be a table",
            details={"path": str(path)},
        )
    known = {f.name for f in fields(Settings)} - {"config_file"}
    unknown = sorted(set(table) - known)
    if unknown:
        logger.warning({"event": "config_unknown_keys", "path": str(path), "keys": unknown})
    return {k: v for k, v in table.items() if k in known}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from defaults, config file and environment overrides."""
    environ = os.environ if environ is None else environ

    home = Path(environ.get("HOME") or Path.home())
    settings = Settings(
        environments_base=home / ".cursor-environments",
        shell=environ.get("SHELL") or "/bin/bash",
    )

    config_path = Path(environ[CONFIG_ENV_VAR]) if environ.get(CONFIG_ENV_VAR) else default_config_path()
    overrides = {k: _coerce(k, v) for k, v in read_config_file(config_path).items()}

    for var, name in ENV_OVERRIDES.items():
        if environ.get(var):
            overrides[name] = _coerce(name, environ[var])

    settings = replace(
        settings,
        config_file=config_path,
        **overrides,
    )
    logger.debug({"event": "settings_loaded", "config_file": str(config_path), "overrides": sorted(overrides)})
    return settings
