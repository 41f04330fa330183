"""Environment id to namespace resolution."""

from pathlib import Path
from typing import Union

from cursor_wsl_iso.errors import InvalidEnvironmentId, NamespaceCreationFailed
from cursor_wsl_iso.types import Namespace
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)

SUBDIRS = ("home", "cache", "config", "data")


def parse_env_id(value: Union[int, str]) -> int:
    """Accept a positive int or a string holding one."""
    if isinstance(value, bool):
        raise InvalidEnvironmentId(value)
    if isinstance(value, int):
        env_id = value
    elif isinstance(value, str) and value.strip().isdigit() and value.strip().isascii():
        env_id = int(value.strip())
    else:
        raise InvalidEnvironmentId(value)

    if env_id <= 0:
        raise InvalidEnvironmentId(value)
    return env_id


def resolve(env_id: Union[int, str], project_type: str, base: Path) -> Namespace:
    """Derive the namespace for an environment. Pure: touches no filesystem."""
    env_id = parse_env_id(env_id)
    base = Path(base)
    root = base / str(env_id)
    return Namespace(
        env_id=env_id,
        project_type=project_type,
        base=base,
        root=root,
        **{name: root / name for name in SUBDIRS},
    )


def ensure_directories(namespace: Namespace) -> None:
    """Create missing namespace directories, leaving existing content alone."""
    for path in namespace.directories:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise NamespaceCreationFailed(str(path), e.strerror or str(e)) from e

    logger.info({"event": "namespace_ready", "env_id": namespace.env_id, "root": str(namespace.root)})
