"""Process-wide resource remapping into an environment namespace."""

import os
from typing import List, MutableMapping, Optional, Tuple

from cursor_wsl_iso.environments.namespace import ensure_directories
from cursor_wsl_iso.types import Namespace, SavedState
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)

DEFAULT_DISPLAY = ":0"
COMPOSE_PREFIX = "cursor-env-"


def compose_project_name(env_id: int, prefix: str = COMPOSE_PREFIX) -> str:
    return f"{prefix}{env_id}"


def binding_table(
    namespace: Namespace,
    environ: MutableMapping[str, str],
    compose_prefix: str = COMPOSE_PREFIX,
) -> List[Tuple[str, str]]:
    """Isolated value for every bound key, in binding order."""
    current_path = environ.get("PATH", "")
    local_bin = str(namespace.local_bin)
    path = f"{local_bin}:{current_path}" if current_path else local_bin

    return [
        ("CURSOR_ENV_ID", str(namespace.env_id)),
        ("CURSOR_ENV_PROJECT_TYPE", namespace.project_type),
        ("CURSOR_ENV_BASE", str(namespace.base)),
        ("ENV_ROOT", str(namespace.root)),
        ("ISOLATED_HOME", str(namespace.home)),
        ("ISOLATED_CACHE", str(namespace.cache)),
        ("ISOLATED_CONFIG", str(namespace.config)),
        ("ISOLATED_DATA", str(namespace.data)),
        ("HOME", str(namespace.home)),
        ("PATH", path),
        # Language-specific isolation
        ("PYTHONPATH", ""),
        ("PIP_PREFIX", str(namespace.pip_prefix)),
        ("PYTHONUSERBASE", str(namespace.pip_prefix)),
        ("NPM_CONFIG_PREFIX", str(namespace.npm_prefix)),
        ("NODE_PATH", str(namespace.npm_prefix / "lib" / "node_modules")),
        ("NPM_CONFIG_CACHE", str(namespace.npm_cache)),
        ("VSCODE_PORTABLE", str(namespace.editor_data)),
        ("GIT_CONFIG_GLOBAL", str(namespace.git_config)),
        ("DOCKER_CONFIG", str(namespace.docker_config)),
        ("COMPOSE_PROJECT_NAME", compose_project_name(namespace.env_id, compose_prefix)),
        ("DOCKER_BUILDKIT_PROGRESS", "plain"),
        # GUI passthrough
        ("DISPLAY", environ.get("DISPLAY") or DEFAULT_DISPLAY),
        ("LIBGL_ALWAYS_INDIRECT", "1"),
    ]


class ResourceBinder:
    """Applies and reverts namespace bindings on an environment mapping.

    The mapping defaults to ``os.environ`` so spawned processes inherit the
    bindings; tests pass a plain dict.
    """

    def __init__(
        self,
        environ: Optional[MutableMapping[str, str]] = None,
        compose_prefix: str = COMPOSE_PREFIX,
    ):
        self.environ = os.environ if environ is None else environ
        self.compose_prefix = compose_prefix

    def bind(self, namespace: Namespace) -> SavedState:
        """Create the namespace directories, then override every resource key.

        Raises NamespaceCreationFailed before anything in the mapping changes.
        """
        ensure_directories(namespace)

        table = binding_table(namespace, self.environ, self.compose_prefix)
        saved = SavedState()
        for key, _ in table:
            saved.previous[key] = self.environ.get(key)

        try:
            for key, value in table:
                self.environ[key] = value
        except BaseException:
            self.unbind(saved)
            raise

        logger.info(
            {"event": "namespace_bound", "env_id": namespace.env_id, "keys": saved.keys}
        )
        return saved

    def set(self, saved: SavedState, key: str, value: str) -> None:
        """Bind one extra key into an existing SavedState."""
        if saved.restored:
            raise RuntimeError("SavedState has already been restored")
        if key not in saved:
            saved.previous[key] = self.environ.get(key)
        self.environ[key] = value

    def unbind(self, saved: Optional[SavedState]) -> None:
        """Restore every saved key; keys that were unset are removed. Idempotent."""
        if saved is None or saved.restored:
            return

        for key, previous in reversed(list(saved.previous.items())):
            if previous is None:
                self.environ.pop(key, None)
            else:
                self.environ[key] = previous

        saved.restored = True
        logger.info({"event": "namespace_unbound", "keys": saved.keys})
