"""Error taxonomy for environment lifecycle management."""
import logging
from typing import Any, Dict, List, Optional

from cursor_wsl_iso.types import Severity

logger = logging.getLogger(__name__)


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """Log an error with context."""
    logger = logger or logging.getLogger(__name__)

    error_info = {
        "error_type": error.__class__.__name__,
        "error_message": str(error)
    }
    if context:
        error_info["context"] = context
    if isinstance(error, CursorEnvError):
        error_info["severity"] = error.severity.name.lower()
        error_info["details"] = error.details

    level = logging.WARNING
    if isinstance(error, CursorEnvError) and error.severity != Severity.WARNING:
        level = logging.ERROR
    logger.log(level, {"event": "error", **error_info})


class CursorEnvError(Exception):
    """Base error class for environment management."""
    severity = Severity.FATAL
    exit_code = 1

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}

    def describe(self) -> str:
        """Single human-readable line classifying severity."""
        return f"{self.severity.name.lower()}: {self}"


class PreconditionFailed(CursorEnvError):
    """Host is not the expected substrate (WSL) or configuration is unusable."""


class InvalidEnvironmentId(CursorEnvError):
    """Environment id is not a positive integer."""
    exit_code = 2

    def __init__(self, value: Any):
        super().__init__(
            f"Invalid environment id {value!r}: expected a positive integer",
            details={"env_id": repr(value)}
        )


class NamespaceCreationFailed(CursorEnvError):
    """Namespace directories could not be created."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Could not create environment directory {path}: {reason}",
            details={"path": path, "reason": reason}
        )


class RuntimeUnavailable(CursorEnvError):
    """Container runtime daemon is not reachable."""
    severity = Severity.WARNING
    exit_code = 0


class RuntimeContextFailure(CursorEnvError):
    """A Docker context could not be created, selected or removed."""
    severity = Severity.WARNING
    exit_code = 0

    def __init__(self, action: str, context_name: str, reason: str):
        super().__init__(
            f"Docker context '{context_name}' {action} failed: {reason}",
            details={"action": action, "context": context_name, "reason": reason}
        )


class CleanPartialFailure(CursorEnvError):
    """One or more clean steps failed; the rest were still attempted."""
    severity = Severity.ERROR

    def __init__(self, env_id: int, failures: List[str]):
        super().__init__(
            f"Environment {env_id} was only partially cleaned: " + "; ".join(failures),
            details={"env_id": env_id, "failures": list(failures)}
        )
        self.failures = list(failures)


class BackupWriteFailed(CursorEnvError):
    """Backup archive could not be written to the sink."""
    severity = Severity.ERROR

    def __init__(self, path: str, reason: str):
        super().__init__(
            f"Could not write backup {path}: {reason}",
            details={"path": path, "reason": reason}
        )


class NotInSession(CursorEnvError):
    """An in-session command was run outside an isolated environment."""

    def __init__(self, missing: str):
        super().__init__(
            "Not inside an isolated environment (start one with: cursor-wsl-iso <env_id>)",
            details={"missing": missing}
        )
