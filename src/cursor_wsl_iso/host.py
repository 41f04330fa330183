"""Host substrate checks."""

import os
import re
from pathlib import Path
from typing import Dict, Mapping, Optional

from cursor_wsl_iso.commands import is_command_available
from cursor_wsl_iso.config import Settings
from cursor_wsl_iso.errors import PreconditionFailed
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)

PROC_VERSION = Path("/proc/version")
_WSL_RE = re.compile(r"microsoft|wsl", re.IGNORECASE)


def is_wsl(proc_version: Optional[Path] = None) -> bool:
    """True when the kernel identifies itself as a WSL kernel."""
    try:
        text = (proc_version or PROC_VERSION).read_text()
    except OSError:
        return False
    return bool(_WSL_RE.search(text))


def check_preconditions(settings: Settings, proc_version: Optional[Path] = None) -> None:
    """Fail before any mutation when not running on the expected host."""
    if not settings.require_wsl:
        logger.debug({"event": "wsl_check_skipped"})
        return
    if not is_wsl(proc_version):
        raise PreconditionFailed(
            "This tool must be run in WSL (Windows Subsystem for Linux); "
            "start it with: wsl -d Ubuntu",
            details={"proc_version": str(proc_version or PROC_VERSION)},
        )


def detect_prerequisites(
    settings: Settings, environ: Optional[Mapping[str, str]] = None
) -> Dict[str, bool]:
    """Report which bootstrap prerequisites are present. Never fails."""
    environ = os.environ if environ is None else environ
    found = {
        "nix": is_command_available("nix", environ),
        "editor": is_command_available(settings.editor, environ),
        "docker": is_command_available("docker", environ),
        "display": bool(environ.get("DISPLAY")),
    }
    logger.debug({"event": "prerequisites_detected", **found})
    return found
