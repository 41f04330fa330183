"""External command execution."""

import asyncio
import os
import shutil
from typing import Mapping, Optional

from cursor_wsl_iso.types import CommandResult, CommandStatus
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)


async def run_command(
    *args: str, env: Optional[Mapping[str, str]] = None, timeout: Optional[float] = None
) -> CommandResult:
    """Run a command and classify the outcome.

    A missing executable is UNAVAILABLE, a non-zero exit is FAILED.
    """
    cmd_env = dict(os.environ if env is None else env)

    logger.debug({"event": "cmd_exec", "cmd": list(args)})

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            env=cmd_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        logger.debug({"event": "cmd_unavailable", "cmd": list(args), "error": str(e)})
        return CommandResult(status=CommandStatus.UNAVAILABLE, stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.debug({"event": "cmd_timeout", "cmd": list(args), "timeout": timeout})
        return CommandResult(
            status=CommandStatus.FAILED,
            returncode=process.returncode,
            stderr=f"timed out after {timeout}s",
        )

    out = stdout.decode(errors="replace")
    err = stderr.decode(errors="replace")
    if err:
        logger.debug({"event": "cmd_stderr", "cmd": list(args), "output": err})

    logger.debug(
        {"event": "cmd_complete", "cmd": list(args), "returncode": process.returncode}
    )

    status = CommandStatus.OK if process.returncode == 0 else CommandStatus.FAILED
    return CommandResult(status=status, returncode=process.returncode, stdout=out, stderr=err)


def is_command_available(cmd: str, env: Optional[Mapping[str, str]] = None) -> bool:
    """Checks to see if a command is on PATH"""
    path = (os.environ if env is None else env).get("PATH")
    return shutil.which(cmd, path=path) is not None


async def tool_version(*args: str, env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """First line of a tool's version output, or None when it cannot be queried."""
    result = await run_command(*args, env=env, timeout=10)
    if not result.ok:
        return None
    lines = result.lines or [line.strip() for line in result.stderr.splitlines() if line.strip()]
    return lines[0] if lines else None
