"""Command line entry points.

``cursor-wsl-iso <env_id> [project_type]`` starts an isolated shell;
``cursor-env <command>`` runs lifecycle operations from inside it.
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import Optional, Sequence

from cursor_wsl_iso.config import load_settings
from cursor_wsl_iso.errors import CursorEnvError, PreconditionFailed, log_error
from cursor_wsl_iso.host import check_preconditions
from cursor_wsl_iso.sessions.controller import SessionController, exit_status
from cursor_wsl_iso.sessions.lifecycle import format_info
from cursor_wsl_iso.sessions.session import Session
from cursor_wsl_iso.logging import configure_logging, get_logger

logger = get_logger("cli")

COMMANDS_HELP = """📋 Available commands:
  cursor-env editor [workspace]  - Launch the editor with isolated settings
  cursor-env info                - Show environment details
  cursor-env clean               - Clean this environment
  cursor-env backup [name]       - Backup this environment
  exit                           - Leave this environment"""


def report(error: CursorEnvError) -> int:
    """Log the error and print one severity-classified line."""
    log_error(error, logger=logger)
    print(f"❌ {error.describe()}", file=sys.stderr)
    return error.exit_code


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cursor-wsl-iso",
        description="Start an isolated development shell for a numbered environment",
    )
    parser.add_argument("env_id", help="Positive environment number, e.g. 1")
    parser.add_argument(
        "project_type",
        nargs="?",
        default=None,
        help="Free-form project label shown in the session (default: general)",
    )
    return parser.parse_args(argv)


async def welcome(session: Session) -> None:
    ns = session.namespace
    print(f"🚀 Isolated development environment {ns.env_id} ({ns.project_type}) loaded")
    print(format_info(await session.info()))
    print()
    print(COMMANDS_HELP)
    print()
    print("🔧 Starting isolated shell...")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging()

    try:
        settings = load_settings()
        configure_logging(settings.log_level)
        check_preconditions(settings)
    except CursorEnvError as e:
        return report(e)

    project_type = args.project_type or settings.default_project_type
    print(f"🚀 Starting Cursor environment: {args.env_id} ({project_type})")

    controller = SessionController(settings)
    try:
        return asyncio.run(controller.run(args.env_id, project_type, on_ready=welcome))
    except CursorEnvError as e:
        return report(e)
    except FileNotFoundError as e:
        return report(PreconditionFailed(f"Cannot start shell {settings.shell!r}: {e}"))
    except KeyboardInterrupt:
        return exit_status(-signal.SIGINT)


def parse_env_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cursor-env",
        description="Manage the isolated environment this shell belongs to",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Show environment details")
    info.add_argument("--json", action="store_true", help="Print the report as JSON")

    sub.add_parser("clean", help="Remove containers, Docker context and all environment data")

    backup = sub.add_parser("backup", help="Archive the environment directory")
    backup.add_argument("name", nargs="?", default=None, help="Backup label (default: timestamp)")

    editor = sub.add_parser("editor", help="Launch the editor with isolated settings")
    editor.add_argument("workspace", nargs="?", default=".", help="Workspace to open")

    return parser.parse_args(argv)


async def run_env_command(session: Session, args: argparse.Namespace) -> int:
    if args.command == "info":
        report_data = await session.info()
        print(json.dumps(report_data, indent=2) if args.json else format_info(report_data))
    elif args.command == "clean":
        await session.clean()
    elif args.command == "backup":
        session.backup(args.name)
    elif args.command == "editor":
        session.launch_editor(args.workspace)
    return 0


def env_main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_env_args(argv)
    configure_logging()

    try:
        settings = load_settings()
        configure_logging(settings.log_level)
        session = Session.from_environ(settings)
        return asyncio.run(run_env_command(session, args))
    except CursorEnvError as e:
        return report(e)
    except KeyboardInterrupt:
        return exit_status(-signal.SIGINT)


if __name__ == "__main__":
    raise SystemExit(main())
