"""Session lifecycle: resolve, bind, activate runtime, run the shell, release."""

import asyncio
import os
import signal
from typing import Awaitable, Callable, List, MutableMapping, Optional, Sequence, Union

from cursor_wsl_iso.config import CONFIG_ENV_VAR, Settings
from cursor_wsl_iso.environments.binding import ResourceBinder, compose_project_name
from cursor_wsl_iso.environments.namespace import resolve
from cursor_wsl_iso.runtimes.context import RuntimeContextBinder
from cursor_wsl_iso.runtimes.docker import DockerCli
from cursor_wsl_iso.sessions.session import RUNTIME_VAR, Session, runtime_to_value
from cursor_wsl_iso.types import SessionState
from cursor_wsl_iso.logging import get_logger

logger = get_logger(__name__)

# Interactive shells ignore SIGTERM, so termination requests reach them as a hangup
FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGHUP)
SHELL_STOP_SIGNAL = signal.SIGHUP
# While the shell runs the terminal delivers Ctrl-C to it directly
INTERACTIVE_SIGNALS = (signal.SIGINT,)

ReadyHook = Callable[[Session], Awaitable[None]]


def exit_status(returncode: int) -> int:
    """Shell-style exit status: death by signal N becomes 128 + N."""
    if returncode < 0:
        return 128 - returncode
    return returncode


class SessionController:
    """Runs one isolated session and always rolls it back.

    Everything between a successful bind and the end of ``run`` sits inside
    a ``finally`` that deactivates the runtime context and then restores the
    saved environment, so the host state is restored on normal exit, on
    errors, on cancellation and on SIGTERM/SIGHUP/SIGINT.

    Signal handlers cover the whole bound region. A signal that arrives
    before the shell exists aborts the session; once the shell runs,
    termination signals are forwarded to it and Ctrl-C is left to it.
    Signals during unbinding are ignored until the release has finished.
    """

    def __init__(
        self,
        settings: Settings,
        environ: Optional[MutableMapping[str, str]] = None,
        docker: Optional[DockerCli] = None,
        shell_command: Optional[Sequence[str]] = None,
    ):
        self.settings = settings
        self.environ = os.environ if environ is None else environ
        self.binder = ResourceBinder(self.environ, settings.compose_prefix)
        self.docker = docker or DockerCli(environ=self.environ)
        self.runtime_binder = RuntimeContextBinder(
            self.docker,
            prefix=settings.context_prefix,
            docker_host=settings.docker_host,
            default_context=settings.default_context,
        )
        self.shell_command = list(shell_command) if shell_command else [settings.shell]
        self.state = SessionState.IDLE
        self.history: List[SessionState] = [SessionState.IDLE]
        self.session: Optional[Session] = None
        self.received_signal: Optional[int] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._task: Optional[asyncio.Task] = None
        self._spawning = False
        self._aborted = False

    def _transition(self, state: SessionState) -> None:
        logger.debug({"event": "session_state", "from": self.state.name, "to": state.name})
        self.state = state
        self.history.append(state)

    async def run(
        self,
        env_id: Union[int, str],
        project_type: Optional[str] = None,
        on_ready: Optional[ReadyHook] = None,
    ) -> int:
        """Run a full session and return the shell's exit status.

        InvalidEnvironmentId and NamespaceCreationFailed propagate with
        nothing mutated. A session aborted by a signal before the shell
        started returns 128 + the signal number.
        """
        self._transition(SessionState.RESOLVING)
        try:
            namespace = resolve(
                env_id,
                project_type or self.settings.default_project_type,
                self.settings.environments_base,
            )
            self._transition(SessionState.BINDING)
            saved = self.binder.bind(namespace)
        except Exception:
            self._transition(SessionState.IDLE)
            raise

        session = Session(
            namespace=namespace,
            settings=self.settings,
            compose_project=compose_project_name(namespace.env_id, self.settings.compose_prefix),
            saved=saved,
            docker=self.docker,
            environ=self.environ,
        )
        self.session = session
        self._task = asyncio.current_task()
        installed = self._install_signal_handlers()

        try:
            self._transition(SessionState.RUNTIME_BINDING)
            session.runtime = await self.runtime_binder.activate(namespace.env_id)
            self.binder.set(saved, RUNTIME_VAR, runtime_to_value(session.runtime))
            if self.settings.config_file:
                self.binder.set(saved, CONFIG_ENV_VAR, str(self.settings.config_file))

            self._transition(SessionState.SESSION_ACTIVE)
            if on_ready:
                await on_ready(session)
            return await self._run_shell()
        except asyncio.CancelledError:
            if not self._aborted:
                raise
            return exit_status(-self.received_signal)
        finally:
            self._transition(SessionState.UNBINDING)
            try:
                await self._release(session)
            finally:
                self._remove_signal_handlers(installed)
            self._transition(SessionState.IDLE)

    async def _release(self, session: Session) -> None:
        try:
            await self.runtime_binder.deactivate(session.env_id)
        finally:
            self.binder.unbind(session.saved)
            logger.info({"event": "session_released", "env_id": session.env_id})

    def _on_signal(self, signum: int) -> None:
        name = signal.Signals(signum).name
        if self.state in (SessionState.UNBINDING, SessionState.IDLE):
            logger.debug({"event": "session_signal_deferred", "signal": name})
            return

        if self._process is not None or self._spawning:
            if signum in INTERACTIVE_SIGNALS:
                logger.debug({"event": "session_signal_ignored", "signal": name})
                return
            logger.info({"event": "session_signal", "signal": name})
            self.received_signal = signum
            self._stop_shell()
            return

        logger.info({"event": "session_aborted", "signal": name})
        self.received_signal = signum
        if not self._aborted and self._task is not None:
            self._aborted = True
            self._task.cancel()

    def _stop_shell(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.send_signal(SHELL_STOP_SIGNAL)
            except ProcessLookupError:
                pass

    def _install_signal_handlers(self) -> List[int]:
        loop = asyncio.get_running_loop()
        installed = []
        for signum in FORWARDED_SIGNALS + INTERACTIVE_SIGNALS:
            try:
                loop.add_signal_handler(signum, self._on_signal, signum)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not on the main thread or not supported by this loop
                logger.debug({"event": "signal_handler_skipped", "signal": int(signum)})
                continue
            installed.append(signum)
        return installed

    def _remove_signal_handlers(self, installed: List[int]) -> None:
        loop = asyncio.get_running_loop()
        for signum in installed:
            loop.remove_signal_handler(signum)

    async def _run_shell(self) -> int:
        logger.info({"event": "shell_start", "cmd": self.shell_command})
        self._spawning = True
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.shell_command, env=dict(self.environ)
            )
            self._spawning = False
            if self.received_signal is not None:
                self._stop_shell()
            returncode = await self._process.wait()
        finally:
            self._spawning = False
            if self._process is not None and self._process.returncode is None:
                self._process.kill()
                await self._process.wait()

        logger.info({"event": "shell_exit", "returncode": returncode})
        return exit_status(returncode)
