"""Policy choosing how commands are dispatched on the local machine."""
from __future__ import annotations

from typing import Callable

from core.command_runner import CommandRunner, SubprocessCommandRunner
from core.console import ConsoleLike

from .config import TransportOptions
from .identity import OsIdentity
from .runners import CommandWrapper, GenericRunner, Runner, ScriptedRunner, ShellRunner
from .session import SessionAcquisition, SessionRunner, acquire_session

AcquireSession = Callable[[], SessionAcquisition]


class RunnerSelector:
    """Pick a runner once per connection.

    Non-Windows hosts get a :class:`ShellRunner`. Windows hosts get a
    :class:`SessionRunner` when a pipe session can be acquired and a
    :class:`ScriptedRunner` otherwise.
    """

    def __init__(
        self,
        options: TransportOptions | None = None,
        *,
        invoker: CommandRunner | None = None,
        wrapper: CommandWrapper | None = None,
        acquire: AcquireSession | None = None,
        console: ConsoleLike | None = None,
    ) -> None:
        self.options = options or TransportOptions()
        self.console = console
        self.invoker = invoker or SubprocessCommandRunner(console)
        self.wrapper = wrapper
        self._acquire = acquire or self._acquire_pipe_session

    def _acquire_pipe_session(self) -> SessionAcquisition:
        return acquire_session(
            powershell=self.options.powershell,
            attempts=self.options.pipe_attempts,
            interval=self.options.pipe_interval,
            console=self.console,
        )

    def _info(self, message: str) -> None:
        if self.console is not None:
            self.console.info(message)

    def initial_runner(self) -> Runner:
        """Runner used while the operating system is being discovered."""
        return GenericRunner(self.invoker)

    def select(self, identity: OsIdentity) -> Runner:
        if not identity.is_windows():
            self._info("Using shell runner")
            return ShellRunner(self.invoker, wrapper=self.wrapper)

        if self.options.prefer_session:
            outcome = self._acquire()
            if outcome.session is not None:
                self._info(f"Using pipe session {outcome.session.name}")
                return SessionRunner(outcome.session, response_timeout=self.options.response_timeout)
            self._info(f"Pipe session unavailable ({outcome.error}); falling back to scripted runner")

        self._info("Using scripted PowerShell runner")
        return ScriptedRunner(self.invoker, powershell=self.options.powershell, console=self.console)


__all__ = ["AcquireSession", "RunnerSelector"]
