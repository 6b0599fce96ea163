"""Connection to the machine the interpreter runs on."""
from __future__ import annotations

from typing import Callable, Union

from core.command_runner import CommandResult, CommandRunner
from core.console import Console, ConsoleLike

from .config import TransportOptions
from .identity import OsIdentity, PlatformIdentity
from .runners import CommandWrapper, Runner
from .selector import RunnerSelector

IdentitySource = Union[OsIdentity, Callable[["LocalConnection"], OsIdentity]]


class LocalConnection:
    """Runs commands locally through a runner chosen once at construction.

    ``identity`` is either an OS identity or a factory receiving this
    connection, so discovery can itself run commands (through the generic
    pass-through runner) before the final runner is chosen. Close the
    connection, or use it as a context manager, to tear down a pipe session.
    """

    uri = "local://"
    login_command = None

    def __init__(
        self,
        identity: IdentitySource | None = None,
        *,
        options: TransportOptions | None = None,
        wrapper: CommandWrapper | None = None,
        invoker: CommandRunner | None = None,
        selector: RunnerSelector | None = None,
        console: ConsoleLike | None = None,
    ) -> None:
        self.options = options or TransportOptions()
        self.console = console or Console(self.options.log_level)
        self.selector = selector or RunnerSelector(
            self.options, invoker=invoker, wrapper=wrapper, console=self.console
        )
        self._closed = False
        self._runner: Runner = self.selector.initial_runner()
        self.identity = self._resolve_identity(identity)
        self._runner = self.selector.select(self.identity)

    def _resolve_identity(self, identity: IdentitySource | None) -> OsIdentity:
        if identity is None:
            return PlatformIdentity()
        if hasattr(identity, "is_windows"):
            return identity
        return identity(self)

    @property
    def local(self) -> bool:
        return True

    @property
    def runner(self) -> Runner:
        return self._runner

    @property
    def closed(self) -> bool:
        return self._closed

    def run_command(self, cmd: str) -> CommandResult:
        if self._closed:
            raise RuntimeError("Connection is closed")
        return self._runner.run_command(cmd)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._runner.close()

    def __enter__(self) -> "LocalConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"LocalConnection(uri={self.uri!r}, runner={type(self._runner).__name__})"


__all__ = ["IdentitySource", "LocalConnection"]
