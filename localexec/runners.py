"""Runners that dispatch a command string to the local operating system."""
from __future__ import annotations

from typing import Protocol

from core.command_runner import CommandResult, CommandRunner, SubprocessCommandRunner
from core.console import ConsoleLike

from .codec import encode_script


class CommandWrapper(Protocol):
    """Transforms a command before execution, e.g. by adding a sudo prefix."""

    def run(self, cmd: str) -> str:
        ...


class Runner:
    """Abstract runner interface: one mechanism for executing a command locally."""

    def run_command(self, cmd: str) -> CommandResult:
        raise NotImplementedError

    def close(self) -> None:
        """Release resources owned by the runner."""


class GenericRunner(Runner):
    """Pass-through runner used while the operating system is still unknown."""

    def __init__(self, invoker: CommandRunner | None = None) -> None:
        self.invoker = invoker or SubprocessCommandRunner()

    def run_command(self, cmd: str) -> CommandResult:
        return self.invoker.run(cmd)


class ShellRunner(Runner):
    """POSIX runner: optionally wraps the command, then shells out."""

    def __init__(
        self,
        invoker: CommandRunner | None = None,
        *,
        wrapper: CommandWrapper | None = None,
    ) -> None:
        self.invoker = invoker or SubprocessCommandRunner()
        self.wrapper = wrapper

    def format_command(self, cmd: str) -> str:
        if self.wrapper is None:
            return cmd
        return self.wrapper.run(cmd)

    def run_command(self, cmd: str) -> CommandResult:
        return self.invoker.run(self.format_command(cmd))


class ScriptedRunner(Runner):
    """Windows fallback: one non-interactive PowerShell process per command."""

    def __init__(
        self,
        invoker: CommandRunner | None = None,
        *,
        powershell: str = "powershell",
        console: ConsoleLike | None = None,
    ) -> None:
        self.invoker = invoker or SubprocessCommandRunner(console)
        self.powershell = powershell

    def format_command(self, script: str) -> str:
        return f"{self.powershell} -NoProfile -NonInteractive -EncodedCommand {encode_script(script)}"

    def run_command(self, script: str) -> CommandResult:
        return self.invoker.run(self.format_command(script))


__all__ = [
    "CommandWrapper",
    "GenericRunner",
    "Runner",
    "ScriptedRunner",
    "ShellRunner",
]
