"""Utilities for executing command lines with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess

from .console import ConsoleLike

# Characters that require a real shell to interpret the command line.
SHELL_METACHARACTERS = frozenset("*?{}[]<>()~&|\\$;'`\"\n#=%")

# Reserved words and special built-ins with no executable of their own.
SHELL_WORDS = frozenset(
    {
        "!", ".", ":", "break", "case", "continue", "do", "done", "elif", "else",
        "esac", "eval", "exec", "exit", "export", "fi", "for", "if", "in",
        "readonly", "return", "set", "shift", "then", "times", "trap", "unset",
        "until", "while",
    }
)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Represents the outcome of an executed command."""

    stdout: str
    stderr: str
    exit_status: int


class CommandError(RuntimeError):
    """Raised when a command fails and the caller asked for ``check``."""

    def __init__(self, command: str, result: CommandResult):
        super().__init__(
            f"Command failed with exit code {result.exit_status}: {command}\n"
            f"stdout: {result.stdout}\n"
            f"stderr: {result.stderr}"
        )
        self.command = command
        self.result = result


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = False,
        note: str | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: str) -> str:
        return command


def needs_shell(command: str) -> bool:
    """Return ``True`` when ``command`` uses syntax only a shell understands."""

    if any(char in SHELL_METACHARACTERS for char in command):
        return True
    words = command.split(None, 1)
    return bool(words) and words[0] in SHELL_WORDS


def split_command(command: str) -> str | List[str]:
    """Translate a command line into the ``args`` form handed to :mod:`subprocess`.

    Windows receives the string untouched since ``CreateProcess`` does its own
    parsing. On POSIX a plain command is split and executed directly, while a
    command relying on shell syntax or a shell built-in is passed to
    ``/bin/sh`` as a string. A blank command splits to an empty list.
    """

    if os.name == "nt" or needs_shell(command):
        return command
    return shlex.split(command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes command lines via :mod:`subprocess`.

    A command whose executable cannot be started yields an empty result with
    exit status 1 instead of raising.
    """

    SPAWN_FAILURE = CommandResult(stdout="", stderr="", exit_status=1)

    def __init__(self, console: ConsoleLike | None = None) -> None:
        self.console = console

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def _finalize(self, command: str, result: CommandResult, *, check: bool) -> CommandResult:
        if check and result.exit_status != 0:
            raise CommandError(command, result)
        return result

    def run(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = False,
        note: str | None = None,
    ) -> CommandResult:
        args = split_command(command)
        if not args or not command.strip():
            if self.console is not None:
                self.console.debug("spawn failed: empty command line")
            return self._finalize(command, self.SPAWN_FAILURE, check=check)
        if self.console is not None:
            self.console.debug(f"exec: {command}")
        try:
            process = subprocess.run(
                args,
                shell=isinstance(args, str) and os.name != "nt",
                cwd=str(cwd) if cwd else None,
                env=self._merge_environment(env),
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as exc:
            if self.console is not None:
                self.console.debug(f"spawn failed for {command!r}: {exc}")
            return self._finalize(command, self.SPAWN_FAILURE, check=check)

        return self._finalize(
            command,
            CommandResult(
                stdout=process.stdout,
                stderr=process.stderr,
                exit_status=process.returncode,
            ),
            check=check,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: str
    cwd: str | None
    note: str | None


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    def run(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = False,
        note: str | None = None,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=command,
                cwd=str(cwd) if cwd else None,
                note=note,
            )
        )
        return CommandResult(stdout="", stderr="", exit_status=0)

    @property
    def command_lines(self) -> List[str]:
        return [record.command for record in self.commands]

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self) -> Iterable[str]:
        for record in self.commands:
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if record.cwd:
                parts.append(f"(cwd={record.cwd})")
            parts.append(self.format_command(record.command))
            yield " ".join(parts)


__all__: Sequence[str] = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "needs_shell",
    "split_command",
]
