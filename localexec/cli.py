"""Command-line entry point for running a command through the local transport."""
from __future__ import annotations

import argparse
import os
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Iterable, List

from core.command_runner import RecordingCommandRunner
from core.console import Console

from .config import load_options
from .connection import LocalConnection
from .errors import LocalExecError


def join_arguments(arguments: List[str]) -> str:
    """Quote ``arguments`` into one command line that splits back into them."""
    if os.name == "nt":
        return subprocess.list2cmdline(arguments)
    return shlex.join(arguments)


def _parse_arguments(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="localexec",
        description="Run a command on this machine through the local transport",
    )
    parser.add_argument("--config", type=Path, help="Transport configuration file (.toml, .json, .yaml)")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Report runner selection")
    verbosity.add_argument("--debug", action="store_true", help="Report every command line executed")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the command lines that would be executed instead of running them",
    )
    parser.add_argument(
        "--no-session",
        action="store_true",
        help="On Windows, skip the persistent pipe session and run one PowerShell per command",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for a pipe session response before giving up",
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run")
    args = parser.parse_args(argv)

    if args.command and args.command[0] == "--":
        args.command = args.command[1:]
    if not args.command:
        parser.error("a command is required")
    return args


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(list(argv) if argv is not None else sys.argv[1:])

    overrides = {"response_timeout": args.timeout}
    if args.verbose:
        overrides["log_level"] = "info"
    if args.debug:
        overrides["log_level"] = "debug"
    if args.no_session or args.dry_run:
        overrides["prefer_session"] = False

    try:
        options = load_options(args.config, overrides)
    except (OSError, TypeError, ValueError) as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 2

    console = Console(options.log_level)
    recorder = RecordingCommandRunner() if args.dry_run else None
    command = join_arguments(args.command)

    try:
        with LocalConnection(options=options, invoker=recorder, console=console) as connection:
            result = connection.run_command(command)
    except LocalExecError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if recorder is not None:
        for line in recorder.iter_formatted():
            print(line)
        return 0

    sys.stdout.write(result.stdout)
    sys.stderr.write(result.stderr)
    return result.exit_status


__all__ = ["main"]
