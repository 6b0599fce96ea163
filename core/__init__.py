"""Shared core utilities for command execution, configuration and console output."""

from .command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    RecordedCommand,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .config_loader import (
    ConfigLoader,
    FILE_LOADERS,
    load_config_file,
    merge_mappings,
)
from .console import Console, ConsoleLike

__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "ConfigLoader",
    "Console",
    "ConsoleLike",
    "FILE_LOADERS",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "load_config_file",
    "merge_mappings",
]
