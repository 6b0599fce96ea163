"""Leveled console output shared by the command-line tools."""
from __future__ import annotations

import sys
from typing import Protocol


class ConsoleLike(Protocol):
    """Minimal console interface accepted by runners and sessions."""

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def debug(self, message: str) -> None:
        ...


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'none' (no output)
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "none"):
        if level not in self.LEVELS:
            raise ValueError(
                f"Unknown console level '{level}'. Expected one of: {', '.join(self.LEVELS)}"
            )
        self.level_name = level
        self.level = self.LEVELS[level]

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}", file=sys.stderr)


__all__ = ["Console", "ConsoleLike"]
