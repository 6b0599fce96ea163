"""Operating-system identity used to pick a runner."""
from __future__ import annotations

import platform
from typing import Protocol


class OsIdentity(Protocol):
    def is_windows(self) -> bool:
        ...


class PlatformIdentity:
    """OS identity of the running interpreter, based on :func:`platform.system`."""

    def __init__(self, system: str | None = None) -> None:
        self.system = system if system is not None else platform.system()

    @property
    def family(self) -> str:
        if self.is_windows():
            return "windows"
        if self.system.lower() in ("linux", "darwin", "freebsd", "openbsd", "netbsd", "sunos", "aix"):
            return "unix"
        return "unknown"

    def is_windows(self) -> bool:
        return self.system.lower() == "windows"

    def __repr__(self) -> str:
        return f"PlatformIdentity(system={self.system!r})"
