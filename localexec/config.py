"""Transport options and their loading from configuration files."""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping

from core.config_loader import load_config_file, merge_mappings
from core.console import Console

from .session import DEFAULT_PIPE_ATTEMPTS, DEFAULT_PIPE_INTERVAL

CONFIG_SECTION = "transport"


@dataclass(frozen=True, slots=True)
class TransportOptions:
    """Tunables of the local transport.

    ``response_timeout`` bounds the wait for a session response in seconds;
    ``None`` waits indefinitely.
    """

    powershell: str = "powershell"
    prefer_session: bool = True
    pipe_attempts: int = DEFAULT_PIPE_ATTEMPTS
    pipe_interval: float = DEFAULT_PIPE_INTERVAL
    response_timeout: float | None = None
    log_level: str = "none"

    def __post_init__(self) -> None:
        if not isinstance(self.powershell, str) or not self.powershell.strip():
            raise TypeError("powershell must be a non-empty string")
        if not isinstance(self.prefer_session, bool):
            raise TypeError("prefer_session must be a boolean")
        if isinstance(self.pipe_attempts, bool) or not isinstance(self.pipe_attempts, int):
            raise TypeError("pipe_attempts must be an integer")
        if self.pipe_attempts < 1:
            raise ValueError("pipe_attempts must be at least 1")
        if isinstance(self.pipe_interval, bool) or not isinstance(self.pipe_interval, (int, float)):
            raise TypeError("pipe_interval must be a number")
        if self.pipe_interval < 0:
            raise ValueError("pipe_interval must not be negative")
        if self.response_timeout is not None:
            if isinstance(self.response_timeout, bool) or not isinstance(
                self.response_timeout, (int, float)
            ):
                raise TypeError("response_timeout must be a number or null")
            if self.response_timeout <= 0:
                raise ValueError("response_timeout must be positive")
        if self.log_level not in Console.LEVELS:
            raise ValueError(
                f"log_level must be one of: {', '.join(Console.LEVELS)} (got '{self.log_level}')"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TransportOptions":
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown transport option(s): {', '.join(unknown)}")
        return cls(**dict(data))


def load_options(
    path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> TransportOptions:
    """Build :class:`TransportOptions` from ``path`` and ``overrides``.

    The file may hold the options at its root or under a ``transport`` table.
    Overrides whose value is ``None`` are ignored.
    """

    data: Dict[str, Any] = {}
    if path is not None:
        loaded = load_config_file(path)
        section = loaded.get(CONFIG_SECTION, loaded)
        if not isinstance(section, Mapping):
            raise TypeError(f"'{CONFIG_SECTION}' in '{path}' must be a mapping")
        data = dict(section)

    if overrides:
        data = merge_mappings(data, {key: value for key, value in overrides.items() if value is not None})

    return TransportOptions.from_mapping(data)


__all__ = ["CONFIG_SECTION", "TransportOptions", "load_options"]
