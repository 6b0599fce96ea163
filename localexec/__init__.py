"""Local command execution across POSIX and Windows."""

from core.command_runner import CommandResult

from .config import TransportOptions, load_options
from .connection import LocalConnection
from .errors import (
    LocalExecError,
    ProtocolError,
    ScriptEncodingError,
    SessionAcquisitionError,
    SessionTimeoutError,
)
from .identity import OsIdentity, PlatformIdentity
from .runners import CommandWrapper, GenericRunner, Runner, ScriptedRunner, ShellRunner
from .selector import RunnerSelector
from .session import SessionAcquisition, SessionRunner, acquire_session

__all__ = [
    "CommandResult",
    "CommandWrapper",
    "GenericRunner",
    "LocalConnection",
    "LocalExecError",
    "OsIdentity",
    "PlatformIdentity",
    "ProtocolError",
    "Runner",
    "RunnerSelector",
    "ScriptEncodingError",
    "ScriptedRunner",
    "SessionAcquisition",
    "SessionAcquisitionError",
    "SessionRunner",
    "SessionTimeoutError",
    "ShellRunner",
    "TransportOptions",
    "acquire_session",
    "load_options",
]
