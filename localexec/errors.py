"""Exceptions raised by the local execution transport."""
from __future__ import annotations


class LocalExecError(RuntimeError):
    """Base class for transport failures a command result cannot express."""


class ScriptEncodingError(LocalExecError, ValueError):
    """Raised when a script contains text that cannot be re-encoded."""


class SessionAcquisitionError(LocalExecError):
    """The persistent pipe session could not be established."""


class ProtocolError(LocalExecError):
    """A session response could not be decoded into a command result."""


class SessionTimeoutError(ProtocolError):
    """The session server did not answer within the configured timeout."""


__all__ = [
    "LocalExecError",
    "ProtocolError",
    "ScriptEncodingError",
    "SessionAcquisitionError",
    "SessionTimeoutError",
]
