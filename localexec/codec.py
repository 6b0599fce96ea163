"""Transport encoding for PowerShell scripts.

Scripts travel either as a single ``-EncodedCommand`` argument (base64 of
UTF-16LE text, which is what PowerShell expects there) or as a single line on
the session pipe (base64 of UTF-8 text, decoded by the pipe server). Both
forms are prefixed with a directive that silences the progress stream so it
never leaks into captured output.
"""
from __future__ import annotations

import base64
import binascii

from .errors import ProtocolError, ScriptEncodingError

QUIET_PREAMBLE = "$ProgressPreference='SilentlyContinue';"


def quiet(command: str) -> str:
    """Return ``command`` with the progress-silencing directive prepended."""
    return QUIET_PREAMBLE + command


def _encode(text: str, encoding: str) -> str:
    try:
        raw = text.encode(encoding)
    except UnicodeEncodeError as exc:
        raise ScriptEncodingError(f"Cannot encode script as {encoding}: {exc}") from exc
    return base64.b64encode(raw).decode("ascii")


def _decode(payload: str, encoding: str) -> str:
    try:
        raw = base64.b64decode(payload.strip(), validate=True)
        return raw.decode(encoding)
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ProtocolError(f"Malformed encoded payload: {exc}") from exc


def encode_script(command: str) -> str:
    """Encode ``command`` for ``powershell -EncodedCommand``."""
    return _encode(quiet(command), "utf-16-le")


def decode_script(payload: str) -> str:
    """Reverse :func:`encode_script`; the result keeps the preamble."""
    return _decode(payload, "utf-16-le")


def encode_session_line(command: str) -> str:
    """Encode ``command`` as one request line for the pipe server."""
    return _encode(quiet(command), "utf-8")


def decode_session_line(line: str) -> str:
    """Reverse :func:`encode_session_line`; the result keeps the preamble."""
    return _decode(line, "utf-8")


def encode_text(text: str) -> str:
    """Base64 of UTF-8 ``text`` without any preamble."""
    return _encode(text, "utf-8")


def decode_text(payload: str) -> str:
    return _decode(payload, "utf-8")


__all__ = [
    "QUIET_PREAMBLE",
    "decode_script",
    "decode_session_line",
    "decode_text",
    "encode_script",
    "encode_session_line",
    "encode_text",
    "quiet",
]
