"""Persistent PowerShell session over a duplex named pipe.

A detached PowerShell process hosts a read-execute-respond loop on a named
pipe. Each request is one base64 line carrying a UTF-8 script, each response
is one base64 line carrying a compact JSON object with exactly the keys
``stdout``, ``stderr`` and ``exit_status``. Only one request may be in flight.
"""
from __future__ import annotations

import concurrent.futures
import contextlib
import io
import json
import subprocess
import threading
import time
import uuid
import weakref
from dataclasses import dataclass
from functools import partial
from typing import BinaryIO, Callable, List, Protocol

from core.command_runner import CommandResult
from core.console import ConsoleLike

from .codec import decode_text, encode_script, encode_session_line
from .errors import ProtocolError, SessionAcquisitionError, SessionTimeoutError
from .runners import Runner

PIPE_NAME_PREFIX = "localexec_"
PIPE_PATH_PREFIX = "\\\\.\\pipe\\"
DEFAULT_PIPE_ATTEMPTS = 100
DEFAULT_PIPE_INTERVAL = 0.1
SERVER_REAP_TIMEOUT = 5.0
RESPONSE_FIELDS = frozenset({"stdout", "stderr", "exit_status"})

SERVER_SCRIPT = r"""
$ErrorActionPreference = 'Stop'

$pipeServer = New-Object System.IO.Pipes.NamedPipeServerStream('{pipe_name}', [System.IO.Pipes.PipeDirection]::InOut)
$pipeReader = New-Object System.IO.StreamReader($pipeServer)
$pipeWriter = New-Object System.IO.StreamWriter($pipeServer)

$pipeServer.WaitForConnection()

while ($true) {
  $line = $pipeReader.ReadLine()
  if ($null -eq $line) { break }
  $command = [System.Text.Encoding]::UTF8.GetString([System.Convert]::FromBase64String($line))

  $scriptBlock = $ExecutionContext.InvokeCommand.NewScriptBlock($command)
  $global:LASTEXITCODE = 0
  try {
    $stdout = & $scriptBlock | Out-String
    $result = @{ 'stdout' = $stdout; 'stderr' = ''; 'exit_status' = [int]$global:LASTEXITCODE }
  } catch {
    $stderr = $_ | Out-String
    $result = @{ 'stdout' = ''; 'stderr' = $stderr; 'exit_status' = 1 }
  }
  $resultJSON = $result | ConvertTo-Json -Compress

  $encodedResult = [System.Convert]::ToBase64String([System.Text.Encoding]::UTF8.GetBytes($resultJSON))
  $pipeWriter.WriteLine($encodedResult)
  $pipeWriter.Flush()
}
"""


class ServerProcess(Protocol):
    """The subset of :class:`subprocess.Popen` a session needs."""

    pid: int

    def poll(self) -> int | None:
        ...

    def kill(self) -> None:
        ...

    def wait(self, timeout: float | None = None) -> int:
        ...


def new_pipe_name() -> str:
    return f"{PIPE_NAME_PREFIX}{uuid.uuid4().hex}"


def pipe_path(pipe_name: str) -> str:
    return f"{PIPE_PATH_PREFIX}{pipe_name}"


def build_server_command(pipe_name: str, *, powershell: str = "powershell") -> List[str]:
    script = SERVER_SCRIPT.replace("{pipe_name}", pipe_name)
    return [
        powershell,
        "-NoProfile",
        "-ExecutionPolicy",
        "Bypass",
        "-NonInteractive",
        "-EncodedCommand",
        encode_script(script),
    ]


def launch_pipe_server(pipe_name: str, *, powershell: str = "powershell") -> subprocess.Popen:
    """Start the detached pipe server listening on ``pipe_name``."""

    flags = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
        subprocess, "CREATE_NEW_PROCESS_GROUP", 0
    )
    return subprocess.Popen(
        build_server_command(pipe_name, powershell=powershell),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        creationflags=flags,
    )


def terminate_server(process: ServerProcess, console: ConsoleLike | None = None) -> bool:
    """Kill ``process`` and reap it; return ``False`` if it did not exit in time."""

    if process.poll() is None:
        process.kill()
    try:
        process.wait(timeout=SERVER_REAP_TIMEOUT)
    except subprocess.TimeoutExpired:
        if console is not None:
            console.error(
                f"Pipe server (pid {process.pid}) did not exit within {SERVER_REAP_TIMEOUT}s of being killed"
            )
        return False
    return True


class PipeChannel:
    """Line-oriented duplex channel over a reader/writer pair."""

    def __init__(self, reader: BinaryIO, writer: BinaryIO) -> None:
        self._reader = reader
        self._writer = writer

    @classmethod
    def open_named(cls, pipe_name: str) -> "PipeChannel":
        raw = open(pipe_path(pipe_name), "r+b", buffering=0)
        return cls(io.BufferedReader(raw), raw)

    def send_line(self, line: str) -> None:
        view = memoryview(f"{line}\n".encode("ascii"))
        try:
            while view:
                written = self._writer.write(view)
                view = view[written:]
            self._writer.flush()
        except OSError as exc:
            raise ProtocolError(f"Cannot write to session pipe: {exc}") from exc

    def receive_line(self) -> str:
        try:
            raw = self._reader.readline()
        except OSError as exc:
            raise ProtocolError(f"Cannot read from session pipe: {exc}") from exc
        if not raw:
            raise ProtocolError("Session pipe closed by the server")
        try:
            return raw.decode("ascii").rstrip("\r\n")
        except UnicodeDecodeError as exc:
            raise ProtocolError(f"Session response is not a base64 line: {exc}") from exc

    def close(self) -> None:
        with contextlib.suppress(OSError):
            self._reader.close()
        if self._writer is not self._reader:
            with contextlib.suppress(OSError):
                self._writer.close()


def _shutdown(
    channel: PipeChannel, process: ServerProcess | None, console: ConsoleLike | None
) -> None:
    # The server goes first so a blocked read sees end-of-file.
    if process is not None:
        terminate_server(process, console)
    channel.close()


class PipeSession:
    """An open pipe channel plus the server process answering on it.

    Closing the session kills the server. If the owner never closes it, the
    server is still killed when the session is garbage collected or the
    interpreter exits.
    """

    def __init__(
        self,
        channel: PipeChannel,
        process: ServerProcess | None,
        *,
        name: str = "",
        console: ConsoleLike | None = None,
    ) -> None:
        self.name = name
        self.channel = channel
        self.process = process
        self.console = console
        self._lock = threading.Lock()
        self._executor: concurrent.futures.ThreadPoolExecutor | None = None
        self._finalizer = weakref.finalize(self, _shutdown, channel, process, console)

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def request(self, line: str, *, timeout: float | None = None) -> str:
        """Send one request line and block for the matching response line."""

        with self._lock:
            if self.closed:
                raise ProtocolError(f"Session {self.name or '<unnamed>'} is closed")
            self.channel.send_line(line)
            if timeout is None:
                return self.channel.receive_line()

            if self._executor is None:
                self._executor = concurrent.futures.ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="localexec-session"
                )
            future = self._executor.submit(self.channel.receive_line)
            try:
                return future.result(timeout=timeout)
            except concurrent.futures.TimeoutError:
                if self.console is not None:
                    self.console.error(
                        f"No response from session {self.name} within {timeout}s; closing it"
                    )
                self.close()
                raise SessionTimeoutError(
                    f"Session {self.name} did not respond within {timeout} seconds"
                ) from None

    def close(self) -> None:
        if self._finalizer.alive and self.console is not None:
            self.console.debug(f"Closing session {self.name} (server pid {self.pid})")
        self._finalizer()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None


@dataclass(frozen=True, slots=True)
class SessionResponse:
    """Strict schema of one server response."""

    stdout: str
    stderr: str
    exit_status: int

    @classmethod
    def parse(cls, line: str) -> "SessionResponse":
        text = decode_text(line)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ProtocolError(f"Session response is not valid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise ProtocolError("Session response must be a JSON object")
        keys = set(payload)
        if keys != RESPONSE_FIELDS:
            missing = ", ".join(sorted(RESPONSE_FIELDS - keys)) or "-"
            unexpected = ", ".join(sorted(keys - RESPONSE_FIELDS)) or "-"
            raise ProtocolError(
                f"Session response fields mismatch (missing: {missing}; unexpected: {unexpected})"
            )

        stdout, stderr, exit_status = payload["stdout"], payload["stderr"], payload["exit_status"]
        if not isinstance(stdout, str) or not isinstance(stderr, str):
            raise ProtocolError("Session response stdout and stderr must be strings")
        if isinstance(exit_status, bool) or not isinstance(exit_status, int):
            raise ProtocolError("Session response exit_status must be an integer")
        return cls(stdout=stdout, stderr=stderr, exit_status=exit_status)

    def to_result(self) -> CommandResult:
        return CommandResult(stdout=self.stdout, stderr=self.stderr, exit_status=self.exit_status)


@dataclass(frozen=True, slots=True)
class SessionAcquisition:
    """Outcome of :func:`acquire_session`: exactly one of ``session`` or ``error``."""

    session: PipeSession | None = None
    error: SessionAcquisitionError | None = None

    @property
    def ok(self) -> bool:
        return self.session is not None


def acquire_session(
    *,
    powershell: str = "powershell",
    attempts: int = DEFAULT_PIPE_ATTEMPTS,
    interval: float = DEFAULT_PIPE_INTERVAL,
    launcher: Callable[[str], ServerProcess] | None = None,
    opener: Callable[[str], PipeChannel] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    console: ConsoleLike | None = None,
) -> SessionAcquisition:
    """Start a pipe server and connect to it.

    The server needs time to create its pipe, so connecting is retried
    ``attempts`` times, ``interval`` seconds apart. On failure the server is
    killed before the error is returned.
    """

    launcher = launcher or partial(launch_pipe_server, powershell=powershell)
    opener = opener or PipeChannel.open_named
    name = new_pipe_name()

    try:
        process = launcher(name)
    except OSError as exc:
        return SessionAcquisition(
            error=SessionAcquisitionError(f"Could not start pipe server: {exc}")
        )
    if console is not None:
        console.debug(f"Started pipe server {name} (pid {process.pid})")

    channel: PipeChannel | None = None
    reason = f"pipe {name} not connectable after {attempts} attempts"
    for _ in range(attempts):
        exit_code = process.poll()
        if exit_code is not None:
            reason = f"pipe server exited early with status {exit_code}"
            break
        try:
            channel = opener(name)
            break
        except OSError as exc:
            reason = f"pipe {name} not connectable after {attempts} attempts: {exc}"
            sleep(interval)

    if channel is None:
        terminate_server(process, console)
        if console is not None:
            console.info(f"Session acquisition failed: {reason}")
        return SessionAcquisition(error=SessionAcquisitionError(reason))

    return SessionAcquisition(session=PipeSession(channel, process, name=name, console=console))


class SessionRunner(Runner):
    """Windows fast path: commands go through one persistent pipe session."""

    def __init__(
        self,
        session: PipeSession,
        *,
        response_timeout: float | None = None,
    ) -> None:
        self.session = session
        self.response_timeout = response_timeout

    def run_command(self, cmd: str) -> CommandResult:
        line = self.session.request(encode_session_line(cmd), timeout=self.response_timeout)
        return SessionResponse.parse(line).to_result()

    def close(self) -> None:
        self.session.close()


__all__ = [
    "PipeChannel",
    "PipeSession",
    "SERVER_SCRIPT",
    "ServerProcess",
    "SessionAcquisition",
    "SessionResponse",
    "SessionRunner",
    "acquire_session",
    "build_server_command",
    "launch_pipe_server",
    "new_pipe_name",
    "pipe_path",
    "terminate_server",
]
