"""Process execution capability for validators.

Validators never spawn child processes directly. They receive a
``ProcessRunner`` and go through it, so a production run and a test run differ
only in which runner instance is passed in:

- ``SubprocessRunner`` spawns real OS processes with asyncio.
- ``ScriptedProcessRunner`` returns canned output and records every request.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Protocol, Union

from spx.logging_config import get_logger

logger = get_logger(__name__)

ExitKind = Literal["exited", "signaled", "spawn_failed", "timed_out"]


@dataclass(frozen=True)
class ExitStatus:
    """How a child process ended.

    Attributes:
        kind: "exited" (normal exit with ``code``), "signaled" (terminated by
            ``signal``), "spawn_failed" (never started, see ``reason``) or
            "timed_out" (killed after ``timeout`` seconds).
        code: Exit code for "exited".
        signal: Signal number for "signaled".
        reason: Spawn error message for "spawn_failed".
        timeout: Limit that was exceeded for "timed_out".
    """

    kind: ExitKind
    code: int | None = None
    signal: int | None = None
    reason: str | None = None
    timeout: float | None = None

    @classmethod
    def exited(cls, code: int) -> ExitStatus:
        return cls(kind="exited", code=code)

    @classmethod
    def signaled(cls, signal: int) -> ExitStatus:
        return cls(kind="signaled", signal=signal)

    @classmethod
    def spawn_failed(cls, reason: str) -> ExitStatus:
        return cls(kind="spawn_failed", reason=reason)

    @classmethod
    def timed_out(cls, timeout: float) -> ExitStatus:
        return cls(kind="timed_out", timeout=timeout)

    @property
    def ok(self) -> bool:
        """True for a normal exit with code 0."""
        return self.kind == "exited" and self.code == 0

    def describe(self) -> str:
        if self.kind == "exited":
            return f"exit code {self.code}"
        if self.kind == "signaled":
            return f"signal {self.signal}"
        if self.kind == "timed_out":
            return f"timeout after {self.timeout:g}s"
        return f"spawn failure ({self.reason})"


@dataclass(frozen=True)
class SpawnOptions:
    """Options for spawning a child process.

    Attributes:
        cwd: Working directory of the child.
        timeout: Seconds before the child is killed. None means no limit.
        env: Complete environment for the child. None inherits ours.
    """

    cwd: Path
    timeout: float | None = None
    env: Mapping[str, str] | None = None


@dataclass(frozen=True)
class ProcessResult:
    """Captured output and exit status of a finished process."""

    stdout: str
    stderr: str
    status: ExitStatus


class ProcessHandle(Protocol):
    """A spawned process whose result becomes available once it exits."""

    async def wait(self) -> ProcessResult:
        """Wait for the process to finish and return its captured result."""
        ...


class ProcessRunner(Protocol):
    """Capability to spawn commands."""

    async def spawn(
        self,
        command: str,
        args: Sequence[str],
        options: SpawnOptions,
    ) -> ProcessHandle:
        """Spawn ``command`` with ``args``.

        Implementations must not raise for a missing binary; the returned
        handle reports it as ``ExitStatus.spawn_failed``.
        """
        ...


async def run_process(
    runner: ProcessRunner,
    command: str,
    args: Sequence[str],
    options: SpawnOptions,
) -> ProcessResult:
    """Spawn a command through ``runner`` and wait for its result."""
    handle = await runner.spawn(command, args, options)
    return await handle.wait()


# -----------------------------------------------------------------------------
# Real OS processes
# -----------------------------------------------------------------------------


def resolve_executable(command: str) -> str:
    """Resolve a command name to an executable path.

    Looks on PATH first, then next to the running interpreter so tools
    installed into an inactive virtualenv are still found. Returns the command
    unchanged when it cannot be resolved; spawning then fails and is reported
    as a missing tool.
    """
    if os.sep in command or (os.altsep and os.altsep in command):
        return command

    found = shutil.which(command)
    if found:
        return found

    scripts_dir = Path(sys.executable).parent
    found = shutil.which(command, path=str(scripts_dir))
    return found or command


class _FinishedHandle:
    """Handle for a process that has already produced its result."""

    def __init__(self, result: ProcessResult) -> None:
        self._result = result

    async def wait(self) -> ProcessResult:
        return self._result


class _SubprocessHandle:
    """Handle wrapping an ``asyncio.subprocess.Process``."""

    def __init__(self, process: asyncio.subprocess.Process, timeout: float | None) -> None:
        self._process = process
        self._timeout = timeout

    async def wait(self) -> ProcessResult:
        try:
            stdout, stderr = await asyncio.wait_for(
                self._process.communicate(),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            await self._kill()
            assert self._timeout is not None
            return ProcessResult(stdout="", stderr="", status=ExitStatus.timed_out(self._timeout))
        except asyncio.CancelledError:
            await self._kill()
            raise

        returncode = self._process.returncode
        if returncode is None:
            status = ExitStatus.spawn_failed("process produced no exit status")
        elif returncode < 0:
            status = ExitStatus.signaled(-returncode)
        else:
            status = ExitStatus.exited(returncode)

        return ProcessResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            status=status,
        )

    async def _kill(self) -> None:
        if self._process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._process.kill()
        await self._process.wait()


class SubprocessRunner:
    """Process runner backed by real OS processes."""

    async def spawn(
        self,
        command: str,
        args: Sequence[str],
        options: SpawnOptions,
    ) -> ProcessHandle:
        executable = resolve_executable(command)
        logger.debug("Spawning %s %s (cwd=%s)", executable, " ".join(args), options.cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(options.cwd),
                env=dict(options.env) if options.env is not None else None,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            logger.debug("Could not spawn %s: %s", command, e)
            return _FinishedHandle(
                ProcessResult(stdout="", stderr="", status=ExitStatus.spawn_failed(str(e)))
            )

        return _SubprocessHandle(process, options.timeout)


# -----------------------------------------------------------------------------
# Scripted processes (tests)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SpawnRequest:
    """A spawn call recorded by ``ScriptedProcessRunner``."""

    command: str
    args: tuple[str, ...]
    options: SpawnOptions


@dataclass(frozen=True)
class ScriptedResponse:
    """Canned output for one scripted command."""

    stdout: str = ""
    stderr: str = ""
    status: ExitStatus = field(default_factory=lambda: ExitStatus.exited(0))

    @classmethod
    def exit(cls, code: int, stdout: str = "", stderr: str = "") -> ScriptedResponse:
        return cls(stdout=stdout, stderr=stderr, status=ExitStatus.exited(code))

    def to_result(self) -> ProcessResult:
        return ProcessResult(stdout=self.stdout, stderr=self.stderr, status=self.status)


ScriptEntry = Union[ScriptedResponse, Callable[[SpawnRequest], ScriptedResponse]]


class ScriptedProcessRunner:
    """Process runner returning canned responses without spawning anything.

    Responses are keyed by command name. A response may be a callable that
    receives the ``SpawnRequest``, which lets a test inspect the filesystem at
    the moment the "process" runs or raise to simulate a crash. Commands with
    no script behave like a missing binary.

    Attributes:
        calls: Every spawn request, in call order.
    """

    def __init__(self, responses: Mapping[str, ScriptEntry] | None = None) -> None:
        self._responses: dict[str, ScriptEntry] = dict(responses or {})
        self.calls: list[SpawnRequest] = []

    def script(self, command: str, response: ScriptEntry) -> None:
        """Set the response for ``command``."""
        self._responses[command] = response

    def calls_for(self, command: str) -> list[SpawnRequest]:
        return [call for call in self.calls if call.command == command]

    async def spawn(
        self,
        command: str,
        args: Sequence[str],
        options: SpawnOptions,
    ) -> ProcessHandle:
        request = SpawnRequest(command=command, args=tuple(args), options=options)
        self.calls.append(request)

        entry = self._responses.get(command)
        if entry is None:
            status = ExitStatus.spawn_failed(f"[Errno 2] No such file or directory: '{command}'")
            return _FinishedHandle(ProcessResult(stdout="", stderr="", status=status))

        response = entry(request) if callable(entry) else entry
        return _FinishedHandle(response.to_result())
