"""
ADB command construction and execution.
Builds argument vectors for the adb executable and runs them either to
completion or as live processes whose output is consumed incrementally.
"""

import asyncio
import logging
import shlex
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from .config import DEFAULT_COMMAND_TIMEOUT
from .exceptions import CommandFailedError, ExecutableMissingError, InvalidScopeError
from .platform_tools import get_adb_binary_path

from ..utils.security_utils import validate_device_id, validate_package_name

logger = logging.getLogger(__name__)

# StreamReader line limit; logcat lines and listings can be long
STREAM_LIMIT = 1024 * 1024


@dataclass(frozen=True)
class CommandSpec:
    """An immutable adb invocation.

    ``args`` is the command placed after the device scope. When ``run_as`` is
    set, ``args`` is the inner device-shell command and the whole vector is
    wrapped as ``shell run-as <run_as> <args...>`` (``exec-out`` instead of
    ``shell`` when ``binary_output`` is set, so stdout is passed through
    without pty translation). Inner path arguments must already be quoted
    with shell_quote().
    """

    args: Tuple[str, ...]
    device_id: Optional[str] = None
    run_as: Optional[str] = None
    binary_output: bool = False

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))
        if not self.args:
            raise ValueError("Command argument vector cannot be empty")
        if self.device_id is not None:
            try:
                validate_device_id(self.device_id)
            except ValueError as e:
                raise InvalidScopeError(str(e), device_id=self.device_id) from e
        if self.run_as is not None:
            validate_package_name(self.run_as)

    @classmethod
    def shell(cls, device_id: Optional[str], *inner: str,
              run_as: Optional[str] = None) -> "CommandSpec":
        """Build a device shell command, elevated with run-as when an owner is given."""
        if run_as:
            return cls(args=inner, device_id=device_id, run_as=run_as)
        return cls(args=("shell",) + tuple(inner), device_id=device_id)

    @property
    def is_elevated(self) -> bool:
        return self.run_as is not None

    def to_argv(self) -> List[str]:
        """Return the argument vector passed to the adb executable."""
        argv: List[str] = []
        if self.device_id:
            argv += ["-s", self.device_id]
        if self.run_as:
            argv += ["exec-out" if self.binary_output else "shell", "run-as", self.run_as]
        argv += list(self.args)
        return argv


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a command run to completion."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def check(self, message: str, device_id: Optional[str] = None,
              path: Optional[str] = None, step: Optional[str] = None) -> "ExecutionResult":
        """Return self when the command succeeded, raise CommandFailedError otherwise."""
        if not self.ok:
            raise CommandFailedError(
                message,
                exit_code=self.exit_code,
                stderr=self.stderr.strip(),
                device_id=device_id,
                path=path,
                step=step,
            )
        return self


class ProcessHandle:
    """A live adb process with incrementally readable stdout.

    Stderr is drained in the background so a chatty process never blocks on
    a full pipe; its text is available from read_stderr() after exit.
    """

    def __init__(self, process: asyncio.subprocess.Process, argv: Sequence[str]):
        self._process = process
        self.argv = list(argv)
        self._stderr_task: Optional[asyncio.Task] = None
        if process.stderr is not None:
            self._stderr_task = asyncio.ensure_future(process.stderr.read())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    @property
    def is_running(self) -> bool:
        return self._process.returncode is None

    async def iter_lines(self) -> AsyncIterator[str]:
        """Yield decoded stdout lines without their line terminators."""
        stdout = self._process.stdout
        if stdout is None:
            return
        while True:
            raw = await stdout.readline()
            if not raw:
                break
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def iter_chunks(self, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
        """Yield raw stdout bytes as they arrive."""
        stdout = self._process.stdout
        if stdout is None:
            return
        while True:
            chunk = await stdout.read(chunk_size)
            if not chunk:
                break
            yield chunk

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit status."""
        return await self._process.wait()

    async def read_stderr(self) -> str:
        """Return everything the process wrote to stderr."""
        if self._stderr_task is None:
            return ""
        data = await self._stderr_task
        return data.decode("utf-8", errors="replace")

    async def cancel(self, grace_period: float = 2.0) -> bool:
        """Terminate the process.

        Returns True if a running process was terminated, False if it had
        already finished.
        """
        if self._process.returncode is not None:
            return False
        try:
            self._process.terminate()
        except ProcessLookupError:
            return False
        try:
            await asyncio.wait_for(self._process.wait(), timeout=grace_period)
        except asyncio.TimeoutError:
            # Force kill if it doesn't terminate gracefully
            logger.warning("Process %s ignored terminate, killing it", self.pid)
            self._process.kill()
            await self._process.wait()
        return True


class ADBCommandRunner:
    """Runs adb commands described by CommandSpec."""

    def __init__(self, adb_path: Optional[str] = None,
                 timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self._adb_path = adb_path
        self.timeout = timeout

    @property
    def adb_path(self) -> str:
        if self._adb_path is None:
            self._adb_path = get_adb_binary_path()
        return self._adb_path

    @adb_path.setter
    def adb_path(self, value: Optional[str]) -> None:
        self._adb_path = value

    def build_command(self, spec: CommandSpec) -> List[str]:
        """Return the full command line for a spec, executable first."""
        return [self.adb_path] + spec.to_argv()

    async def _spawn(self, cmd: List[str]) -> asyncio.subprocess.Process:
        logger.debug("Running: %s", shlex.join(cmd))
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            logger.error("Failed to start adb process: %s", e)
            raise ExecutableMissingError(cmd[0], str(e)) from e

    async def run(self, spec: CommandSpec, timeout: Optional[float] = None) -> ExecutionResult:
        """Run a command to completion.

        A non-zero exit status is returned as data. A command that outlives
        the timeout is killed and reported with exit code -1.
        """
        cmd = self.build_command(spec)
        proc = await self._spawn(cmd)
        limit = self.timeout if timeout is None else timeout
        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning("adb command timed out after %ss: %s", limit, shlex.join(cmd))
            proc.kill()
            await proc.wait()
            return ExecutionResult(-1, "", f"Command timed out after {limit}s")

        result = ExecutionResult(
            exit_code=proc.returncode,
            stdout=out.decode("utf-8", errors="replace"),
            stderr=err.decode("utf-8", errors="replace"),
        )
        if not result.ok:
            logger.debug("adb exited with %d: %s", result.exit_code, result.stderr.strip())
        return result

    async def start(self, spec: CommandSpec) -> ProcessHandle:
        """Start a long-lived command and return its live handle."""
        cmd = self.build_command(spec)
        proc = await self._spawn(cmd)
        return ProcessHandle(proc, cmd)
