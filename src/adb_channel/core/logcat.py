"""
Logcat streaming and buffer maintenance.

A logcat process runs until it is cancelled or the device goes away. Its
lines are coalesced into batches emitted on a fixed interval, so consumers
get a handful of lists per second instead of one event per line.
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, List, Optional

from .adb_command import ADBCommandRunner, CommandSpec, ProcessHandle
from .config import ChannelConfig
from .exceptions import InvalidScopeError, LogcatError
from ..utils.security_utils import validate_device_id

LogBatch = List[str]


class LogcatLevel(Enum):
    """Minimum priority passed to logcat as ``*:<letter>``."""

    VERBOSE = "V"
    DEBUG = "D"
    INFO = "I"
    WARNING = "W"
    ERROR = "E"
    FATAL = "F"


class StreamState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DRAINING = "draining"
    CLOSED = "closed"


class _EndOfStream:
    def __init__(self, error: Optional[BaseException] = None):
        self.error = error


class LogStreamBatcher:
    """Batches the stdout lines of a long-lived process.

    The first line that lands in an empty buffer starts a periodic flush
    timer if none is running. Each tick emits the buffer as one batch. When
    the process ends, or cancel() is called, the timer is stopped, whatever
    is left in the buffer is emitted as the last batch and the stream closes.
    """

    def __init__(self, runner: ADBCommandRunner, spec: CommandSpec,
                 flush_interval: float = 0.25,
                 logger: Optional[logging.Logger] = None):
        self.runner = runner
        self.spec = spec
        self.flush_interval = flush_interval
        self.logger = logger or logging.getLogger(__name__)
        self.state = StreamState.IDLE
        self.exit_code: Optional[int] = None

        self._handle: Optional[ProcessHandle] = None
        self._buffer: List[str] = []
        self._queue: "asyncio.Queue" = asyncio.Queue()
        self._timer: Optional[asyncio.Task] = None
        self._reader: Optional[asyncio.Task] = None
        self._cancel_requested = False

    async def start(self) -> None:
        """Spawn the process and begin reading its output."""
        if self.state is not StreamState.IDLE:
            raise RuntimeError(f"Stream already started (state={self.state.value})")
        if not self.spec.device_id:
            self.logger.error("Device id is empty, logcat listener aborted")
            raise InvalidScopeError("Device id is empty")
        self._handle = await self.runner.start(self.spec)
        self.state = StreamState.STREAMING
        self._reader = asyncio.ensure_future(self._pump())

    async def batches(self) -> AsyncIterator[LogBatch]:
        """Yield batches until the stream closes.

        Raises LogcatError after the last batch if the process exited with a
        non-zero status without being cancelled.
        """
        if self.state is StreamState.IDLE:
            await self.start()
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, _EndOfStream):
                    if item.error is not None:
                        raise item.error
                    return
                yield item
        finally:
            if self.state is not StreamState.CLOSED:
                await self.cancel()

    def __aiter__(self) -> AsyncIterator[LogBatch]:
        return self.batches()

    async def cancel(self) -> None:
        """Stop the process; buffered lines are still delivered."""
        if self.state is StreamState.CLOSED:
            return
        if self.state is StreamState.IDLE:
            self.state = StreamState.CLOSED
            self._queue.put_nowait(_EndOfStream())
            return
        self._cancel_requested = True
        await self._handle.cancel()
        if self._reader is not None:
            await self._reader

    def _on_line(self, line: str) -> None:
        self._buffer.append(line)
        if self._timer is None:
            self._timer = asyncio.ensure_future(self._tick())

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            self._flush()

    def _flush(self) -> None:
        if self.state is StreamState.CLOSED or not self._buffer:
            return
        self._queue.put_nowait(list(self._buffer))
        self._buffer.clear()

    def _drain(self, error: Optional[BaseException] = None) -> None:
        if self.state is StreamState.CLOSED:
            return
        self.state = StreamState.DRAINING
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._flush()
        self.state = StreamState.CLOSED
        self._queue.put_nowait(_EndOfStream(error))

    async def _pump(self) -> None:
        error: Optional[BaseException] = None
        try:
            async for line in self._handle.iter_lines():
                self._on_line(line)
            self.exit_code = await self._handle.wait()
            if self.exit_code != 0 and not self._cancel_requested:
                stderr = await self._handle.read_stderr()
                self.logger.error("logcat exited with %d: %s", self.exit_code, stderr.strip())
                error = LogcatError(
                    "logcat stream ended unexpectedly",
                    exit_code=self.exit_code,
                    stderr=stderr.strip(),
                    device_id=self.spec.device_id,
                    step="stream",
                )
        except Exception as e:
            self.logger.error("Error while reading logcat output: %s", e)
            error = e
            await self._handle.cancel()
        finally:
            self._drain(error)


class ADBLogcat:
    """Logcat streaming and buffer maintenance for a device."""

    def __init__(self, runner: Optional[ADBCommandRunner] = None,
                 config: Optional[ChannelConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or ChannelConfig()
        self.runner = runner or ADBCommandRunner(
            adb_path=self.config.adb_path, timeout=self.config.command_timeout
        )
        self.logger = logger or logging.getLogger(__name__)

    def _require_device(self, device_id: str) -> str:
        if not device_id:
            self.logger.error("Device id is empty, logcat listener aborted")
            raise InvalidScopeError("Device id is empty", device_id=device_id or None)
        try:
            return validate_device_id(device_id)
        except ValueError as e:
            raise InvalidScopeError(str(e), device_id=device_id) from e

    def build_spec(self, device_id: str, level: Optional[LogcatLevel] = None,
                   process_id: Optional[int] = None) -> CommandSpec:
        args = ["logcat"]
        if level is not None:
            args.append(f"*:{level.value}")
        if process_id is not None:
            args += ["--pid", str(int(process_id))]
        return CommandSpec(tuple(args), device_id=self._require_device(device_id))

    def stream(self, device_id: str, level: Optional[LogcatLevel] = None,
               process_id: Optional[int] = None) -> LogStreamBatcher:
        """Create an unstarted batcher for a device's logcat.

        Raises InvalidScopeError immediately for an empty or malformed device id.
        """
        spec = self.build_spec(device_id, level, process_id)
        return LogStreamBatcher(self.runner, spec, self.config.flush_interval, self.logger)

    async def listen(self, device_id: str, level: Optional[LogcatLevel] = None,
                     process_id: Optional[int] = None) -> AsyncIterator[LogBatch]:
        """Yield batches of logcat lines until the process ends."""
        batcher = self.stream(device_id, level, process_id)
        async for batch in batcher.batches():
            yield batch

    async def clear(self, device_id: str) -> None:
        """Clear the logcat buffer on the device."""
        device_id = self._require_device(device_id)
        self.logger.debug("Clearing logcat")
        result = await self.runner.run(CommandSpec(("logcat", "-c"), device_id=device_id))
        if not result.ok:
            self.logger.error("Error while clearing logcat: %s", result.stderr.strip())
            raise LogcatError(
                "Failed to clear logcat",
                exit_code=result.exit_code,
                stderr=result.stderr.strip(),
                device_id=device_id,
                step="clear",
            )
        self.logger.info("Logcat cleared successfully")
