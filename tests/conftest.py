"""Pytest configuration and fixtures."""

import asyncio
import os
import posixpath
import shlex
import sys

import pytest

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from adb_channel.core.adb_command import ExecutionResult  # noqa: E402

_EOF = object()


class FakeLineProcess:
    """Stand-in for ProcessHandle whose stdout lines are fed by the test."""

    def __init__(self, stderr: str = ""):
        self._lines = asyncio.Queue()
        self._done = asyncio.Event()
        self._exit_code = 0
        self._finished = False
        self.returncode = None
        self.stderr = stderr
        self.cancelled = False

    def feed(self, *lines):
        for line in lines:
            self._lines.put_nowait(line)

    def finish(self, exit_code: int = 0):
        if self._finished:
            return
        self._finished = True
        self._exit_code = exit_code
        self._lines.put_nowait(_EOF)

    async def iter_lines(self):
        while True:
            item = await self._lines.get()
            if item is _EOF:
                self.returncode = self._exit_code
                self._done.set()
                return
            yield item

    async def wait(self):
        await self._done.wait()
        return self.returncode

    async def read_stderr(self):
        return self.stderr

    async def cancel(self, grace_period: float = 2.0):
        if self._finished:
            return False
        self.cancelled = True
        self.finish(-15)
        return True


class FakeChunkProcess:
    """Stand-in for ProcessHandle streaming fixed bytes."""

    def __init__(self, data: bytes, exit_code: int = 0, stderr: str = ""):
        self.data = data
        self.returncode = None
        self._exit_code = exit_code
        self.stderr = stderr
        self.cancelled = False

    async def iter_chunks(self, chunk_size: int = 64 * 1024):
        # Split in two to exercise incremental writes
        middle = len(self.data) // 2
        for chunk in (self.data[:middle], self.data[middle:]):
            if chunk:
                yield chunk

    async def wait(self):
        self.returncode = self._exit_code
        return self.returncode

    async def read_stderr(self):
        return self.stderr

    async def cancel(self, grace_period: float = 2.0):
        self.cancelled = True
        return True


class FakeDevice:
    """In-memory device answering the adb commands built by the channel.

    Shell commands are re-split with shlex the way the device shell would,
    so badly quoted arguments show up as wrong paths. Writes below
    /data/data/ are refused unless the command runs as the owning package.
    """

    PRIVATE_ROOT = "/data/data/"

    def __init__(self, device_id: str = "emulator-5554"):
        self.device_id = device_id
        self.files = {}
        self.dirs = {"/", "/sdcard", "/data", "/data/data"}
        self.commands = []
        self.failing = {}

    # --- setup helpers ---

    def add_package(self, package: str):
        self.dirs.add(self.PRIVATE_ROOT + package)

    def fail(self, command: str, stderr: str = "failed", exit_code: int = 1):
        self.failing[command] = (exit_code, stderr)

    # --- path helpers ---

    def _abs(self, path: str, package):
        if package and not path.startswith("/"):
            base = self.PRIVATE_ROOT + package
            return posixpath.normpath(posixpath.join(base, path))
        return posixpath.normpath(path)

    def _writable(self, path: str, package) -> bool:
        if not path.startswith(self.PRIVATE_ROOT):
            return True
        return package is not None and path.startswith(self.PRIVATE_ROOT + package)

    def _result(self, code=0, out="", err=""):
        return ExecutionResult(code, out, err)

    # --- command dispatch ---

    def _split(self, spec):
        argv = spec.to_argv()
        assert argv[:2] == ["-s", self.device_id], argv
        return argv[2:]

    async def run(self, spec, timeout=None):
        argv = self._split(spec)
        self.commands.append(argv)
        verb = argv[0]
        if verb == "push":
            return self._push(argv[1], argv[2])
        if verb == "pull":
            return self._pull(argv[1], argv[2])
        if verb == "logcat":
            return self._failure("logcat") or self._result()
        if verb in ("shell", "exec-out"):
            words = shlex.split(" ".join(argv[1:]))
            package = None
            if words[0] == "run-as":
                package, words = words[1], words[2:]
            return self._shell(words, package)
        raise AssertionError(f"unexpected command {argv}")

    async def start(self, spec):
        argv = self._split(spec)
        self.commands.append(argv)
        words = shlex.split(" ".join(argv[1:]))
        package = None
        if words[0] == "run-as":
            package, words = words[1], words[2:]
        assert words[0] == "cat", words
        if "cat" in self.failing:
            code, err = self.failing["cat"]
            return FakeChunkProcess(b"partial", code, err)
        path = self._abs(words[1], package)
        if path not in self.files:
            return FakeChunkProcess(b"", 1, f"cat: {path}: No such file or directory")
        return FakeChunkProcess(self.files[path])

    def _failure(self, command):
        if command in self.failing:
            code, err = self.failing[command]
            return self._result(code, "", err)
        return None

    def _push(self, local, remote):
        failure = self._failure("push")
        if failure:
            return failure
        remote = posixpath.normpath(remote)
        if not self._writable(remote, None):
            return self._result(1, "", f"adb: error: failed to copy to '{remote}': Permission denied")
        with open(local, "rb") as fh:
            self.files[remote] = fh.read()
        return self._result(0, f"{local}: 1 file pushed.")

    def _pull(self, remote, local):
        failure = self._failure("pull")
        if failure:
            return failure
        remote = posixpath.normpath(remote)
        if remote not in self.files:
            return self._result(1, "", f"adb: error: remote object '{remote}' does not exist")
        with open(local, "wb") as fh:
            fh.write(self.files[remote])
        return self._result(0, f"{remote}: 1 file pulled.")

    def _shell(self, words, package):
        command = words[0]
        failure = self._failure(command)
        if failure:
            return failure
        if command == "rm":
            path = self._abs(words[-1], package)
            self.files.pop(path, None)
            for name in [f for f in self.files if f.startswith(path + "/")]:
                del self.files[name]
            self.dirs.discard(path)
            return self._result()
        if command == "mkdir":
            path = self._abs(words[-1], package)
            if not self._writable(path, package):
                return self._result(1, "", f"mkdir: '{path}': Permission denied")
            while path not in self.dirs:
                self.dirs.add(path)
                path = posixpath.dirname(path)
            return self._result()
        if command == "cp":
            src = self._abs(words[1], package)
            dst = self._abs(words[2], package)
            if src not in self.files:
                return self._result(1, "", f"cp: {src}: No such file or directory")
            if not self._writable(dst, package):
                return self._result(1, "", f"cp: {dst}: Permission denied")
            if dst in self.dirs:
                dst = posixpath.join(dst, posixpath.basename(src))
            self.files[dst] = self.files[src]
            return self._result()
        if command == "test":
            path = self._abs(words[-1], package)
            return self._result(0 if words[1] == "-d" and path in self.dirs else 1)
        if command == "ls":
            path = self._abs(words[-1], package)
            lines = ["total 0"]
            for name in sorted(self.dirs):
                if posixpath.dirname(name) == path and name != path:
                    lines.append(f"drwxr-xr-x 2 root root 4096 2024-01-01 00:00 {posixpath.basename(name)}")
            for name, data in sorted(self.files.items()):
                if posixpath.dirname(name) == path:
                    lines.append(f"-rw-r--r-- 1 root root {len(data)} 2024-01-01 00:00 {posixpath.basename(name)}")
            return self._result(0, "\n".join(lines) + "\n")
        raise AssertionError(f"unexpected shell command {words}")


@pytest.fixture
def fake_device():
    """An in-memory device with one installed package."""
    device = FakeDevice()
    device.add_package("com.example.app")
    return device


@pytest.fixture
def fake_line_process():
    """Factory for processes with test-fed stdout lines."""
    return FakeLineProcess


@pytest.fixture
def fake_chunk_process():
    """Factory for processes streaming fixed bytes."""
    return FakeChunkProcess


@pytest.fixture
def temp_directory():
    """Create a temporary directory for testing."""
    import tempfile
    import shutil

    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def temp_file(temp_directory):
    """Create a temporary file with known content for testing."""
    path = os.path.join(temp_directory, "payload.bin")
    with open(path, "wb") as fh:
        fh.write(b"\x00\x01payload bytes\xff")
    return path
