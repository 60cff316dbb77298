"""
Exception types for device command channel operations.
Every failure raised by the channel carries enough context to retry or report.
"""

from typing import Optional


class ADBChannelError(Exception):
    """Base class for all channel errors."""

    def __init__(self, message: str, device_id: Optional[str] = None,
                 path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.device_id = device_id
        self.path = path

    def __str__(self) -> str:
        details = []
        if self.device_id:
            details.append(f"device={self.device_id}")
        if self.path:
            details.append(f"path={self.path}")
        if details:
            return f"{self.message} ({', '.join(details)})"
        return self.message


class ExecutableMissingError(ADBChannelError):
    """The adb executable could not be started at all."""

    def __init__(self, executable: str, reason: str = ""):
        message = f"Unable to start adb executable: {executable}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.executable = executable


class CommandFailedError(ADBChannelError):
    """A one-shot command exited with a non-zero status."""

    def __init__(self, message: str, exit_code: int, stderr: str = "",
                 device_id: Optional[str] = None, path: Optional[str] = None,
                 step: Optional[str] = None):
        super().__init__(message, device_id=device_id, path=path)
        self.exit_code = exit_code
        self.stderr = stderr
        self.step = step

    def __str__(self) -> str:
        text = super().__str__()
        if self.step:
            text = f"[{self.step}] {text}"
        text += f" [exit {self.exit_code}]"
        if self.stderr:
            text += f": {self.stderr}"
        return text


class InvalidScopeError(ADBChannelError):
    """The device scope is empty or malformed."""


class SourceNotFoundError(ADBChannelError):
    """The local source of a transfer does not exist."""


class LogcatError(CommandFailedError):
    """A logcat maintenance command failed."""
