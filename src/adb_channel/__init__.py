"""
ADB Channel - Package Initialization
Exposes the command channel, staged transfers and logcat batching.
"""

from .core.adb_command import ADBCommandRunner, CommandSpec, ExecutionResult, ProcessHandle
from .core.adb_manager import ADBManager
from .core.config import ChannelConfig
from .core.exceptions import (
    ADBChannelError,
    CommandFailedError,
    ExecutableMissingError,
    InvalidScopeError,
    LogcatError,
    SourceNotFoundError,
)
from .core.file_transfer import ADBFileSystem, StagingTicket
from .core.listing import FileEntry, FileType, parse_listing
from .core.logcat import ADBLogcat, LogcatLevel, LogStreamBatcher, StreamState
from .core.path_resolver import PrivatePath, PublicPath, resolve_owner, resolve_path
from .core.platform_tools import get_adb_binary_path, is_adb_available
from .utils.security_utils import shell_quote

__all__ = [
    "ADBChannelError",
    "ADBCommandRunner",
    "ADBFileSystem",
    "ADBLogcat",
    "ADBManager",
    "ChannelConfig",
    "CommandFailedError",
    "CommandSpec",
    "ExecutableMissingError",
    "ExecutionResult",
    "FileEntry",
    "FileType",
    "InvalidScopeError",
    "LogStreamBatcher",
    "LogcatError",
    "LogcatLevel",
    "PrivatePath",
    "ProcessHandle",
    "PublicPath",
    "SourceNotFoundError",
    "StagingTicket",
    "StreamState",
    "get_adb_binary_path",
    "is_adb_available",
    "parse_listing",
    "resolve_owner",
    "resolve_path",
    "shell_quote",
]
