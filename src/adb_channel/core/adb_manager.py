"""
ADB Channel - Manager Module
Main interface bundling command execution, file transfers and logcat
streaming for a selected device.
"""

import logging
import os
from typing import AsyncIterator, List, Optional

from .adb_command import ADBCommandRunner, CommandSpec, ExecutionResult, ProcessHandle
from .config import ChannelConfig
from .exceptions import InvalidScopeError
from .file_transfer import ADBFileSystem
from .listing import FileEntry
from .logcat import ADBLogcat, LogBatch, LogcatLevel, LogStreamBatcher
from .platform_tools import ensure_platform_tools_in_user_dir, is_adb_available

logger = logging.getLogger(__name__)


class ADBManager:
    """Main interface for device operations.

    Every operation takes an optional device id; when omitted the device
    chosen with select_device() is used.
    """

    def __init__(self, config: Optional[ChannelConfig] = None):
        """Initialize the ADB manager."""
        self.config = config or ChannelConfig()
        self.command_runner = ADBCommandRunner(
            adb_path=self.config.adb_path, timeout=self.config.command_timeout
        )
        self.file_system = ADBFileSystem(self.command_runner, self.config)
        self.logcat = ADBLogcat(self.command_runner, self.config)
        self.selected_device: Optional[str] = None

    @property
    def adb_path(self) -> str:
        return self.command_runner.adb_path

    def is_available(self) -> bool:
        """Check if ADB is available."""
        return is_adb_available(self.config.adb_path)

    def ensure_adb_installed(self) -> bool:
        """Ensure ADB is installed, downloading platform-tools if needed."""
        if self.is_available():
            return True
        try:
            adb_path = ensure_platform_tools_in_user_dir()
        except Exception as e:
            logger.error("Error ensuring ADB installation: %s", e)
            return False
        if adb_path and os.path.exists(adb_path):
            self.command_runner.adb_path = adb_path
            return True
        return False

    def select_device(self, device_id: str) -> None:
        """Select a specific device for operations."""
        self.selected_device = device_id

    def get_selected_device(self) -> Optional[str]:
        """Get the currently selected device."""
        return self.selected_device

    def _device(self, device_id: Optional[str]) -> str:
        target = device_id or self.selected_device
        if not target:
            raise InvalidScopeError("No device selected")
        return target

    # --- raw commands ---

    async def run(self, *args: str, device_id: Optional[str] = None,
                  run_as: Optional[str] = None) -> ExecutionResult:
        """Run an adb command against a device and return its result."""
        spec = CommandSpec(args, device_id=self._device(device_id), run_as=run_as)
        return await self.command_runner.run(spec)

    async def start(self, *args: str, device_id: Optional[str] = None,
                    run_as: Optional[str] = None) -> ProcessHandle:
        """Start a long-running adb command against a device."""
        spec = CommandSpec(args, device_id=self._device(device_id), run_as=run_as)
        return await self.command_runner.start(spec)

    # --- file system ---

    async def list_files(self, path: str, device_id: Optional[str] = None,
                         owner: Optional[str] = None) -> List[FileEntry]:
        """List files in the specified path on the device."""
        return await self.file_system.list_files(path, self._device(device_id), owner)

    async def delete_path(self, path: str, device_id: Optional[str] = None,
                          owner: Optional[str] = None) -> None:
        """Delete a file or folder on the device."""
        await self.file_system.delete_path(path, self._device(device_id), owner)

    async def create_folder(self, parent: str, name: str, device_id: Optional[str] = None,
                            owner: Optional[str] = None) -> str:
        """Create a folder on the device."""
        return await self.file_system.create_directory(parent, name, self._device(device_id), owner)

    async def push_file(self, local_path: str, remote_path: str,
                        device_id: Optional[str] = None, owner: Optional[str] = None) -> str:
        """Push a file from local system to device."""
        return await self.file_system.upload_file(local_path, remote_path, self._device(device_id), owner)

    async def pull_file(self, remote_path: str, local_path: str,
                        device_id: Optional[str] = None, owner: Optional[str] = None) -> str:
        """Pull a file from device to local system."""
        return await self.file_system.download_file(remote_path, local_path, self._device(device_id), owner)

    # --- logcat ---

    def logcat_stream(self, device_id: Optional[str] = None, level: Optional[LogcatLevel] = None,
                      process_id: Optional[int] = None) -> LogStreamBatcher:
        """Create an unstarted logcat batcher for the device."""
        return self.logcat.stream(self._device(device_id), level, process_id)

    async def listen_logcat(self, device_id: Optional[str] = None,
                            level: Optional[LogcatLevel] = None,
                            process_id: Optional[int] = None) -> AsyncIterator[LogBatch]:
        """Yield batches of logcat lines from the device."""
        async for batch in self.logcat.listen(self._device(device_id), level, process_id):
            yield batch

    async def clear_logcat(self, device_id: Optional[str] = None) -> None:
        """Clear the device's logcat buffer."""
        await self.logcat.clear(self._device(device_id))
