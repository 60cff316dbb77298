"""
File system operations and transfers for ADB.
Handles listing, directory management and file transfers, routing anything
that targets application-private storage through run-as and, for uploads,
through a staging copy in world-writable storage.
"""

import logging
import os
import posixpath
import uuid
from dataclasses import dataclass
from typing import List, Optional

from .adb_command import ADBCommandRunner, CommandSpec
from .config import ChannelConfig
from .exceptions import ADBChannelError, CommandFailedError, InvalidScopeError, SourceNotFoundError
from .listing import FileEntry, parse_listing
from .path_resolver import PathResolution, PrivatePath, PublicPath, resolve_owner
from ..utils.security_utils import (
    sanitize_android_path,
    sanitize_local_path,
    shell_quote,
    validate_device_id,
)


@dataclass(frozen=True)
class StagingTicket:
    """A temporary device-side copy created during a single upload."""

    device_id: str
    path: str
    file_name: str


class ADBFileSystem:
    """File operations on a device, including application-private storage."""

    def __init__(self, runner: Optional[ADBCommandRunner] = None,
                 config: Optional[ChannelConfig] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config or ChannelConfig()
        self.runner = runner or ADBCommandRunner(
            adb_path=self.config.adb_path, timeout=self.config.command_timeout
        )
        self.logger = logger or logging.getLogger(__name__)

    # --- helpers ---

    def _require_device(self, device_id: str) -> str:
        try:
            return validate_device_id(device_id)
        except ValueError as e:
            raise InvalidScopeError(str(e), device_id=device_id or None) from e

    def _shell(self, device_id: str, resolution: PathResolution, *inner: str) -> CommandSpec:
        if isinstance(resolution, PrivatePath):
            return CommandSpec.shell(device_id, *inner, run_as=resolution.application_id)
        return CommandSpec.shell(device_id, *inner)

    @staticmethod
    def _target(resolution: PathResolution) -> str:
        if isinstance(resolution, PrivatePath):
            return resolution.run_as_target
        return resolution.path

    def _new_staging_ticket(self, device_id: str, file_name: str) -> StagingTicket:
        staged_name = file_name
        if self.config.unique_staging_names:
            staged_name = f"{uuid.uuid4().hex}-{file_name}"
        path = posixpath.join(self.config.staging_dir, staged_name)
        return StagingTicket(device_id=device_id, path=path, file_name=file_name)

    async def _discard_staging(self, ticket: StagingTicket) -> None:
        """Remove a staged copy. Failures are logged and never raised."""
        spec = CommandSpec.shell(ticket.device_id, "rm", "-f", shell_quote(ticket.path))
        try:
            result = await self.runner.run(spec)
        except ADBChannelError as e:
            self.logger.warning("Could not remove staged file %s: %s", ticket.path, e)
            return
        if not result.ok:
            self.logger.warning("Could not remove staged file %s: %s",
                                ticket.path, result.stderr.strip())

    async def _private_upload_target(self, device_id: str, destination: str,
                                     resolution: PrivatePath, file_name: str) -> str:
        """Return the run-as relative path the uploaded file is copied to.

        The data root, a path ending in a slash and an existing directory all
        receive the file under its own base name. Anything else is the file
        path itself. The returned path always names the final file.
        """
        if resolution.sub_path is None:
            return file_name
        sub_path = resolution.sub_path.rstrip("/") or "/"
        if destination.endswith("/"):
            return posixpath.join(sub_path, file_name)

        is_dir = await self.runner.run(CommandSpec.shell(
            device_id, "test", "-d", shell_quote(sub_path),
            run_as=resolution.application_id,
        ))
        if is_dir.ok:
            return posixpath.join(sub_path, file_name)
        return sub_path

    # --- listing and directory management ---

    async def list_files(self, path: str, device_id: str,
                         owner: Optional[str] = None) -> List[FileEntry]:
        """List the entries at a device path.

        Raises CommandFailedError when the listing command fails, so an empty
        result always means an empty directory.
        """
        path = sanitize_android_path(path)
        device_id = self._require_device(device_id)
        resolution = resolve_owner(path, owner)
        self.logger.debug("Listing files at %s", path)

        spec = self._shell(device_id, resolution, "ls", "-l", shell_quote(self._target(resolution)))
        result = await self.runner.run(spec)
        result.check("Failed to list files", device_id=device_id, path=path, step="list")
        return parse_listing(result.stdout)

    async def delete_path(self, path: str, device_id: str,
                          owner: Optional[str] = None) -> None:
        """Recursively delete a file or directory on the device."""
        path = sanitize_android_path(path)
        device_id = self._require_device(device_id)
        resolution = resolve_owner(path, owner)
        self.logger.debug("Deleting %s", path)

        spec = self._shell(device_id, resolution, "rm", "-rf", shell_quote(self._target(resolution)))
        result = await self.runner.run(spec)
        result.check("Delete failed", device_id=device_id, path=path, step="delete")

    async def create_directory(self, parent: str, name: str, device_id: str,
                               owner: Optional[str] = None) -> str:
        """Create ``name`` below ``parent`` with parents, returning the full path.

        Creating a directory that already exists succeeds.
        """
        parent = sanitize_android_path(parent)
        name = sanitize_android_path(name)
        device_id = self._require_device(device_id)
        full_path = f"{parent}{name}" if parent.endswith("/") else f"{parent}/{name}"
        resolution = resolve_owner(full_path, owner)
        self.logger.debug("Creating directory %s", full_path)

        spec = self._shell(device_id, resolution, "mkdir", "-p", shell_quote(self._target(resolution)))
        result = await self.runner.run(spec)
        result.check("mkdir failed", device_id=device_id, path=full_path, step="mkdir")
        return full_path

    # --- transfers ---

    async def upload_file(self, local_path: str, destination: str, device_id: str,
                          owner: Optional[str] = None) -> str:
        """Upload a local file and return the device path it was written to.

        Private destinations are pushed to the staging directory first and
        then copied into place as the owning application. The staged copy is
        always removed afterwards; only the copy result is reported.
        """
        local_path = sanitize_local_path(local_path)
        if not os.path.isfile(local_path):
            raise SourceNotFoundError(f"Local file not found: {local_path}", path=local_path)

        destination = sanitize_android_path(destination)
        device_id = self._require_device(device_id)
        resolution = resolve_owner(destination, owner)
        self.logger.debug("Uploading %s -> %s", local_path, destination)

        if isinstance(resolution, PublicPath):
            spec = CommandSpec(("push", local_path, destination), device_id=device_id)
            result = await self.runner.run(spec)
            result.check("Upload failed", device_id=device_id, path=destination, step="push")
            return destination

        file_name = os.path.basename(local_path)
        ticket = self._new_staging_ticket(device_id, file_name)

        staged = await self.runner.run(
            CommandSpec(("push", local_path, ticket.path), device_id=device_id)
        )
        staged.check("Failed to push to staging location",
                     device_id=device_id, path=ticket.path, step="stage")

        try:
            target = await self._private_upload_target(device_id, destination, resolution, file_name)
            copied = await self.runner.run(CommandSpec.shell(
                device_id, "cp", shell_quote(ticket.path), shell_quote(target),
                run_as=resolution.application_id,
            ))
        finally:
            await self._discard_staging(ticket)

        copied.check("Upload failed (private)", device_id=device_id, path=destination, step="copy")
        self.logger.info("Uploaded %s to %s as %s", file_name, target, resolution.application_id)
        return target

    async def download_file(self, source: str, local_destination: str, device_id: str,
                            owner: Optional[str] = None) -> str:
        """Download a device file and return the local path it was written to.

        Private sources are read with ``exec-out run-as <owner> cat`` and
        streamed straight into the local file.
        """
        source = sanitize_android_path(source)
        local_destination = sanitize_local_path(local_destination)
        device_id = self._require_device(device_id)

        local_dir = os.path.dirname(local_destination)
        if local_dir:
            os.makedirs(local_dir, exist_ok=True)

        resolution = resolve_owner(source, owner)
        self.logger.debug("Downloading %s -> %s", source, local_destination)

        if isinstance(resolution, PublicPath):
            spec = CommandSpec(("pull", source, local_destination), device_id=device_id)
            result = await self.runner.run(spec)
            result.check("Download failed", device_id=device_id, path=source, step="pull")
            return local_destination

        spec = CommandSpec(
            ("cat", shell_quote(resolution.run_as_target)),
            device_id=device_id,
            run_as=resolution.application_id,
            binary_output=True,
        )
        handle = await self.runner.start(spec)
        try:
            with open(local_destination, "wb") as fh:
                async for chunk in handle.iter_chunks():
                    fh.write(chunk)
            exit_code = await handle.wait()
        except BaseException:
            await handle.cancel()
            self._remove_partial(local_destination)
            raise

        if exit_code != 0:
            stderr = await handle.read_stderr()
            self._remove_partial(local_destination)
            raise CommandFailedError(
                "Download failed (exec-out)",
                exit_code=exit_code,
                stderr=stderr.strip(),
                device_id=device_id,
                path=source,
                step="stream",
            )
        return local_destination

    def _remove_partial(self, local_path: str) -> None:
        try:
            os.remove(local_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning("Could not remove partial download %s: %s", local_path, e)
