"""
Classification of device paths into public and application-private storage.

Files below ``/data/data/<package>/`` are only reachable by commands run as
the owning application, so every operation that builds a command for a
device path resolves it here first and branches on the result.
"""

from dataclasses import dataclass
from typing import Optional, Union

SANDBOX_ROOT = "/data/data/"

# "", "data", "data", "<package>"
_MIN_PRIVATE_PARTS = 4


@dataclass(frozen=True)
class PublicPath:
    """A path reachable without elevation."""

    path: str


@dataclass(frozen=True)
class PrivatePath:
    """A path inside an application's private storage.

    ``sub_path`` is relative to the application's data directory, or None
    when the path is the data directory itself.
    """

    application_id: str
    sub_path: Optional[str] = None

    @property
    def run_as_target(self) -> str:
        """Path to use in commands executed with run-as."""
        return self.sub_path if self.sub_path else "."


PathResolution = Union[PublicPath, PrivatePath]


def resolve_path(path: str) -> PathResolution:
    """Classify a device path by its prefix.

    >>> resolve_path("/data/data/com.example/files/a.txt")
    PrivatePath(application_id='com.example', sub_path='files/a.txt')
    >>> resolve_path("/sdcard/a.txt")
    PublicPath(path='/sdcard/a.txt')
    """
    if not path.startswith(SANDBOX_ROOT):
        return PublicPath(path)

    parts = path.split("/")
    if len(parts) < _MIN_PRIVATE_PARTS or not parts[3]:
        return PublicPath(path)

    remaining = [part for part in parts[4:] if part]
    sub_path = "/".join(remaining) if remaining else None
    return PrivatePath(application_id=parts[3], sub_path=sub_path)


def resolve_owner(path: str, owner: Optional[str] = None) -> PathResolution:
    """Resolve a path, letting an explicitly supplied owner take precedence.

    With an explicit owner the path is used as given, relative to that
    application's data directory unless it is absolute.
    """
    if owner:
        return PrivatePath(application_id=owner, sub_path=path or None)
    return resolve_path(path)
