"""
Parsing of ``ls -l`` output from the device shell.
Turns the fixed-column listing into FileEntry records without ever failing
on malformed lines.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

# permissions links owner group size date time name
_LS_LINE_PATTERN = re.compile(
    r'^(\S+)\s+(\S+)\s+(\S+)\s+(\S+)\s+(\S+)\s+'
    r'(\d{4}-\d{2}-\d{2})\s+(\d{2}:\d{2})\s+(.+)$'
)
_SYMLINK_ARROW = "->"


class FileType(Enum):
    """Type of a file system entry."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    UNKNOWN = "unknown"

    @classmethod
    def from_permissions(cls, permissions: str) -> "FileType":
        if permissions.startswith("d"):
            return cls.DIRECTORY
        if permissions.startswith("l"):
            return cls.SYMLINK
        return cls.FILE


@dataclass(frozen=True)
class FileEntry:
    """A single entry of a device directory listing.

    ``size`` and ``date`` are never set for directories, and
    ``symlink_target`` is only set for symlinks.
    """

    type: FileType
    permissions: str
    name: str
    links: Optional[int] = None
    owner: Optional[str] = None
    group: Optional[str] = None
    size: Optional[int] = None
    date: Optional[datetime] = None
    symlink_target: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        return self.type is FileType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.type is FileType.SYMLINK


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def _parse_date(day: str, time: str) -> Optional[datetime]:
    try:
        return datetime.strptime(f"{day} {time}", "%Y-%m-%d %H:%M")
    except ValueError:
        return None


def _fallback_entry(line: str) -> FileEntry:
    tokens = line.split()
    return FileEntry(
        type=FileType.UNKNOWN,
        permissions=tokens[0] if tokens else "",
        name=tokens[-1] if tokens else "",
    )


def parse_listing_line(line: str) -> FileEntry:
    """Parse one listing line.

    Lines that don't match the expected columns become UNKNOWN entries
    holding the first token as permissions and the last as name.
    """
    match = _LS_LINE_PATTERN.match(line.strip())
    if match is None:
        return _fallback_entry(line)

    permissions, links, owner, group, size, day, time, name = match.groups()
    file_type = FileType.from_permissions(permissions)

    symlink_target = None
    if file_type is FileType.SYMLINK and _SYMLINK_ARROW in name:
        name, _, target = name.partition(_SYMLINK_ARROW)
        name = name.strip()
        symlink_target = target.strip()

    is_directory = file_type is FileType.DIRECTORY
    return FileEntry(
        type=file_type,
        permissions=permissions,
        name=name,
        links=_parse_int(links),
        owner=owner,
        group=group,
        size=None if is_directory else _parse_int(size),
        date=None if is_directory else _parse_date(day, time),
        symlink_target=symlink_target,
    )


def parse_listing(output: str) -> List[FileEntry]:
    """Parse the full output of ``ls -l``.

    The first non-empty line is the ``total`` summary and is skipped.
    """
    lines = [line.strip() for line in output.splitlines()]
    lines = [line for line in lines if line]
    return [parse_listing_line(line) for line in lines[1:]]
