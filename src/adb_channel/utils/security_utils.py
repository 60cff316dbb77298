"""
Security utilities for input sanitization and shell quoting.
Prevents command injection through device shell arguments.
"""

import os
import re

# Pre-compiled regex patterns for performance
_DEVICE_ID_PATTERN = re.compile(r'^[a-zA-Z0-9.:_-]+$')
_CONTROL_CHAR_PATTERN = re.compile(r'[\x00\n\r]')


def shell_quote(value: str) -> str:
    """Quote a single argument for the device's POSIX shell.

    The value is wrapped in single quotes and every embedded single quote is
    replaced with '\\'' so the shell reads the original string back literally.

    Args:
        value: Argument to quote

    Returns:
        Quoted argument
    """
    return "'" + value.replace("'", "'\\''") + "'"


def sanitize_android_path(path: str) -> str:
    """Validate an Android device path before it is placed in a command.

    Shell metacharacters are allowed here because every path is passed
    through shell_quote() before it reaches the device shell. Only values that
    quoting cannot make safe are rejected.

    Args:
        path: Android device path

    Returns:
        The path with surrounding whitespace removed

    Raises:
        ValueError: If the path is empty or contains control characters
    """
    if not path or not path.strip():
        raise ValueError("Path cannot be empty")

    path = path.strip()

    match = _CONTROL_CHAR_PATTERN.search(path)
    if match:
        raise ValueError(f"Path contains control character: {match.group()!r}")

    return path


def sanitize_local_path(path: str) -> str:
    """Normalize a local filesystem path.

    Args:
        path: Local filesystem path

    Returns:
        Normalized absolute path

    Raises:
        ValueError: If the path is empty or contains a null byte
    """
    if not path or not str(path).strip():
        raise ValueError("Path cannot be empty")

    path = os.fspath(path).strip()

    if '\x00' in path:
        raise ValueError("Path contains null byte")

    return os.path.normpath(os.path.abspath(path))


def validate_device_id(device_id: str) -> str:
    """Validate an Android device ID.

    Args:
        device_id: Device ID string from ADB

    Returns:
        Validated device ID

    Raises:
        ValueError: If the device ID is invalid
    """
    if not device_id:
        raise ValueError("Device ID cannot be empty")

    # Device IDs should only contain alphanumeric characters, dots, colons, and hyphens
    if not _DEVICE_ID_PATTERN.match(device_id):
        raise ValueError("Device ID contains invalid characters")

    return device_id


def validate_package_name(package_name: str) -> str:
    """Validate an Android application id used with run-as.

    Raises:
        ValueError: If the id is empty or not a dotted Java-style identifier
    """
    if not package_name:
        raise ValueError("Package name cannot be empty")
    if not re.match(r'^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)*$', package_name):
        raise ValueError(f"Invalid package name: {package_name}")
    return package_name
