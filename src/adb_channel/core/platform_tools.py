"""
ADB platform tools management.
Locates the adb executable and installs Android platform tools on demand.
"""

import logging
import os
import shutil
import sys
import tempfile
import zipfile
from typing import Optional

import requests
from platformdirs import user_data_dir

logger = logging.getLogger(__name__)

ADB_PATH_ENV = "ADB_CHANNEL_ADB_PATH"
APP_DATA_NAME = "adb-channel"

# Constants for download URLs
ADB_WIN_ZIP_URL = (
    "https://dl.google.com/android/repository/platform-tools-latest-windows.zip"
)
ADB_LINUX_ZIP_URL = (
    "https://dl.google.com/android/repository/platform-tools-latest-linux.zip"
)
ADB_MAC_ZIP_URL = (
    "https://dl.google.com/android/repository/platform-tools-latest-darwin.zip"
)

MAX_DOWNLOAD_BYTES = 200 * 1024 * 1024
MAX_EXTRACTED_BYTES = 500 * 1024 * 1024


def get_platform_tools_root() -> str:
    """Return the per-user directory that holds installed platform-tools."""
    return os.path.join(user_data_dir(APP_DATA_NAME), "platform-tools")


def _installed_adb_path() -> Optional[str]:
    current_link = os.path.join(get_platform_tools_root(), "current")
    candidate = os.path.join(os.path.realpath(current_link), get_adb_binary_name())
    if os.path.isfile(candidate):
        return candidate
    return None


def get_adb_binary_name() -> str:
    """Get the ADB binary name for current platform."""
    return "adb.exe" if sys.platform.startswith("win") else "adb"


def _download_url() -> str:
    if sys.platform.startswith("linux"):
        return ADB_LINUX_ZIP_URL
    if sys.platform.startswith("win"):
        return ADB_WIN_ZIP_URL
    if sys.platform.startswith("darwin"):
        return ADB_MAC_ZIP_URL
    raise RuntimeError("Unsupported platform for platform-tools download")


def _download_archive(url: str, zip_path: str) -> None:
    resp = requests.get(url, stream=True, timeout=30, allow_redirects=True)
    resp.raise_for_status()

    # Validate that we're downloading from Google's servers (prevent redirect attacks)
    if not resp.url.startswith("https://dl.google.com/android/"):
        raise RuntimeError(f"Redirect to untrusted domain: {resp.url}")

    content_type = resp.headers.get("Content-Type", "")
    if content_type and "zip" not in content_type.lower() and "octet-stream" not in content_type.lower():
        raise RuntimeError(f"Unexpected content type: {content_type}")

    downloaded_size = 0
    with open(zip_path, "wb") as fh:
        for chunk in resp.iter_content(chunk_size=8192):
            if chunk:
                downloaded_size += len(chunk)
                if downloaded_size > MAX_DOWNLOAD_BYTES:
                    raise RuntimeError("Downloaded file exceeds maximum size limit")
                fh.write(chunk)


def _extract_archive(zip_path: str, tmp_dir: str) -> str:
    if not zipfile.is_zipfile(zip_path):
        raise RuntimeError("Downloaded file is not a valid zip archive")

    with zipfile.ZipFile(zip_path, "r") as zf:
        total_size = sum(info.file_size for info in zf.infolist())
        if total_size > MAX_EXTRACTED_BYTES:
            raise RuntimeError("Zip archive uncompressed size exceeds safety limit")

        tmp_dir_with_sep = tmp_dir if tmp_dir.endswith(os.sep) else tmp_dir + os.sep
        for info in zf.infolist():
            normalized = os.path.normpath(os.path.join(tmp_dir, info.filename))
            if not (normalized.startswith(tmp_dir_with_sep) or normalized == tmp_dir):
                raise RuntimeError(f"Zip contains path traversal: {info.filename}")

        zf.extractall(tmp_dir)

    extracted_dir = os.path.join(tmp_dir, "platform-tools")
    if not os.path.isdir(extracted_dir):
        raise RuntimeError("Platform-tools not found in archive")
    return extracted_dir


def ensure_platform_tools_in_user_dir(version_tag: Optional[str] = "latest") -> str:
    """Ensure platform-tools are installed in the per-user data dir and return the adb path.

    Installs into <data_dir>/platform-tools/<version>/ and points the
    <data_dir>/platform-tools/current symlink at it. The archive is downloaded
    and extracted in a temporary directory and moved into place afterwards so
    a failed download never leaves a partial install behind.
    """
    data_root = get_platform_tools_root()
    os.makedirs(data_root, exist_ok=True)

    existing = _installed_adb_path()
    if existing:
        return existing

    adb_name = get_adb_binary_name()
    target_dir = os.path.join(data_root, version_tag or "latest")
    current_link = os.path.join(data_root, "current")

    if not os.path.isfile(os.path.join(target_dir, adb_name)):
        tmp_dir = tempfile.mkdtemp(prefix="platform-tools-")
        try:
            zip_path = os.path.join(tmp_dir, "platform-tools.zip")
            url = _download_url()
            logger.info("Downloading platform-tools from %s", url)
            _download_archive(url, zip_path)
            extracted_dir = _extract_archive(zip_path, tmp_dir)

            if os.path.isdir(target_dir):
                shutil.rmtree(target_dir)
            shutil.move(extracted_dir, target_dir)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    adb_path = os.path.join(target_dir, adb_name)
    if os.path.isfile(adb_path) and os.name == "posix":
        os.chmod(adb_path, 0o755)

    tmp_link = f"{current_link}.tmp"
    if os.path.lexists(tmp_link):
        os.remove(tmp_link)
    os.symlink(target_dir, tmp_link)
    os.replace(tmp_link, current_link)

    logger.info("Platform-tools installed at %s", target_dir)
    return adb_path


def find_adb_binary(explicit_path: Optional[str] = None) -> Optional[str]:
    """Locate an adb executable without downloading anything.

    Lookup order: explicit path, the ADB_CHANNEL_ADB_PATH environment
    variable, adb on PATH, then a previously installed per-user copy.
    """
    if explicit_path:
        return explicit_path

    env_path = os.environ.get(ADB_PATH_ENV)
    if env_path:
        return env_path

    on_path = shutil.which(get_adb_binary_name())
    if on_path:
        return on_path

    return _installed_adb_path()


def get_adb_binary_path(explicit_path: Optional[str] = None, install: bool = False) -> str:
    """Return the path to the adb binary.

    When nothing is found and install is True the platform tools are
    downloaded into the per-user data dir. Otherwise the bare binary name is
    returned so the failure surfaces when the process is started.
    """
    found = find_adb_binary(explicit_path)
    if found:
        return found
    if install:
        return ensure_platform_tools_in_user_dir()
    return get_adb_binary_name()


def is_adb_available(explicit_path: Optional[str] = None) -> bool:
    """Check if an adb binary can be located."""
    found = find_adb_binary(explicit_path)
    return bool(found) and os.path.isfile(found)
