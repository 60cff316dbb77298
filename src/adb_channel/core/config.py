"""
Channel configuration.
Holds the settings shared by the command runner, file system and logcat services.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_COMMAND_TIMEOUT = 15.0
DEFAULT_STAGING_DIR = "/sdcard"
DEFAULT_FLUSH_INTERVAL = 0.25

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ChannelConfig:
    """Settings for a device command channel.

    Attributes:
        adb_path: Explicit path to the adb executable. When None the path is
            resolved through platform_tools.get_adb_binary_path().
        command_timeout: Seconds a one-shot command may run before it is killed.
        staging_dir: World-writable device directory used to stage uploads
            into private application storage.
        flush_interval: Seconds between log batch emissions.
        unique_staging_names: Prefix staged file names with a random token so
            concurrent uploads of equally named files do not collide.
    """

    adb_path: Optional[str] = None
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    staging_dir: str = DEFAULT_STAGING_DIR
    flush_interval: float = DEFAULT_FLUSH_INTERVAL
    unique_staging_names: bool = True

    def __post_init__(self):
        if self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")
        if self.flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        if not self.staging_dir or not self.staging_dir.startswith("/"):
            raise ValueError("staging_dir must be an absolute device path")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ChannelConfig":
        """Build a configuration from ADB_CHANNEL_* environment variables."""
        env = os.environ if environ is None else environ
        kwargs = {}
        if env.get("ADB_CHANNEL_ADB_PATH"):
            kwargs["adb_path"] = env["ADB_CHANNEL_ADB_PATH"]
        if env.get("ADB_CHANNEL_TIMEOUT"):
            kwargs["command_timeout"] = float(env["ADB_CHANNEL_TIMEOUT"])
        if env.get("ADB_CHANNEL_STAGING_DIR"):
            kwargs["staging_dir"] = env["ADB_CHANNEL_STAGING_DIR"].rstrip("/") or "/"
        if env.get("ADB_CHANNEL_FLUSH_INTERVAL"):
            kwargs["flush_interval"] = float(env["ADB_CHANNEL_FLUSH_INTERVAL"])
        if env.get("ADB_CHANNEL_UNIQUE_STAGING"):
            kwargs["unique_staging_names"] = (
                env["ADB_CHANNEL_UNIQUE_STAGING"].strip().lower() in _TRUE_VALUES
            )
        return cls(**kwargs)
