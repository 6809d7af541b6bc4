"""Where buildrelay keeps its config file and sqlite databases."""

from __future__ import annotations

import os
import sys
from pathlib import Path

APP_NAME = "buildrelay"


def get_platform() -> str:
    if sys.platform == "win32":
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


def _app_dir(
    override_var: str,
    windows_var: str,
    windows_default: Path,
    xdg_var: str,
    xdg_default: Path,
) -> Path:
    override = os.environ.get(override_var)
    if override:
        return Path(override)

    platform = get_platform()
    if platform == "windows":
        return Path(os.environ.get(windows_var, windows_default)) / APP_NAME
    if platform == "macos":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return Path(os.environ.get(xdg_var, xdg_default)) / APP_NAME


def get_config_dir() -> Path:
    """Directory searched for ``config.yaml``; ``BUILDRELAY_CONFIG_DIR`` wins."""
    return _app_dir(
        "BUILDRELAY_CONFIG_DIR",
        "APPDATA", Path.home() / "AppData" / "Roaming",
        "XDG_CONFIG_HOME", Path.home() / ".config",
    )


def get_data_dir() -> Path:
    """Directory holding ``jobs.db`` and ``queue.db``; ``BUILDRELAY_DATA_DIR`` wins."""
    return _app_dir(
        "BUILDRELAY_DATA_DIR",
        "LOCALAPPDATA", Path.home() / "AppData" / "Local",
        "XDG_DATA_HOME", Path.home() / ".local" / "share",
    )
