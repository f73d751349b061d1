"""
Cross-platform utilities for Shelf Watcher.

Centralises OS detection so the rest of the package asks one place for
its config and log locations.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"

APP_DIRNAME = "ShelfWatcher"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory.

    - Windows : ``%APPDATA%\\ShelfWatcher``
    - macOS   : ``~/Library/Application Support/ShelfWatcher``
    - Linux   : ``$XDG_CONFIG_HOME/ShelfWatcher`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    return Path(base) / APP_DIRNAME
