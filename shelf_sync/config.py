"""Configuration management for Shelf Watcher.

Settings come from three layers, later ones winning:

1. an optional JSON config file (``config.json`` in the platform config
   directory unless another path is given),
2. environment variables, including a ``.env`` file loaded by the CLI,
3. command-line options.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from shelf_sync.platform_utils import get_config_dir
from shelf_sync.templating import DEFAULT_TEMPLATE
from shelf_sync.watcher import WATCH_MODE_EVENTS, WATCH_MODE_POLLING

logger = logging.getLogger(__name__)

WATCH_MODES = (WATCH_MODE_EVENTS, WATCH_MODE_POLLING)

DEFAULT_CONFIG: dict[str, Any] = {
    "input_folder": "",
    "output_folder": "",
    "template": DEFAULT_TEMPLATE,
    "watch_mode": WATCH_MODE_EVENTS,
    "debounce_seconds": 2.0,
    "poll_interval_seconds": 1.0,
    "watch_directory": False,  # trigger on any change next to books.json
    "once": False,  # single pass, no watching
    "max_workers": 0,  # 0 = one thread per book / file
    "log_level": "INFO",
    # ---- log file ----
    "log_file": "",  # blank = console only
    "max_log_size_mb": 10,
    "log_backup_count": 3,
}

# environment variable -> config key
ENV_VARS: dict[str, str] = {
    "INPUT": "input_folder",
    "OUTPUT": "output_folder",
    "TEMPLATE": "template",
    "WATCH_MODE": "watch_mode",
    "DEBOUNCE_SECONDS": "debounce_seconds",
    "LOG_LEVEL": "log_level",
    "LOG_FILE": "log_file",
}


def get_config_path() -> Path:
    """Return the path to the default configuration file."""
    return get_config_dir() / "config.json"


class Config:
    """Configuration manager backed by an optional JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if not self._path.exists():
            self._data = dict(DEFAULT_CONFIG)
            logger.debug("No configuration file at %s; using defaults.", self._path)
            return
        try:
            with open(self._path, encoding="utf-8") as fh:
                stored = json.load(fh)
            if not isinstance(stored, dict):
                raise ValueError("top-level value must be an object")
            unknown = sorted(set(stored) - set(DEFAULT_CONFIG))
            if unknown:
                logger.warning("Ignoring unknown config key(s): %s", ", ".join(unknown))
            # Stored values go through the setters; missing keys keep defaults
            self._data = dict(DEFAULT_CONFIG)
            self.update({k: v for k, v in stored.items() if k in DEFAULT_CONFIG})
            logger.info("Configuration loaded from %s", self._path)
        except (ValueError, TypeError, AttributeError, OSError) as exc:
            logger.warning("Could not read config (%s); using defaults.", exc)
            self._data = dict(DEFAULT_CONFIG)

    def apply_env(self, environ: Mapping[str, str] | None = None) -> None:
        """Override settings from environment variables that are set."""
        environ = os.environ if environ is None else environ
        for var, key in ENV_VARS.items():
            value = environ.get(var)
            if value:
                self.update({key: value})

    def update(self, values: Mapping[str, Any]) -> None:
        """Set several settings at once, ignoring ``None`` values."""
        for key, value in values.items():
            if value is None:
                continue
            if key not in DEFAULT_CONFIG:
                raise KeyError(f"Unknown setting: {key}")
            setattr(self, key, value)

    # ---- accessors ----

    @property
    def input_folder(self) -> str:
        """Return the OpenAudible folder that contains books.json."""
        return self._data["input_folder"]

    @input_folder.setter
    def input_folder(self, value: str) -> None:
        self._data["input_folder"] = str(value)

    @property
    def output_folder(self) -> str:
        """Return the AudioBookshelf library folder."""
        return self._data["output_folder"]

    @output_folder.setter
    def output_folder(self, value: str) -> None:
        self._data["output_folder"] = str(value)

    @property
    def template(self) -> str:
        """Return the output folder template."""
        return self._data.get("template") or DEFAULT_TEMPLATE

    @template.setter
    def template(self, value: str) -> None:
        self._data["template"] = value.strip() or DEFAULT_TEMPLATE

    @property
    def watch_mode(self) -> str:
        """Return ``events`` (native notifications) or ``polling``."""
        return self._data.get("watch_mode", WATCH_MODE_EVENTS)

    @watch_mode.setter
    def watch_mode(self, value: str) -> None:
        """Set the watch mode, rejecting unknown values."""
        value = value.strip().lower()
        if value not in WATCH_MODES:
            raise ValueError(
                f"watch_mode must be one of {', '.join(WATCH_MODES)}, got {value!r}"
            )
        self._data["watch_mode"] = value

    @property
    def debounce_seconds(self) -> float:
        """Return the quiet period before a triggered pass starts."""
        return float(self._data["debounce_seconds"])

    @debounce_seconds.setter
    def debounce_seconds(self, value: float) -> None:
        """Set the debounce window (minimum 0 s)."""
        self._data["debounce_seconds"] = max(0.0, float(value))

    @property
    def poll_interval_seconds(self) -> float:
        """Return the polling observer interval."""
        return float(self._data.get("poll_interval_seconds", 1.0))

    @poll_interval_seconds.setter
    def poll_interval_seconds(self, value: float) -> None:
        """Set the polling interval (minimum 0.1 s)."""
        self._data["poll_interval_seconds"] = max(0.1, float(value))

    @property
    def watch_directory(self) -> bool:
        return bool(self._data.get("watch_directory", False))

    @watch_directory.setter
    def watch_directory(self, value: bool) -> None:
        self._data["watch_directory"] = bool(value)

    @property
    def once(self) -> bool:
        return bool(self._data.get("once", False))

    @once.setter
    def once(self, value: bool) -> None:
        self._data["once"] = bool(value)

    @property
    def max_workers(self) -> int:
        return int(self._data.get("max_workers", 0))

    @max_workers.setter
    def max_workers(self, value: int) -> None:
        self._data["max_workers"] = max(0, int(value))

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value.strip().upper()

    # ---- log file ----

    @property
    def log_file(self) -> str:
        """Return the log file path (blank = console only)."""
        return self._data.get("log_file", "")

    @log_file.setter
    def log_file(self, value: str) -> None:
        self._data["log_file"] = str(value).strip()

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        """Set the number of rotated log backups to keep."""
        self._data["log_backup_count"] = max(0, int(value))

    # ---- convenience ----

    @property
    def input_path(self) -> Path:
        return Path(self.input_folder).expanduser()

    @property
    def output_path(self) -> Path:
        return Path(self.output_folder).expanduser()

    def validate(self) -> list[str]:
        """Return a list of problems with the input/output folders."""
        errors = []
        if not self.input_folder:
            errors.append("Input folder is not set")
        elif not self.input_path.exists():
            errors.append(f"Input could not be found: {self.input_folder}")
        if not self.output_folder:
            errors.append("Output folder is not set")
        elif not self.output_path.exists():
            errors.append(f"Output could not be found: {self.output_folder}")
        if (
            not errors
            and self.input_path.resolve() == self.output_path.resolve()
        ):
            errors.append(f"Input and output cannot be identical: {self.input_folder}")
        return errors
