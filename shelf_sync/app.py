"""
Main application controller for Shelf Watcher.

Ties together configuration, logging, the manifest processor, the
watch loop and the watchdog observer, and installs signal handlers so
Ctrl-C / SIGTERM drain the current pass before exiting.
"""

import logging
import logging.handlers
import signal
import sys
from pathlib import Path

from shelf_sync import __app_name__, __version__
from shelf_sync.config import Config
from shelf_sync.models import ManifestError, ManifestNotFoundError
from shelf_sync.processor import ManifestProcessor
from shelf_sync.templating import unknown_placeholders
from shelf_sync.watcher import ManifestWatcher, WatchLoop

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config) -> None:
    """Configure stderr logging plus an optional rotating log file."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)

    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=config.max_log_size_mb * 1024 * 1024,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)

    # watchdog is chatty at DEBUG
    logging.getLogger("watchdog").setLevel(max(level, logging.INFO))


class App:
    """Central orchestrator: one startup pass, then watch until stopped."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.processor = ManifestProcessor(
            input_root=config.input_path,
            output_root=config.output_path,
            template=config.template,
            max_workers=config.max_workers,
        )
        self.loop: WatchLoop | None = None
        self.watcher: ManifestWatcher | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        """Run once or watch, depending on config. Returns an exit code."""
        cfg = self.config
        logger.info("%s %s starting.", __app_name__, __version__)
        logger.info("Input: %s", cfg.input_path)
        logger.info("Output: %s", cfg.output_path)

        unknown = unknown_placeholders(cfg.template)
        if unknown:
            logger.warning(
                "Template %r uses unknown field(s) %s; they will expand to 'undefined'.",
                cfg.template, ", ".join(unknown),
            )

        manifest = self.processor.manifest_path
        if not manifest.is_file():
            logger.error("books.json not found in input: %s", cfg.input_path)
            raise ManifestNotFoundError(f"books.json not found in input: {cfg.input_path}")

        if cfg.once:
            return self.run_once()
        self.watch()
        return 0

    def run_once(self) -> int:
        """Run a single pass and report whether every book succeeded."""
        try:
            results = self.processor.process()
        except ManifestError as exc:
            logger.error("Run aborted: %s", exc)
            return 1
        return 0 if all(r.ok for r in results) else 1

    def watch(self) -> None:
        """Run the startup pass, then re-run on manifest changes until stopped."""
        cfg = self.config
        self.loop = WatchLoop(self.processor.run_pass, cfg.debounce_seconds)
        self.watcher = ManifestWatcher(
            self.processor.manifest_path,
            self.loop.notify_change,
            mode=cfg.watch_mode,
            watch_directory=cfg.watch_directory,
            poll_interval=cfg.poll_interval_seconds,
        )
        self._install_signal_handlers()
        self.watcher.start()
        try:
            self.loop.run(initial_pass=True)
        finally:
            self.watcher.stop()
        logger.info("%s stopped.", __app_name__)

    def stop(self) -> None:
        """Request a graceful shutdown."""
        if self.loop is not None:
            self.loop.shutdown()

    def _install_signal_handlers(self) -> None:
        def _handler(sig, frame):
            logger.info("Received %s.", signal.Signals(sig).name)
            self.stop()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
