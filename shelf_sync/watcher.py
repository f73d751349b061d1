"""Manifest watcher for Shelf Watcher.

``ManifestWatcher`` uses the watchdog library to notice changes to
``books.json`` and forwards them to a ``WatchLoop``.  The loop debounces
bursts of change signals and runs one processing pass at a time; every
signal (change, shutdown, pass finished) travels through a single queue
so the control flow lives in one thread.  The queue is a ``SimpleQueue``
because ``shutdown`` is called from signal handlers.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from queue import Empty, SimpleQueue
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

logger = logging.getLogger(__name__)

WATCH_MODE_EVENTS = "events"
WATCH_MODE_POLLING = "polling"


class WatchState(enum.Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    PROCESSING = "processing"
    TERMINATED = "terminated"


class _Signal(enum.Enum):
    CHANGE = "change"
    SHUTDOWN = "shutdown"
    DONE = "done"


class WatchLoop:
    """Debounced, non-overlapping dispatcher for processing passes.

    Usage:
        loop = WatchLoop(processor.run_pass, debounce_seconds=2)
        threading.Thread(target=loop.run).start()
        loop.notify_change()
        ...
        loop.shutdown()
    """

    def __init__(self, run_pass: Callable[[], Any], debounce_seconds: float = 2.0):
        self._run_pass = run_pass
        self._debounce = max(0.0, float(debounce_seconds))
        self._queue: SimpleQueue[_Signal] = SimpleQueue()
        self._state = WatchState.IDLE
        self._pending = False
        self._stopping = False
        self._deadline = 0.0
        self._worker: threading.Thread | None = None
        self.passes_started = 0

    # ---- producers (any thread) ----

    def notify_change(self) -> None:
        """Signal that the manifest (or its folder) changed."""
        self._queue.put(_Signal.CHANGE)

    def shutdown(self) -> None:
        """Ask the loop to stop; an in-flight pass is allowed to finish."""
        self._queue.put(_Signal.SHUTDOWN)

    # ---- status ----

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._pending

    # ---- control loop ----

    def run(self, initial_pass: bool = True) -> None:
        """Process signals until shut down.

        With *initial_pass* a full pass runs before any change is awaited.
        """
        if initial_pass:
            logger.info("Running startup pass.")
            self._start_pass()

        while self._state is not WatchState.TERMINATED:
            timeout = None
            if self._state is WatchState.DEBOUNCING:
                timeout = max(0.0, self._deadline - time.monotonic())
            try:
                signal = self._queue.get(timeout=timeout)
            except Empty:
                self._start_pass()
                continue
            self._handle(signal)

        logger.info("Watch loop stopped.")

    def _handle(self, signal: _Signal) -> None:
        state = self._state

        if signal is _Signal.DONE:
            self._finish_pass()
        elif signal is _Signal.SHUTDOWN:
            if state is WatchState.PROCESSING:
                self._stopping = True
                self._pending = False
                logger.info("Shutdown requested; waiting for the current pass to finish.")
            else:
                if state is WatchState.DEBOUNCING:
                    logger.info("Shutdown requested; cancelled pending debounce.")
                self._set_state(WatchState.TERMINATED)
        elif state is WatchState.PROCESSING:
            if not self._stopping and not self._pending:
                self._pending = True
                logger.info("Change detected during processing; queued a follow-up pass.")
        elif state is WatchState.IDLE:
            logger.info("Change detected; waiting %.1fs for further changes.", self._debounce)
            self._debounce_from_now()
        else:
            # DEBOUNCING: restart the quiescence window
            logger.debug("Change detected; debounce window restarted.")
            self._debounce_from_now()

    def _debounce_from_now(self) -> None:
        self._deadline = time.monotonic() + self._debounce
        self._set_state(WatchState.DEBOUNCING)

    def _set_state(self, state: WatchState) -> None:
        if state is not self._state:
            logger.debug("Watch state %s -> %s", self._state.value, state.value)
        self._state = state

    def _start_pass(self) -> None:
        self.passes_started += 1
        self._set_state(WatchState.PROCESSING)
        logger.info("Starting processing pass #%d.", self.passes_started)
        self._worker = threading.Thread(
            target=self._pass_worker, daemon=True, name="ProcessingPass"
        )
        self._worker.start()

    def _pass_worker(self) -> None:
        try:
            self._run_pass()
        except Exception:
            logger.exception("Processing pass failed")
        finally:
            self._queue.put(_Signal.DONE)

    def _finish_pass(self) -> None:
        if self._worker is not None:
            self._worker.join()
            self._worker = None
        logger.info("Processing pass #%d finished.", self.passes_started)
        if self._stopping:
            self._set_state(WatchState.TERMINATED)
        elif self._pending:
            self._pending = False
            logger.info("Running queued follow-up pass.")
            self._debounce_from_now()
        else:
            self._set_state(WatchState.IDLE)
            logger.info("Idle; watching for manifest changes.")


class ManifestChangeHandler(FileSystemEventHandler):
    """Watchdog handler that turns manifest events into change signals."""

    def __init__(
        self,
        manifest: Path,
        on_change: Callable[[], None],
        watch_directory: bool = False,
    ):
        """Initialise the handler for *manifest*."""
        super().__init__()
        self._manifest = Path(manifest)
        self._on_change = on_change
        self._watch_directory = watch_directory

    def _is_manifest(self, path: Any) -> bool:
        if not path:
            return False
        if isinstance(path, bytes):
            path = path.decode(errors="replace")
        return Path(path).name == self._manifest.name

    def _should_trigger(self, event: FileSystemEvent) -> bool:
        if self._watch_directory:
            return True
        if event.is_directory:
            return False
        return self._is_manifest(event.src_path) or self._is_manifest(
            getattr(event, "dest_path", "")
        )

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a file creation event."""
        self._dispatch_change(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a file modification event."""
        self._dispatch_change(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle a rename; editors often save by moving a temp file into place."""
        self._dispatch_change(event)

    def _dispatch_change(self, event: FileSystemEvent) -> None:
        if self._should_trigger(event):
            logger.debug("%s event for %s", event.event_type, event.src_path)
            self._on_change()


class ManifestWatcher:
    """Watches the manifest's folder and reports changes to a callback.

    Usage:
        watcher = ManifestWatcher(manifest, loop.notify_change, mode="events")
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        manifest: Path,
        on_change: Callable[[], None],
        mode: str = WATCH_MODE_EVENTS,
        watch_directory: bool = False,
        poll_interval: float = 1.0,
    ):
        """Create a watcher for *manifest* (``events`` or ``polling`` mode)."""
        self.manifest = Path(manifest)
        self._mode = mode
        self._watch_directory = watch_directory
        self._poll_interval = poll_interval
        self._handler = ManifestChangeHandler(self.manifest, on_change, watch_directory)
        self._observer: Any | None = None

    def _make_observer(self) -> Any:
        if self._mode == WATCH_MODE_POLLING:
            return PollingObserver(timeout=self._poll_interval)
        return Observer()

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the manifest folder."""
        folder = self.manifest.parent
        if not folder.is_dir():
            logger.error("Manifest folder does not exist: %s", folder)
            raise FileNotFoundError(f"Manifest folder does not exist: {folder}")

        observer = self._make_observer()
        self._observer = observer
        observer.schedule(self._handler, str(folder), recursive=False)
        observer.start()
        logger.info(
            "Watching '%s' (mode=%s, %s)",
            folder if self._watch_directory else self.manifest,
            self._mode,
            "any change in folder" if self._watch_directory else "manifest only",
        )

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()
