"""
Manifest processing for Shelf Watcher.

One pass reads ``books.json``, plans and executes the copies for every
book concurrently, and logs a per-book line plus a run summary.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from shelf_sync.copier import CopyStats, execute_all
from shelf_sync.models import (
    ManifestError,
    Record,
    RunResult,
    load_manifest,
)
from shelf_sync.planner import plan

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "books.json"


def manifest_path(input_root: Path) -> Path:
    """Return the location of the OpenAudible manifest under *input_root*."""
    return input_root / MANIFEST_FILENAME


class ManifestProcessor:
    """
    Mirrors the books listed in the manifest into the output tree.

    Parameters
    ----------
    input_root : Path
        OpenAudible folder holding ``books.json`` and ``books/``.
    output_root : Path
        AudioBookshelf library folder.
    template : str
        Output folder template, e.g. ``{author}/{title_short}``.
    max_workers : int
        Upper bound on concurrent books / copies (0 = unbounded).
    """

    def __init__(
        self,
        input_root: Path,
        output_root: Path,
        template: str,
        max_workers: int = 0,
    ):
        self.input_root = Path(input_root)
        self.output_root = Path(output_root)
        self.template = template
        self._max_workers = max_workers
        self.last_stats: CopyStats | None = None

    @property
    def manifest_path(self) -> Path:
        return manifest_path(self.input_root)

    def process_record(self, record: Record) -> RunResult:
        """Plan and copy one record; never raises."""
        run = RunResult(title=record.display_name)
        try:
            copy_plan = plan(self.input_root, self.output_root, record, self.template)
            run.results = execute_all(copy_plan.tasks, self._max_workers)
        except Exception as exc:
            run.error = str(exc) or type(exc).__name__
            logger.exception("Error processing %s", record.display_name)
            return run

        if run.ok:
            logger.info("%s", run.message)
        else:
            logger.error("%s", run.message)
        return run

    def process(self) -> list[RunResult]:
        """
        Run one full pass over the manifest.

        Raises :class:`ManifestError` if the manifest cannot be read or
        parsed; per-book and per-file failures are reported in the
        returned results instead.
        """
        started = time.monotonic()
        logger.info("Reading manifest %s", self.manifest_path)
        records = load_manifest(self.manifest_path)
        logger.info(
            "Processing %d book(s) into %s using template %r",
            len(records), self.output_root, self.template,
        )

        if records:
            workers = self._max_workers or len(records)
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="Book"
            ) as pool:
                results = list(pool.map(self.process_record, records))
        else:
            results = []

        stats = CopyStats.from_runs(results)
        self.last_stats = stats
        logger.info(
            "Run complete in %.1fs: %d book(s) ok, %d with errors; "
            "%d copied (%d bytes), %d skipped, %d failed",
            time.monotonic() - started,
            stats.records_ok, stats.records_failed,
            stats.total_copied, stats.total_bytes,
            stats.total_skipped, stats.total_failed,
        )
        return results

    def run_pass(self) -> list[RunResult] | None:
        """Run :meth:`process`, logging run-level failures instead of raising."""
        try:
            return self.process()
        except ManifestError as exc:
            logger.error("Run aborted: %s", exc)
        return None
