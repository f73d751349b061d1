"""
File copy engine for Shelf Watcher.

Executes planned copies from the OpenAudible ``books/`` folder into the
AudioBookshelf tree.  A copy is skipped when the destination already
exists with the same byte size; otherwise the file is copied (or
overwritten).  Data is written to a hidden temporary file next to the
destination and moved into place, so readers never see a half-written
file.  Copies for one batch run concurrently in background threads.
"""

import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from shelf_sync.models import CopyOutcome, CopyResult, CopyTask, RunResult

logger = logging.getLogger(__name__)

SOURCE_MISSING = "source missing"


@dataclass
class CopyStats:
    """Aggregated copy statistics for one processing pass."""
    records_ok: int = 0
    records_failed: int = 0
    total_copied: int = 0
    total_skipped: int = 0
    total_failed: int = 0
    total_bytes: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, result: CopyResult) -> None:
        with self._lock:
            if result.outcome is CopyOutcome.SKIPPED:
                self.total_skipped += 1
            elif result.outcome is CopyOutcome.COPIED:
                self.total_copied += 1
                self.total_bytes += result.size_bytes
            else:
                self.total_failed += 1

    def add_run(self, run: RunResult) -> None:
        for result in run.results:
            self.record(result)
        with self._lock:
            if run.ok:
                self.records_ok += 1
            else:
                self.records_failed += 1

    @classmethod
    def from_runs(cls, runs: Iterable[RunResult]) -> "CopyStats":
        stats = cls()
        for run in runs:
            stats.add_run(run)
        return stats


def _atomic_copy(source: Path, destination: Path, expected_size: int) -> None:
    """Copy *source* over *destination* via a temp file and ``os.replace``."""
    fd, tmp_name = tempfile.mkstemp(
        dir=destination.parent, prefix=f".{destination.name}.", suffix=".partial"
    )
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        shutil.copy2(source, tmp)
        copied_size = tmp.stat().st_size
        if copied_size != expected_size:
            raise OSError(
                f"Post-copy size mismatch ({copied_size:,} != {expected_size:,} bytes)"
            )
        os.replace(tmp, destination)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def execute(task: CopyTask) -> CopyResult:
    """
    Bring ``task.destination`` in line with ``task.source``.

    Returns a :class:`CopyResult` and never raises:

    - source missing               -> failed("source missing")
    - destination missing          -> copied
    - destination has same size    -> skipped
    - destination has other size   -> copied (overwritten)

    Only sizes are compared; a same-size file with different content is
    treated as already synchronised.
    """
    source, dest = task.source, task.destination
    try:
        if not source.is_file():
            logger.error("Source file not found: %s", source)
            return CopyResult(task, CopyOutcome.FAILED, reason=SOURCE_MISSING)

        size = source.stat().st_size

        if dest.exists():
            dest_size = dest.stat().st_size
            if dest_size == size:
                logger.info("Skipping (already synced, %d bytes): %s", size, dest)
                return CopyResult(task, CopyOutcome.SKIPPED, size_bytes=size)
            logger.info(
                "Size changed (%d -> %d bytes), overwriting: %s",
                dest_size, size, dest,
            )

        logger.info("Copying %s -> %s (%d bytes)", source, dest, size)
        _atomic_copy(source, dest, size)
        logger.info("Copy complete: %s", dest)
        return CopyResult(task, CopyOutcome.COPIED, size_bytes=size)

    except OSError as exc:
        logger.error("Copy failed for %s: %s", source, exc)
        return CopyResult(task, CopyOutcome.FAILED, reason=str(exc))
    except Exception as exc:
        logger.exception("Unexpected error copying %s", source)
        return CopyResult(task, CopyOutcome.FAILED, reason=str(exc))


def execute_all(tasks: list[CopyTask], max_workers: int = 0) -> list[CopyResult]:
    """Run every task concurrently; results come back in task order.

    ``max_workers`` of 0 starts one thread per task.
    """
    if not tasks:
        return []
    workers = max_workers or len(tasks)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Copy") as pool:
        return list(pool.map(execute, tasks))
