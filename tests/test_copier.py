from __future__ import annotations

import logging
from pathlib import Path

import pytest

from shelf_sync import copier
from shelf_sync.copier import SOURCE_MISSING, CopyStats, execute, execute_all
from shelf_sync.models import CopyOutcome, CopyResult, CopyTask, RunResult


@pytest.fixture
def dest_dir(library) -> Path:
    path = library["output"] / "Jane Doe" / "Book"
    path.mkdir(parents=True)
    return path


def _leftover_temp_files(folder: Path) -> list[Path]:
    return [p for p in folder.iterdir() if p.name.endswith(".partial")]


class TestExecute:
    def test_copies_missing_destination(self, write_book_file, dest_dir):
        source = write_book_file("Book.m4b", 200)
        task = CopyTask(source, dest_dir / "Book.m4b")

        result = execute(task)

        assert result.outcome is CopyOutcome.COPIED
        assert result.size_bytes == 200
        assert task.destination.read_bytes() == source.read_bytes()
        assert _leftover_temp_files(dest_dir) == []

    def test_skips_same_size(self, write_book_file, dest_dir):
        source = write_book_file("Book.m4b", 100)
        dest = dest_dir / "Book.m4b"
        dest.write_bytes(b"b" * 100)

        result = execute(CopyTask(source, dest))

        assert result.outcome is CopyOutcome.SKIPPED
        # size-only comparison: content is left alone
        assert dest.read_bytes() == b"b" * 100

    def test_overwrites_size_mismatch(self, write_book_file, dest_dir):
        source = write_book_file("Book.m4b", 200)
        dest = dest_dir / "Book.m4b"
        dest.write_bytes(b"b" * 100)

        result = execute(CopyTask(source, dest))

        assert result.outcome is CopyOutcome.COPIED
        assert dest.stat().st_size == 200

    def test_missing_source_fails(self, library, dest_dir, caplog):
        task = CopyTask(library["input"] / "books" / "Gone.m4b", dest_dir / "Gone.m4b")

        with caplog.at_level(logging.ERROR):
            result = execute(task)

        assert result.outcome is CopyOutcome.FAILED
        assert result.reason == SOURCE_MISSING
        assert not task.destination.exists()
        assert "Source file not found" in caplog.text

    def test_copy_error_is_failed_not_skipped(self, write_book_file, dest_dir, monkeypatch):
        source = write_book_file("Book.m4b", 50)
        dest = dest_dir / "Book.m4b"

        def broken_copy(src, dst, *args, **kwargs):
            Path(dst).write_bytes(b"half")
            raise OSError("disk full")

        monkeypatch.setattr(copier.shutil, "copy2", broken_copy)

        result = execute(CopyTask(source, dest))

        assert result.outcome is CopyOutcome.FAILED
        assert "disk full" in result.reason
        assert not dest.exists()
        assert _leftover_temp_files(dest_dir) == []

    def test_failed_overwrite_keeps_old_destination(self, write_book_file, dest_dir, monkeypatch):
        source = write_book_file("Book.m4b", 50)
        dest = dest_dir / "Book.m4b"
        dest.write_bytes(b"old")

        def short_copy(src, dst, *args, **kwargs):
            Path(dst).write_bytes(b"short")

        monkeypatch.setattr(copier.shutil, "copy2", short_copy)

        result = execute(CopyTask(source, dest))

        assert result.outcome is CopyOutcome.FAILED
        assert "size mismatch" in result.reason
        assert dest.read_bytes() == b"old"

    def test_missing_destination_folder_fails(self, write_book_file, library):
        source = write_book_file("Book.m4b", 10)
        task = CopyTask(source, library["output"] / "no-such-dir" / "Book.m4b")

        result = execute(task)

        assert result.outcome is CopyOutcome.FAILED


class TestExecuteAll:
    def test_results_in_task_order_and_isolated(self, write_book_file, library, dest_dir):
        good = write_book_file("a.m4b", 10)
        tasks = [
            CopyTask(good, dest_dir / "a.m4b"),
            CopyTask(library["input"] / "books" / "missing.m4b", dest_dir / "missing.m4b"),
            CopyTask(write_book_file("c.m4b", 30), dest_dir / "c.m4b"),
        ]

        results = execute_all(tasks)

        assert [r.task for r in results] == tasks
        assert [r.outcome for r in results] == [
            CopyOutcome.COPIED,
            CopyOutcome.FAILED,
            CopyOutcome.COPIED,
        ]

    def test_empty(self):
        assert execute_all([]) == []

    def test_bounded_workers(self, write_book_file, dest_dir):
        tasks = [
            CopyTask(write_book_file(f"{i}.m4b", i + 1), dest_dir / f"{i}.m4b")
            for i in range(5)
        ]

        results = execute_all(tasks, max_workers=2)

        assert all(r.outcome is CopyOutcome.COPIED for r in results)


def test_copy_stats_from_runs(tmp_path):
    task = CopyTask(tmp_path / "a", tmp_path / "b")

    runs = [
        RunResult("ok", [CopyResult(task, CopyOutcome.COPIED, size_bytes=5)]),
        RunResult(
            "partial",
            [
                CopyResult(task, CopyOutcome.SKIPPED, size_bytes=7),
                CopyResult(task, CopyOutcome.FAILED, reason=SOURCE_MISSING),
            ],
        ),
        RunResult("broken", error="boom"),
    ]

    stats = CopyStats.from_runs(runs)

    assert (stats.records_ok, stats.records_failed) == (1, 2)
    assert (stats.total_copied, stats.total_skipped, stats.total_failed) == (1, 1, 1)
    assert stats.total_bytes == 5

