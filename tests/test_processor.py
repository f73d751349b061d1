from __future__ import annotations

import logging

import pytest

from shelf_sync.models import CopyOutcome, ManifestError
from shelf_sync.processor import ManifestProcessor
from shelf_sync import processor as processor_module


@pytest.fixture
def processor(library) -> ManifestProcessor:
    return ManifestProcessor(library["input"], library["output"], "{author}/{title_short}")


def _outcomes(run):
    return sorted(r.outcome.value for r in run.results)


def test_copies_every_audio_file(processor, library, write_manifest, write_book_file, make_book, make_audio):
    write_book_file("One.m4b", 100)
    write_book_file("Two.mp3", 50)
    write_manifest(
        [
            make_book("One", files=[make_audio("One.m4b"), {"path": "One.jpg", "kind": "image"}]),
            make_book("Two", author="John Roe", files=[make_audio("Two.mp3")]),
        ]
    )

    results = processor.process()

    assert [r.title for r in results] == ["One", "Two"]
    assert all(r.ok for r in results)
    assert (library["output"] / "Jane Doe" / "One" / "One.m4b").stat().st_size == 100
    assert (library["output"] / "John Roe" / "Two" / "Two.mp3").stat().st_size == 50
    assert not (library["output"] / "Jane Doe" / "One" / "One.jpg").exists()


def test_second_run_skips_everything(processor, library, write_manifest, write_book_file, make_book, make_audio):
    write_book_file("One.m4b", 100)
    write_book_file("One-2.m4b", 300)
    write_manifest([make_book("One", files=[make_audio("One.m4b"), make_audio("One-2.m4b")])])

    first = processor.process()
    sizes = {p.name: p.stat().st_size for p in (library["output"] / "Jane Doe" / "One").iterdir()}
    second = processor.process()

    assert first[0].copied == 2
    assert _outcomes(second[0]) == ["skipped", "skipped"]
    assert processor.last_stats.total_copied == 0
    assert sizes == {
        p.name: p.stat().st_size for p in (library["output"] / "Jane Doe" / "One").iterdir()
    }


def test_missing_source_does_not_abort_siblings(processor, library, write_manifest, write_book_file, make_book, make_audio):
    write_book_file("Here.m4b", 10)
    write_book_file("Other.m4b", 20)
    write_manifest(
        [
            make_book("Partial", files=[make_audio("Here.m4b"), make_audio("Gone.m4b")]),
            make_book("Other", files=[make_audio("Other.m4b")]),
        ]
    )

    partial, other = processor.process()

    assert _outcomes(partial) == ["copied", "failed"]
    assert not partial.ok
    assert "1 copied, 0 skipped, 1 failed" in partial.message
    assert other.ok
    assert processor.last_stats.records_failed == 1


def test_record_level_error_is_contained(processor, library, write_manifest, write_book_file, make_book, make_audio, monkeypatch, caplog):
    write_book_file("Fine.m4b", 10)
    write_manifest(
        [
            make_book("Broken", files=[make_audio("x.m4b")]),
            make_book("Fine", files=[make_audio("Fine.m4b")]),
        ]
    )
    real_plan = processor_module.plan

    def flaky_plan(input_root, output_root, record, template):
        if record.title == "Broken":
            raise PermissionError("read-only output")
        return real_plan(input_root, output_root, record, template)

    monkeypatch.setattr(processor_module, "plan", flaky_plan)

    with caplog.at_level(logging.INFO):
        broken, fine = processor.process()

    assert broken.error == "read-only output"
    assert broken.results == []
    assert fine.ok
    assert fine.results[0].outcome is CopyOutcome.COPIED
    assert "Error processing Broken" in caplog.text
    assert "Fine processed successfully" in caplog.text


def test_size_change_in_library_is_recopied(processor, library, write_manifest, write_book_file, make_book, make_audio):
    write_book_file("One.m4b", 100)
    write_manifest([make_book("One", files=[make_audio("One.m4b")])])
    processor.process()

    write_book_file("One.m4b", 200)
    results = processor.process()

    assert results[0].copied == 1
    assert (library["output"] / "Jane Doe" / "One" / "One.m4b").stat().st_size == 200


def test_empty_manifest(processor, write_manifest):
    write_manifest([])

    assert processor.process() == []
    assert processor.last_stats.records_ok == 0


def test_malformed_manifest_is_run_level_error(processor, library):
    (library["input"] / "books.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ManifestError):
        processor.process()


def test_run_pass_swallows_manifest_errors(processor, library, caplog):
    (library["input"] / "books.json").write_text("[1, 2", encoding="utf-8")

    with caplog.at_level(logging.ERROR):
        assert processor.run_pass() is None

    assert "Run aborted" in caplog.text


def test_bounded_workers(library, write_manifest, write_book_file, make_book, make_audio):
    entries = []
    for i in range(6):
        write_book_file(f"{i}.m4b", i + 1)
        entries.append(make_book(f"Book {i}", files=[make_audio(f"{i}.m4b")]))
    write_manifest(entries)
    proc = ManifestProcessor(library["input"], library["output"], "{title}", max_workers=2)

    results = proc.process()

    assert len(results) == 6
    assert all(r.ok for r in results)
