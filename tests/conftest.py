from __future__ import annotations

import json
from pathlib import Path

import pytest


def book_entry(title: str, author: str = "Jane Doe", files: list[dict] | None = None, **extra) -> dict:
    """Minimal books.json entry with the fields OpenAudible always writes."""
    entry = {
        "title": title,
        "title_short": title,
        "author": author,
        "asin": "B00TEST001",
        "seconds": 3600,
        "narrated_by": "Sam Reader",
        "files": files if files is not None else [],
    }
    entry.update(extra)
    return entry


def audio(path: str) -> dict:
    return {"path": path, "kind": "audio", "type": "M4B"}


@pytest.fixture
def library(tmp_path: Path) -> dict[str, Path]:
    """An OpenAudible input folder (with books/) and an empty output folder."""
    input_root = tmp_path / "openaudible"
    output_root = tmp_path / "audiobookshelf"
    (input_root / "books").mkdir(parents=True)
    output_root.mkdir()
    return {"input": input_root, "output": output_root}


@pytest.fixture
def write_manifest(library):
    def _write(entries) -> Path:
        path = library["input"] / "books.json"
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_book_file(library):
    def _write(name: str, size: int) -> Path:
        path = library["input"] / "books" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"a" * size)
        return path

    return _write


@pytest.fixture
def make_book():
    return book_entry


@pytest.fixture
def make_audio():
    return audio
