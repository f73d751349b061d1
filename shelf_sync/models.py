"""
Data types and manifest parsing for Shelf Watcher.

The manifest is the ``books.json`` file written by OpenAudible: a JSON
array with one object per audiobook.  Each object is parsed into an
immutable :class:`Record`; the list of files attached to a book becomes a
tuple of :class:`MediaFile` entries.  Records are rebuilt from scratch on
every parse.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any


class ShelfSyncError(Exception):
    """Base class for errors raised by Shelf Watcher."""


class ManifestError(ShelfSyncError):
    """Raised when the manifest cannot be read or has the wrong shape."""


class ManifestNotFoundError(ShelfSyncError):
    """Raised at startup when the manifest file does not exist."""


class MediaKind(enum.Enum):
    AUDIO = "audio"
    OTHER = "other"

    @classmethod
    def from_manifest(cls, value: Any) -> "MediaKind":
        return cls.AUDIO if value == cls.AUDIO.value else cls.OTHER


@dataclass(frozen=True)
class MediaFile:
    """One file referenced by a record, relative to the ``books/`` folder."""

    relative_path: str
    kind: MediaKind = MediaKind.OTHER
    media_type: str = ""

    @property
    def is_audio(self) -> bool:
        return self.kind is MediaKind.AUDIO


@dataclass(frozen=True)
class Record:
    """One audiobook entry from the manifest.

    Scalar fields mirror the OpenAudible ``books.json`` keys.  A key that
    is missing from the manifest entry is stored as ``None``.
    """

    author: str | None = None
    title: str | None = None
    title_short: str | None = None
    key: str | None = None
    asin: str | None = None
    product_id: str | None = None
    filename: str | None = None
    # publication
    publisher: str | None = None
    copyright: str | None = None
    release_date: str | None = None
    purchase_date: str | None = None
    language: str | None = None
    region: str | None = None
    abridged: str | None = None
    # narration / duration
    narrated_by: str | None = None
    duration: str | None = None
    seconds: int | float | None = None
    # genre / series
    genre: str | None = None
    series_name: str | None = None
    series_sequence: str | None = None
    series_link: str | None = None
    # catalogue
    rating_average: str | None = None
    rating_count: str | None = None
    read_status: str | None = None
    summary: str | None = None
    description: str | None = None
    info_link: str | None = None
    author_link: str | None = None
    image_url: str | None = None
    download_link: str | None = None
    user_id: str | None = None
    ayce: str | None = None
    files: tuple[MediaFile, ...] = ()

    @property
    def audio_files(self) -> list[MediaFile]:
        return [f for f in self.files if f.is_audio]

    @property
    def display_name(self) -> str:
        """Human-readable label for log lines."""
        return self.title or self.title_short or self.key or "<untitled>"


SCALAR_FIELDS: tuple[str, ...] = tuple(
    f.name for f in fields(Record) if f.name != "files"
)


@dataclass(frozen=True)
class CopyTask:
    """A single planned copy from the input library to the output tree."""

    source: Path
    destination: Path


class CopyOutcome(enum.Enum):
    COPIED = "copied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class CopyResult:
    """Terminal outcome of executing one :class:`CopyTask`."""

    task: CopyTask
    outcome: CopyOutcome
    size_bytes: int = 0
    reason: str = ""

    @property
    def failed(self) -> bool:
        return self.outcome is CopyOutcome.FAILED


@dataclass
class RunResult:
    """Per-record summary collected during one processing pass."""

    title: str
    results: list[CopyResult] = field(default_factory=list)
    error: str = ""

    def _count(self, outcome: CopyOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def copied(self) -> int:
        return self._count(CopyOutcome.COPIED)

    @property
    def skipped(self) -> int:
        return self._count(CopyOutcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(CopyOutcome.FAILED)

    @property
    def ok(self) -> bool:
        return not self.error and self.failed == 0

    @property
    def message(self) -> str:
        if self.error:
            return f"Error processing {self.title}: {self.error}"
        counts = (
            f"{self.copied} copied, {self.skipped} skipped, {self.failed} failed"
        )
        if self.ok:
            return f"{self.title} processed successfully ({counts})"
        return f"{self.title} processed with errors ({counts})"


# ---- parsing ------------------------------------------------------------


def _scalar(entry: dict[str, Any], name: str, index: int) -> Any:
    value = entry.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ManifestError(
            f"Entry {index}: field {name!r} must be a string or number, "
            f"got {type(value).__name__}"
        )
    return value


def _parse_files(raw: Any, index: int) -> tuple[MediaFile, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ManifestError(f"Entry {index}: 'files' must be a list")
    parsed = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("path"), str):
            raise ManifestError(
                f"Entry {index}: every file needs a string 'path'"
            )
        media_type = item.get("type")
        parsed.append(
            MediaFile(
                relative_path=item["path"],
                kind=MediaKind.from_manifest(item.get("kind")),
                media_type=media_type if isinstance(media_type, str) else "",
            )
        )
    return tuple(parsed)


def parse_record(entry: Any, index: int = 0) -> Record:
    """Build a :class:`Record` from one decoded manifest entry."""
    if not isinstance(entry, dict):
        raise ManifestError(f"Entry {index} is not an object")
    values = {name: _scalar(entry, name, index) for name in SCALAR_FIELDS}
    return Record(**values, files=_parse_files(entry.get("files"), index))


def parse_manifest(text: str) -> list[Record]:
    """Parse manifest JSON text into records, preserving file order."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Manifest is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ManifestError("Manifest must be a JSON array of books")
    return [parse_record(entry, i) for i, entry in enumerate(data)]


def load_manifest(path: Path) -> list[Record]:
    """Read and parse the manifest at *path*."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Could not read manifest {path}: {exc}") from exc
    return parse_manifest(text)
