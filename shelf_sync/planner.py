"""Copy planning: decide where a record's audio files should land."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from shelf_sync.models import CopyTask, Record
from shelf_sync.templating import resolve

logger = logging.getLogger(__name__)

BOOKS_DIRNAME = "books"

_UNSAFE_PARTS = frozenset({"/", "", ".", ".."})


@dataclass
class CopyPlan:
    """Target folder for a record and the copies needed to fill it."""

    target_dir: Path
    tasks: list[CopyTask] = field(default_factory=list)


def safe_parts(relative: str) -> list[str]:
    """Split a manifest-supplied ``/`` path into parts that stay under a root.

    The anchor and any empty, ``.`` or ``..`` segments are dropped.
    """
    return [p for p in PurePosixPath(relative).parts if p not in _UNSAFE_PARTS]


def target_directory(output_root: Path, record: Record, template: str) -> Path:
    """Join the resolved template onto *output_root*.

    Template segments are always ``/`` separated; each one becomes a
    nested folder regardless of the host path flavour.
    """
    return output_root.joinpath(*safe_parts(resolve(template, record)))


def plan(
    input_root: Path,
    output_root: Path,
    record: Record,
    template: str,
) -> CopyPlan:
    """Create the target folder for *record* and list its audio copies."""
    target_dir = target_directory(output_root, record, template)
    # exist_ok makes concurrent creation by sibling records harmless
    target_dir.mkdir(parents=True, exist_ok=True)

    books_dir = input_root / BOOKS_DIRNAME
    tasks = []
    for media in record.audio_files:
        parts = safe_parts(media.relative_path)
        if not parts:
            logger.warning(
                "Ignoring unusable file path %r for %s",
                media.relative_path, record.display_name,
            )
            continue
        tasks.append(
            CopyTask(
                source=books_dir.joinpath(*parts),
                destination=target_dir / parts[-1],
            )
        )
    logger.debug(
        "Planned %d copy task(s) for %s into %s",
        len(tasks), record.display_name, target_dir,
    )
    return CopyPlan(target_dir=target_dir, tasks=tasks)
