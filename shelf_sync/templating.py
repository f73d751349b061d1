"""
Path template expansion for Shelf Watcher.

A template such as ``{author}/{title_short}`` is expanded against a
:class:`~shelf_sync.models.Record` to produce the relative output folder
for that book.

Supported tokens are the record's scalar fields, e.g.:
  {author}       {title}        {title_short}   {narrated_by}
  {series_name}  {series_sequence}  {genre}     {release_date}
  {asin}         {seconds}      ...

Unknown tokens, and fields the manifest entry does not carry, expand to
``undefined``.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from operator import attrgetter

from shelf_sync.models import SCALAR_FIELDS, Record

MISSING_PLACEHOLDER = "undefined"
DEFAULT_TEMPLATE = "{author}/{title_short}"

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

FIELD_ACCESSORS: dict[str, Callable[[Record], object]] = {
    name: attrgetter(name) for name in SCALAR_FIELDS
}


def _to_text(value: object) -> str:
    if value is None:
        return MISSING_PLACEHOLDER
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def field_value(record: Record, name: str) -> str:
    """Return the string form of field *name* on *record*."""
    accessor = FIELD_ACCESSORS.get(name)
    if accessor is None:
        return MISSING_PLACEHOLDER
    return _to_text(accessor(record))


def placeholders(template: str) -> list[str]:
    """Return the distinct placeholder names in *template*, in order."""
    seen: dict[str, None] = {}
    for match in _PLACEHOLDER_RE.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def unknown_placeholders(template: str) -> list[str]:
    """Return placeholder names that no record field can satisfy."""
    return [name for name in placeholders(template) if name not in FIELD_ACCESSORS]


def resolve(template: str, record: Record) -> str:
    """Expand every ``{field}`` in *template* with values from *record*."""
    values = {name: field_value(record, name) for name in placeholders(template)}
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)
