"""Cross-reference extraction between configuration steps.

Filters are referenced from the query text with ``{filter_<word>}``
placeholders; mapping fields reference preview columns by name. Everything
here is pure and total over any string input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

IDENTIFIER_PATTERN = re.compile(r"filter_\w+")
PLACEHOLDER_PATTERN = re.compile(r"\{(filter_\w+)\}")

MAPPING_FIELDS = ("value_column", "previous_value_column", "percent_change_column")


@dataclass(frozen=True)
class QuerySegment:
    """A slice of query text: plain ``text`` or a filter ``placeholder``."""

    kind: str
    text: str
    identifier: str | None = None
    active: bool = True


def extract_filter_references(text: str | None) -> tuple[str, ...]:
    """Return distinct filter identifiers referenced in ``text``.

    Identifiers come back in first-occurrence order. Tokens without both
    braces, or with nothing after ``filter_``, are not references.
    """
    if not text:
        return ()
    found: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text):
        identifier = match.group(1)
        if identifier not in found:
            found.append(identifier)
    return tuple(found)


def extract_column_references(mapping) -> tuple[str, ...]:
    """Return the non-empty column names chosen in a mapping payload."""
    columns: list[str] = []
    for name in MAPPING_FIELDS:
        value = getattr(mapping, name)
        if value and value not in columns:
            columns.append(value)
    return tuple(columns)


def render_placeholder(identifier: str) -> str:
    return "{" + identifier + "}"


def removed_marker(identifier: str) -> str:
    # No braces, so the marker is never re-extracted as a reference.
    return f"/* removed: {identifier} */"


def split_query_segments(text: str, active_ids: Iterable[str]) -> list[QuerySegment]:
    """Split a statement into text and placeholder segments for highlighting."""
    active = set(active_ids)
    segments: list[QuerySegment] = []
    last = 0
    for match in PLACEHOLDER_PATTERN.finditer(text or ""):
        if match.start() > last:
            segments.append(QuerySegment(kind="text", text=text[last:match.start()]))
        identifier = match.group(1)
        segments.append(
            QuerySegment(
                kind="placeholder",
                text=match.group(0),
                identifier=identifier,
                active=identifier in active,
            )
        )
        last = match.end()
    if text and last < len(text):
        segments.append(QuerySegment(kind="text", text=text[last:]))
    return segments


def mapping_field_states(mapping, columns: Iterable[str]) -> dict[str, str]:
    """Classify each mapping field as ``empty``, ``invalid`` or ``valid``."""
    available = set(columns)
    states: dict[str, str] = {}
    for name in MAPPING_FIELDS:
        value = getattr(mapping, name)
        if not value:
            states[name] = "empty"
        elif value not in available:
            states[name] = "invalid"
        else:
            states[name] = "valid"
    return states
